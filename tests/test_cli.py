import json

import pytest
from typer.testing import CliRunner

import dashboard_ingest.cli as cli_mod
from dashboard_ingest.errors import ProviderError
from dashboard_ingest.prompting import WORKED_EXAMPLES
from tests.helpers.llm_stub import ScriptedGateway, page_reply, reply

runner = CliRunner()


@pytest.fixture
def gateway(monkeypatch: pytest.MonkeyPatch) -> ScriptedGateway:
    gw = ScriptedGateway()
    monkeypatch.setattr(cli_mod, "_create_gateway", lambda settings: gw)
    # Keep log handlers off CliRunner's temporary streams.
    monkeypatch.setattr(cli_mod, "configure_logging", lambda: None)
    return gw


def _example(fragment: str) -> str:
    ex = next(e for e in WORKED_EXAMPLES if fragment in e.input_text)
    return json.dumps(ex.reply())


def test_classify_prints_envelope(gateway):
    gateway.replies.append(_example("Inception"))
    result = runner.invoke(cli_mod.app, ["classify", "Add Inception to my watchlist"])
    assert result.exit_code == 0, result.output
    assert '"dataType": "movie"' in result.output
    assert gateway.calls[0]["user_text"] == "Add Inception to my watchlist"


def test_classify_without_input_fails_without_calling_model(gateway):
    result = runner.invoke(cli_mod.app, ["classify"])
    assert result.exit_code == 1
    assert "Please provide some text or an image" in result.output
    assert gateway.calls == []


def test_classify_failure_envelope_exits_nonzero(gateway):
    gateway.replies.append('{"error": true, "message": "Unclear input"}')
    result = runner.invoke(cli_mod.app, ["classify", "asdf"])
    assert result.exit_code == 1
    assert '"error": true' in result.output
    assert "Unclear input" in result.output


def test_classify_provider_error(gateway):
    gateway.replies.append(ProviderError("unreachable"))
    result = runner.invoke(cli_mod.app, ["classify", "Spent 2500 on groceries"])
    assert result.exit_code == 1
    assert "model provider failed" in result.output


def test_classify_image_option(gateway, tmp_path):
    img = tmp_path / "receipt.png"
    img.write_bytes(b"\x89PNG\r\n\x1a\nreceipt")
    gateway.replies.append(reply("transaction", {"type": "expense", "source": "Cafe", "amount": 180}))
    result = runner.invoke(cli_mod.app, ["classify", "--image", str(img)])
    assert result.exit_code == 0, result.output
    assert gateway.calls[0]["image"] == b"\x89PNG\r\n\x1a\nreceipt"


def test_saved_salary_with_balance_reconciles_ledger(gateway):
    gateway.replies.append(_example("balance is now 23k"))
    result = runner.invoke(
        cli_mod.app, ["classify", "Salary is 17k arrived, balance is now 23k", "--save"]
    )
    assert result.exit_code == 0, result.output
    assert "Balance correction" in result.output

    result = runner.invoke(cli_mod.app, ["balance"])
    assert result.exit_code == 0, result.output
    assert "Ledger balance: 23000.00" in result.output


def test_balance_set_adds_correction_once(gateway):
    result = runner.invoke(cli_mod.app, ["balance", "--set", "100"])
    assert result.exit_code == 0, result.output
    assert "New balance: 100.00" in result.output

    result = runner.invoke(cli_mod.app, ["balance", "--set", "100.5"])
    assert result.exit_code == 0, result.output
    assert "no correction needed" in result.output


def test_extract_statement_saves_all_rows_with_yes(gateway, tmp_path):
    pages = []
    for i in range(2):
        p = tmp_path / f"page{i}.png"
        p.write_bytes(b"\x89PNG\r\n\x1a\n" + bytes([i]))
        pages.append(str(p))
    gateway.replies.extend(
        [
            page_reply([{"date": "2024-01-05", "source": "Rent", "amount": 300, "type": "expense"}]),
            page_reply([{"date": "2024-01-20", "source": "Salary", "amount": 1000, "type": "income"}]),
        ]
    )

    result = runner.invoke(cli_mod.app, ["extract-statement", *pages, "--yes", "--save", "--delay-ms", "0"])
    assert result.exit_code == 0, result.output
    assert "Processing 2 page(s)" in result.output
    assert "Kept 2 of 2 transaction(s)." in result.output
    assert len(gateway.calls) == 2

    result = runner.invoke(cli_mod.app, ["balance"])
    assert "Ledger balance: 700.00" in result.output


def test_extract_statement_without_rows_fails(gateway, tmp_path):
    p = tmp_path / "blank.png"
    p.write_bytes(b"\x89PNG\r\n\x1a\n")
    gateway.replies.append(page_reply([], summary="A blank page"))
    result = runner.invoke(cli_mod.app, ["extract-statement", str(p), "--yes"])
    assert result.exit_code == 1
    assert "A blank page" in result.output
    assert "Could not find transactions" in result.output


def test_extract_statement_missing_file(gateway, tmp_path):
    result = runner.invoke(cli_mod.app, ["extract-statement", str(tmp_path / "missing.png")])
    assert result.exit_code == 1
    assert "cannot read statement" in result.output


def test_unsaved_classify_still_reconciles_against_stored_ledger(gateway):
    result = runner.invoke(cli_mod.app, ["balance", "--set", "20000"])
    assert result.exit_code == 0, result.output

    gateway.replies.append(_example("balance is now 23k"))
    result = runner.invoke(cli_mod.app, ["classify", "Salary is 17k arrived, balance is now 23k"])
    assert result.exit_code == 0, result.output
    correction = next(line for line in result.output.splitlines() if line.startswith("Balance correction: "))
    assert json.loads(correction.removeprefix("Balance correction: "))["type"] == "expense"
    assert json.loads(correction.removeprefix("Balance correction: "))["amount"] == 14000.0

    result = runner.invoke(cli_mod.app, ["balance"])
    assert "Ledger balance: 20000.00" in result.output


def test_unknown_log_level_is_reported(monkeypatch):
    monkeypatch.setenv("DASHBOARD_INGEST_LOG_LEVEL", "chatty")
    result = runner.invoke(cli_mod.app, ["balance"])
    assert result.exit_code == 1
    assert "unknown log level 'chatty'" in result.output
