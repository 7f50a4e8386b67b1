"""CLI for the ``dashboard_ingest`` package.

Typer-based console interface. Environment variables (notably
``OPENAI_API_KEY``) are loaded from a local ``.env`` using ``python-dotenv``
before any command runs. Business logic lives in :mod:`dashboard_ingest.api`
and :mod:`dashboard_ingest.storage`; commands here only wire settings, stores
and output together.
"""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .api import ClassificationResult, IngestionOrchestrator
from .errors import InvalidInputError, ProviderError
from .gateway import LanguageModelGateway, OpenAIChatGateway
from .logging_setup import configure_logging
from .reconcile import BalanceReconciler
from .settings import IngestSettings
from .statements import StatementExtractor
from .storage import DashboardStore, SqlKeyValueStore

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Turn free text, receipts and bank statements into dashboard records using a "
        "language model. Loads OPENAI_API_KEY from a local .env before running."
    ),
)


# ---- Small module-level helpers used by CLI commands -------------------------


def _create_gateway(settings: IngestSettings) -> LanguageModelGateway:
    return OpenAIChatGateway(settings)


def _settings(database_url: str | None = None, delay_ms: int | None = None) -> IngestSettings:
    base = IngestSettings.from_env()
    overrides: dict[str, object] = {}
    if database_url:
        overrides["database_url"] = database_url
    if delay_ms is not None:
        overrides["page_delay_ms"] = delay_ms
    if not overrides:
        return base
    return replace(base, **overrides)


def _orchestrator(settings: IngestSettings) -> IngestionOrchestrator:
    gateway = _create_gateway(settings)
    return IngestionOrchestrator(
        gateway,
        reconciler=BalanceReconciler(tolerance=settings.balance_tolerance),
        extractor=StatementExtractor(
            gateway,
            page_delay_ms=settings.page_delay_ms,
            page_timeout=settings.page_timeout_s,
        ),
    )


def _store(settings: IngestSettings) -> DashboardStore:
    def _announce(key: str, record) -> None:
        typer.echo(f"saved to {key}: {json.dumps(record.to_wire(), ensure_ascii=False)}")

    return DashboardStore(SqlKeyValueStore(settings.database_url), on_change=_announce)


def _fail(message: str) -> NoReturn:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer inspects these when used as default values below.
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DASHBOARD_DATABASE_URL (SQLAlchemy URL)."
)
SAVE_OPTION: OptionInfo = typer.Option(
    False, "--save", help="Store the result in the dashboard database."
)


@app.command("classify")
def classify_cmd(
    text: Annotated[str | None, typer.Argument(help="Free text to classify.")] = None,
    *,
    image: Path | None = typer.Option(
        None, "--image", help="Image to send along (receipt, portfolio screenshot)."
    ),
    save: bool = SAVE_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Classify TEXT (and/or --image) into one dashboard record."""

    settings = _settings(database_url)
    image_bytes: bytes | None = None
    if image is not None:
        try:
            image_bytes = image.read_bytes()
        except OSError as e:
            _fail(f"cannot read image '{image}': {e}")

    store = _store(settings)
    ledger = store.load_ledger()

    try:
        result = _orchestrator(settings).classify(text, image_bytes, ledger=ledger)
    except InvalidInputError as e:
        _fail(str(e))
    except ProviderError as e:
        _fail(f"model provider failed: {e}")

    typer.echo(json.dumps(result.to_envelope(), ensure_ascii=False, indent=2))
    if not isinstance(result, ClassificationResult):
        raise typer.Exit(1)
    if result.correction is not None:
        typer.echo(
            "Balance correction: "
            + json.dumps(result.correction.to_wire(), ensure_ascii=False)
        )
    if save:
        store.commit(result)


@app.command("extract-statement")
def extract_statement_cmd(
    files: Annotated[list[Path], typer.Argument(help="Statement PDFs and/or page images.")],
    *,
    delay_ms: int | None = typer.Option(
        None, "--delay-ms", help="Pause between pages (default DASHBOARD_PAGE_DELAY_MS)."
    ),
    save: bool = SAVE_OPTION,
    yes: bool = typer.Option(False, "--yes", help="Keep all rows without reviewing."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Extract transactions from a multi-page bank statement."""

    from .documents import load_pages
    from .term_ui import format_row, review_extracted

    settings = _settings(database_url, delay_ms)
    try:
        pages = load_pages(files)
    except (OSError, RuntimeError, ValueError) as e:
        _fail(f"cannot read statement: {e}")
    if not pages:
        _fail("no pages could be read from the given files")

    typer.echo(f"Processing {len(pages)} page(s)…")
    extraction = _orchestrator(settings).extract_document(pages)
    for page in extraction.pages:
        typer.echo(
            f"page {page.page_index + 1}: {page.transaction_count} transaction(s) "
            f"- {page.debug_summary}"
        )

    if not extraction.transactions:
        typer.echo("Could not find transactions on any page.")
        raise typer.Exit(1)

    if yes:
        for pos, row in enumerate(extraction.transactions, start=1):
            typer.echo(format_row(pos, row))
        kept = list(extraction.transactions)
    else:
        kept = review_extracted(extraction.transactions, echo=typer.echo)

    typer.echo(f"Kept {len(kept)} of {len(extraction.transactions)} transaction(s).")
    if save and kept:
        _store(settings).add_transactions(kept)


@app.command("balance")
def balance_cmd(
    set_to: float | None = typer.Option(
        None, "--set", help="Declare the current balance; adds a correction if needed."
    ),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Show the ledger balance, or reconcile it to a declared value."""

    settings = _settings(database_url)
    store = _store(settings)
    ledger = store.load_ledger()
    reconciler = BalanceReconciler(tolerance=settings.balance_tolerance)
    typer.echo(f"Ledger balance: {reconciler.ledger_balance(ledger):.2f}")
    if set_to is None:
        return

    from .schema import BalanceUpdateRecord

    update = BalanceUpdateRecord(target_balance=set_to)
    outcome = reconciler.apply_balance_update(ledger, update)
    result = ClassificationResult(
        record=update,
        message="Balance updated",
        correction=outcome.correction,
        ledger=outcome.ledger,
    )
    store.commit(result)
    if outcome.correction is None:
        typer.echo("Balance already matches; no correction needed.")
    else:
        typer.echo(f"New balance: {reconciler.ledger_balance(outcome.ledger):.2f}")


@app.callback()
def _root() -> None:
    """Load ``.env`` from the current directory and configure logging."""

    # override=False keeps already-exported variables authoritative
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    try:
        configure_logging()
    except ValueError as e:
        _fail(str(e))


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    app()
