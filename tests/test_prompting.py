import datetime as dt

import pytest

from dashboard_ingest.prompting import (
    FIELD_RULES,
    STATEMENT_PAGE_PROMPT,
    WORKED_EXAMPLES,
    build_classification_prompt,
    build_statement_prompt,
)
from dashboard_ingest.schema import RECORD_MODELS, TRANSACTION_TAGS, validate_record

TODAY = dt.date(2024, 3, 1)


def test_prompt_embeds_today_and_date_rule():
    prompt = build_classification_prompt(TODAY)
    assert "Today's date is 2024-03-01." in prompt
    assert "use 2024-03-01 when not specified" in prompt
    assert "{today}" not in prompt


def test_prompt_is_deterministic_for_a_given_day():
    assert build_classification_prompt(TODAY) == build_classification_prompt(TODAY)
    assert build_classification_prompt(TODAY) != build_classification_prompt(dt.date(2024, 3, 2))


@pytest.mark.parametrize("data_type", list(RECORD_MODELS))
def test_every_prompt_field_has_a_rule_line(data_type):
    prompt = build_classification_prompt(TODAY)
    assert f"**{data_type}**" in prompt
    for name in RECORD_MODELS[data_type].prompt_fields:
        assert name in FIELD_RULES[data_type]
        assert f"   - {name}: " in prompt


def test_prompt_lists_vocabularies_envelopes_and_balance_rule():
    prompt = build_classification_prompt(TODAY)
    for tag in TRANSACTION_TAGS:
        assert f'"{tag}"' in prompt
    assert '"forcedBalance"' in prompt
    assert "General rule for balance" in prompt
    assert '{"error": true, "message":' in prompt
    assert "Always respond with valid JSON only" in prompt


def test_worked_examples_cover_every_kind_and_appear_in_prompt():
    prompt = build_classification_prompt(TODAY)
    assert {ex.data_type for ex in WORKED_EXAMPLES} == set(RECORD_MODELS)
    for ex in WORKED_EXAMPLES:
        assert f'"{ex.input_text}"' in prompt


@pytest.mark.parametrize("example", WORKED_EXAMPLES, ids=lambda ex: ex.input_text[:30])
def test_worked_examples_satisfy_the_schema(example):
    record = validate_record(example.data_type, example.data, today=TODAY)
    assert record.data_type == example.data_type


def test_salary_with_balance_example_carries_forced_balance():
    ex = next(e for e in WORKED_EXAMPLES if "balance is now 23k" in e.input_text)
    assert ex.data_type == "transaction"
    assert ex.data["amount"] == 17000
    assert ex.data["forcedBalance"] == 23000


def test_statement_prompt_requests_summary_and_rows():
    prompt = build_statement_prompt()
    assert prompt == STATEMENT_PAGE_PROMPT
    assert '"debug_summary"' in prompt
    assert '"transactions"' in prompt
    for key in ('"date"', '"source"', '"amount"', '"type"', '"tags"'):
        assert key in prompt
