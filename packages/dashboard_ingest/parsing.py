"""Parsing of raw model replies into records.

Model replies are not always clean JSON: some arrive wrapped in markdown code
fences, others with a sentence of prose before or after the object. Parsing
therefore strips fences first and, when that still fails, falls back to the
outermost ``{...}`` span.
"""

from __future__ import annotations

import datetime as dt
import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .errors import ClassificationError, ParseError
from .logging_setup import get_logger
from .schema import ExtractedTransaction, Record, validate_record

_FENCE_RE = re.compile(r"```(?:json|JSON)?[ \t]*\n?")

_logger = get_logger("dashboard_ingest.parsing")


@dataclass(frozen=True, slots=True)
class ParsedReply:
    record: Record
    message: str


@dataclass(frozen=True, slots=True)
class StatementPage:
    """Transactions read from one statement page plus the model's explanation."""

    debug_summary: str
    transactions: list[ExtractedTransaction] = field(default_factory=list)


def strip_code_fences(raw: str) -> str:
    return _FENCE_RE.sub("", raw).strip()


def decode_json_object(raw: str) -> Mapping[str, Any]:
    """Decode the JSON object in ``raw``.

    Tries the fence-stripped text first, then the outermost brace span.
    Raises :class:`ParseError` when neither yields a JSON object.
    """

    if not isinstance(raw, str) or not raw.strip():
        raise ParseError(raw=raw if isinstance(raw, str) else None)
    text = strip_code_fences(raw)
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            raise ParseError(raw=raw) from None
        try:
            decoded = json.loads(text[start : end + 1])
        except json.JSONDecodeError as e:
            raise ParseError(raw=raw) from e
    if not isinstance(decoded, Mapping):
        raise ParseError("model output is not a JSON object", raw=raw)
    return decoded


def _is_error_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


def parse_reply(raw: str, *, today: dt.date | None = None) -> ParsedReply:
    """Convert a classification reply into a typed record.

    Raises :class:`ParseError` for malformed output,
    :class:`ClassificationError` when the model reports ``error: true`` and
    :class:`~dashboard_ingest.errors.ValidationError` when ``data`` does not
    satisfy the schema for ``dataType``.
    """

    body = decode_json_object(raw)
    if _is_error_flag(body.get("error")):
        msg = body.get("message")
        raise ClassificationError(msg.strip() if isinstance(msg, str) and msg.strip() else None)

    record = validate_record(body.get("dataType"), body.get("data"), today=today)
    message = body.get("message")
    return ParsedReply(record=record, message=message.strip() if isinstance(message, str) else "")


def parse_statement_page(raw: str, *, today: dt.date | None = None) -> StatementPage:
    """Parse a ``{debug_summary, transactions}`` reply.

    Rows that are not objects or fail validation are skipped (logged at
    warning level). Rows with an unreadable date are kept, dated today and
    flagged through ``ExtractedTransaction.raw_date``. A missing or non-list
    ``transactions`` key yields an empty page rather than an error.
    """

    body = decode_json_object(raw)
    summary = body.get("debug_summary")
    summary_text = summary.strip() if isinstance(summary, str) else ""
    rows = body.get("transactions")
    if not isinstance(rows, list):
        return StatementPage(debug_summary=summary_text)

    context = {"today": today or dt.date.today()}
    out: list[ExtractedTransaction] = []
    for pos, row in enumerate(rows):
        if not isinstance(row, Mapping):
            _logger.warning("statement:row_skipped row=%d reason=not_an_object", pos)
            continue
        try:
            out.append(ExtractedTransaction.model_validate(dict(row), context=context))
        except PydanticValidationError as e:
            _logger.warning(
                "statement:row_skipped row=%d reason=invalid errors=%d", pos, e.error_count()
            )
    return StatementPage(debug_summary=summary_text, transactions=out)


def format_reply(record: Record, message: str = "") -> str:
    """Render ``record`` in the reply envelope a model is asked to produce."""

    return json.dumps(
        {"dataType": record.data_type, "data": record.to_wire(), "message": message},
        ensure_ascii=False,
    )


__all__ = [
    "ParsedReply",
    "StatementPage",
    "decode_json_object",
    "format_reply",
    "parse_reply",
    "parse_statement_page",
    "strip_code_fences",
]
