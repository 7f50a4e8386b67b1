"""Prompt construction for classification and statement-page extraction.

This module builds:
- The classification instructions: today's date, the six record kinds with a
  rule line per field, the closed vocabularies, the general rule for balance,
  the reply envelopes and a set of worked input → output examples.
- The fixed bank-statement page instruction requesting
  ``{debug_summary, transactions}``.

Everything here is pure and deterministic for a given ``today``.
"""

from __future__ import annotations

import datetime as dt
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .schema import (
    INVESTMENT_TYPES,
    MOVIE_GENRES,
    MOVIE_STATUSES,
    NOTE_CATEGORIES,
    PASSWORD_CATEGORIES,
    RECORD_MODELS,
    TRANSACTION_TAGS,
)


def _quoted(values: tuple[str, ...]) -> str:
    return json.dumps(list(values), ensure_ascii=False)


@dataclass(frozen=True, slots=True)
class WorkedExample:
    """A single input → expected reply pair embedded in the prompt."""

    input_text: str
    data_type: str
    data: Mapping[str, Any] = field(default_factory=dict)
    message: str = ""

    def reply(self) -> dict[str, Any]:
        return {"dataType": self.data_type, "data": dict(self.data), "message": self.message}


WORKED_EXAMPLES: tuple[WorkedExample, ...] = (
    WorkedExample(
        "I received 50000 salary today",
        "transaction",
        {"type": "income", "source": "Salary", "amount": 50000, "tags": ["Salary"]},
        "Added income of 50000 from Salary",
    ),
    WorkedExample(
        "Salary is 17k arrived, balance is now 23k",
        "transaction",
        {
            "type": "income",
            "source": "Salary (Balance: 23k)",
            "amount": 17000,
            "tags": ["Salary"],
            "forcedBalance": 23000,
        },
        "Added salary of 17000 and set balance to 23000",
    ),
    WorkedExample(
        "Spent 2500 on groceries",
        "transaction",
        {"type": "expense", "source": "Groceries", "amount": 2500, "tags": ["Food"]},
        "Added expense of 2500 for groceries",
    ),
    WorkedExample(
        "Add Inception to my watchlist",
        "movie",
        {"title": "Inception", "status": "to-watch", "genre": "Sci-Fi"},
        "Added Inception to your watchlist",
    ),
    WorkedExample(
        "Watched Parasite last night, 5 stars, brilliant ending",
        "movie",
        {
            "title": "Parasite",
            "status": "watched",
            "genre": "Thriller",
            "rating": 5,
            "notes": "Brilliant ending",
        },
        "Marked Parasite as watched",
    ),
    WorkedExample(
        "Idea: Build a new app for tracking plants",
        "note",
        {
            "title": "New app idea",
            "content": "Build a new app for tracking plants",
            "category": "Ideas",
        },
        "Saved your idea",
    ),
    WorkedExample(
        "Save password for Netflix: user@email.com / pass123",
        "password",
        {
            "site": "Netflix",
            "username": "user@email.com",
            "password": "pass123",
            "category": "Other",
        },
        "Saved Netflix credentials",
    ),
    WorkedExample(
        "Bought 10 shares of Apple at 150",
        "investment",
        {
            "type": "STOCK",
            "symbol": "AAPL",
            "name": "Apple Inc.",
            "quantity": 10,
            "buyPrice": 150,
            "currentPrice": 150,
            "totalInvested": 1500,
        },
        "Added 10 AAPL shares",
    ),
    WorkedExample(
        "Started SIP of 5000 in HDFC Flexi Cap on the 10th",
        "investment",
        {
            "type": "SIP",
            "symbol": "HDFC Flexi Cap Direct Plan Growth",
            "name": "HDFC Flexi Cap Direct Plan Growth",
            "sipAmount": 5000,
            "sipDate": 10,
        },
        "Added SIP of 5000 in HDFC Flexi Cap",
    ),
    WorkedExample(
        "My balance is 50000",
        "balance_update",
        {"balance": 50000},
        "Balance set to 50000",
    ),
)

# One rule line per model-filled wire field, keyed by data type.
FIELD_RULES: dict[str, dict[str, str]] = {
    "transaction": {
        "type": '"income" or "expense"',
        "source": (
            "short description of the transaction; append status/balance info when "
            'relevant, e.g. "Salary (Balance: 23k)"'
        ),
        "amount": (
            "number; the *transaction* amount, never the resulting balance "
            '("Salary 17k, balance 23k" -> 17000)'
        ),
        "tags": f"array of relevant tags from {_quoted(TRANSACTION_TAGS)}",
        "date": "ISO date (YYYY-MM-DD); use {today} when not specified",
        "forcedBalance": "number; only when the user states the resulting balance",
    },
    "movie": {
        "title": "movie name",
        "status": " or ".join(f'"{s}"' for s in MOVIE_STATUSES),
        "genre": f"one of {_quoted(MOVIE_GENRES)}",
        "rating": "1-5, only if mentioned",
        "notes": "any additional notes",
        "cast": "array of cast member names, only if mentioned",
    },
    "note": {
        "title": "brief title",
        "content": "note content",
        "category": f"one of {_quoted(NOTE_CATEGORIES)}",
    },
    "password": {
        "site": "website/app name",
        "username": "username or email",
        "password": "the password",
        "category": f"one of {_quoted(PASSWORD_CATEGORIES)}",
    },
    "investment": {
        "type": (
            " or ".join(f'"{t}"' for t in INVESTMENT_TYPES)
            + " (default to MF when it looks like a mutual fund)"
        ),
        "symbol": 'ticker symbol or fund name (e.g. "AAPL", "HDFC Flexi Cap Direct Plan Growth")',
        "name": "full company/fund name",
        "quantity": (
            "number of units held; when no units are shown but Invested Value and "
            "Current Value are, set quantity = 1"
        ),
        "buyPrice": "average buy price or NAV; when quantity is 1 (estimated) use the Invested Value",
        "currentPrice": (
            "current market price or NAV; when quantity is 1 (estimated) use the Current Value"
        ),
        "totalInvested": "total amount invested; VERY IMPORTANT",
        "sipAmount": "monthly SIP amount, SIPs only",
        "sipDate": "day of month of the SIP (1-31), SIPs only",
    },
    "balance_update": {
        "balance": "number; the target balance the user wants to set",
    },
}

_KIND_TITLES: dict[str, str] = {
    "transaction": "Income or expense entries",
    "movie": "Movie watchlist entry",
    "note": "Quick note",
    "password": "Password entry",
    "investment": "Stock, mutual fund, SIP or EPF holding (from text or portfolio screenshots)",
    "balance_update": "Explicit balance declaration",
}

_IMAGE_HINTS: tuple[str, ...] = (
    "[Image of receipt] -> transaction: total amount, merchant as source, date, tags",
    (
        "[Image of portfolio summary] -> investment (MF, fund name, quantity=1, "
        "buyPrice=InvestedValue, currentPrice=CurrentValue, totalInvested=InvestedValue)"
    ),
    (
        '[Image of EPF/PF summary] -> investment (EPF, name="EPF Balance", quantity=1, '
        "totalInvested=grand total contribution (employee + employer), currentPrice=grand total)"
    ),
)


def _kind_section(index: int, data_type: str, today: str) -> list[str]:
    lines = [f"{index}. **{data_type}** - {_KIND_TITLES[data_type]}"]
    for name in RECORD_MODELS[data_type].prompt_fields:
        rule = FIELD_RULES[data_type][name].replace("{today}", today)
        lines.append(f"   - {name}: {rule}")
    return lines


def build_classification_prompt(today: dt.date) -> str:
    """Return the system instructions for single-record classification."""

    today_iso = today.isoformat()
    lines: list[str] = [
        "You are a helpful assistant that parses natural language input (and images) "
        "into structured data for a personal dashboard.",
        "",
        f"Today's date is {today_iso}.",
        "",
        "The user will describe transactions, movies, notes, passwords, investments or "
        "their current balance. Parse the input and return a JSON response.",
        "",
        "Supported data types:",
    ]
    for i, data_type in enumerate(RECORD_MODELS, start=1):
        lines.extend(_kind_section(i, data_type, today_iso))
    lines.extend(
        [
            "",
            "General rule for balance:",
            "   - If the user provides a transaction AND a resulting balance (e.g. "
            '"Salary 17k, now balance is 23k"), classify it as **transaction** and '
            'include a "forcedBalance" field in the data object with the target value.',
            "   - If the user only states a balance, classify it as **balance_update**.",
            "",
            "Return a JSON object with:",
            '{"dataType": "transaction" | "movie" | "note" | "password" | "investment" | '
            '"balance_update", "data": { ...parsed fields... }, '
            '"message": "Brief confirmation message"}',
            "",
            "If you can't understand the input, return:",
            '{"error": true, "message": "Explanation of what was unclear"}',
            "",
            "Examples:",
        ]
    )
    for ex in WORKED_EXAMPLES:
        lines.append(f'- "{ex.input_text}" -> {json.dumps(ex.reply(), ensure_ascii=False)}')
    for hint in _IMAGE_HINTS:
        lines.append(f"- {hint}")
    lines.extend(
        [
            "",
            "Always respond with valid JSON only, no markdown or explanations outside the JSON.",
        ]
    )
    return "\n".join(lines)


STATEMENT_PAGE_PROMPT = """Analyze this bank statement image.
Return a JSON object with:
1. "debug_summary": A string describing exactly what you see on the page (e.g., "A header with the bank logo, a summary table, but no list of individual transactions" or "A blank page").
2. "transactions": An array of extracted transactions.

The columns in the image are likely: DATE | TRANSACTION DETAILS | CHEQUE/REF | DEBIT | CREDIT | BALANCE.

For each row in the transaction table, extract:
- "date" (YYYY-MM-DD).
- "source" (Clean description).
- "amount" (Number).
- "type" ("income" or "expense").
- "tags" (1-2 keywords).

If there are NO transactions on this page (only summary/header), return an empty array for transactions, but explain why in "debug_summary".
Always respond with valid JSON only."""


def build_statement_prompt() -> str:
    """Return the fixed instruction used for every statement page."""

    return STATEMENT_PAGE_PROMPT


__all__ = [
    "FIELD_RULES",
    "STATEMENT_PAGE_PROMPT",
    "WORKED_EXAMPLES",
    "WorkedExample",
    "build_classification_prompt",
    "build_statement_prompt",
]
