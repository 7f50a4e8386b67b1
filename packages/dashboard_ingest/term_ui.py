"""Terminal review of extracted statement rows (prompt_toolkit-based).

Kept separate from the extraction logic so it can be tested in isolation with
a pipe input session.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.validation import ValidationError, Validator

from .schema import ExtractedTransaction

QUIT_WORDS = frozenset({"q", "quit", "none"})


def parse_drop_selection(text: str, count: int) -> set[int]:
    """Parse ``"2, 4-6"`` into 0-based row positions.

    Raises ``ValueError`` for malformed tokens or numbers outside ``1..count``.
    """

    drop: set[int] = set()
    for token in text.replace(" ", "").split(","):
        if not token:
            continue
        if "-" in token:
            lo_s, hi_s = token.split("-", 1)
            lo, hi = int(lo_s), int(hi_s)
            if lo > hi:
                raise ValueError(f"invalid range: {token}")
        else:
            lo = hi = int(token)
        if lo < 1 or hi > count:
            raise ValueError(f"row out of range 1-{count}: {token}")
        drop.update(range(lo - 1, hi))
    return drop


class _SelectionValidator(Validator):
    def __init__(self, count: int) -> None:
        self._count = count

    def validate(self, document) -> None:
        text = document.text.strip().lower()
        if not text or text in QUIT_WORDS:
            return
        try:
            parse_drop_selection(text, self._count)
        except ValueError as e:
            raise ValidationError(message=str(e), cursor_position=len(document.text)) from e


def format_row(pos: int, row: ExtractedTransaction) -> str:
    sign = "+" if row.type == "income" else "-"
    tags = ", ".join(row.tags)
    line = f"{pos:>3}. {row.date.isoformat()}  {sign}{row.amount:>12.2f}  {row.source}  [{tags}]"
    if row.raw_date is not None:
        line += f"  (date unreadable: {row.raw_date!r})"
    return line


def review_extracted(
    rows: Sequence[ExtractedTransaction],
    *,
    session: PromptSession | None = None,
    echo: Callable[[str], None] = print,
) -> list[ExtractedTransaction]:
    """Show ``rows`` and let the user keep all, drop some, or discard everything.

    Enter keeps every row; ``2,4-6`` drops those rows; ``q`` discards all.
    """

    if not rows:
        return []
    for pos, row in enumerate(rows, start=1):
        echo(format_row(pos, row))

    sess = session or PromptSession()
    answer = sess.prompt(
        "Rows to drop (e.g. 2,4-6), Enter to keep all, q to discard: ",
        validator=_SelectionValidator(len(rows)),
        validate_while_typing=False,
    )
    text = answer.strip().lower()
    if text in QUIT_WORDS:
        return []
    if not text:
        return list(rows)
    drop = parse_drop_selection(text, len(rows))
    return [row for i, row in enumerate(rows) if i not in drop]


__all__ = ["format_row", "parse_drop_selection", "review_extracted"]
