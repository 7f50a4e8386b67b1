"""Multi-page statement extraction.

Pages are sent to the model strictly one at a time with a fixed pause before
every call after the first; the provider's rate limit depends on it. A page
that fails (provider error, unusable image or unparseable reply) contributes no transactions
and the remaining pages are still processed. The merged rows are sorted by
date, newest first, keeping page order for equal dates.
"""

from __future__ import annotations

import datetime as dt
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from . import prompting
from .documents import check_image
from .errors import InvalidInputError, ParseError, ProviderError
from .gateway import LanguageModelGateway
from .logging_setup import get_logger
from .parsing import parse_statement_page
from .schema import ExtractedTransaction

DEFAULT_PAGE_DELAY_MS = 3000

_logger = get_logger("dashboard_ingest.statements")


@dataclass(frozen=True, slots=True)
class PageOutcome:
    page_index: int
    debug_summary: str
    transaction_count: int
    error: str | None = None


@dataclass(frozen=True, slots=True)
class DocumentExtraction:
    """Merged result of a statement extraction run.

    ``cancelled`` is True when the run stopped early; ``pages`` then only
    covers the pages that were attempted.
    """

    transactions: list[ExtractedTransaction] = field(default_factory=list)
    pages: list[PageOutcome] = field(default_factory=list)
    cancelled: bool = False


def merge_page_transactions(
    pages: Sequence[Sequence[ExtractedTransaction]],
) -> list[ExtractedTransaction]:
    merged = [tx for page in pages for tx in page]
    # sorted() is stable with reverse=True, so equal dates keep page order.
    return sorted(merged, key=lambda tx: tx.date, reverse=True)


class StatementExtractor:
    """Extract transactions from page images, one paced model call per page."""

    def __init__(
        self,
        gateway: LanguageModelGateway,
        *,
        page_delay_ms: int = DEFAULT_PAGE_DELAY_MS,
        page_timeout: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        today: Callable[[], dt.date] = dt.date.today,
    ) -> None:
        if page_delay_ms < 0:
            raise ValueError("page_delay_ms must be non-negative")
        self._gateway = gateway
        self._delay_s = page_delay_ms / 1000.0
        self._page_timeout = page_timeout
        self._sleep = sleep
        self._today = today

    def _pause(self, cancel: threading.Event | None) -> bool:
        """Wait the configured delay; return True when cancelled meanwhile."""

        if cancel is None:
            self._sleep(self._delay_s)
            return False
        return cancel.wait(self._delay_s)

    def _extract_page(self, page_index: int, page: bytes | str) -> tuple[PageOutcome, list]:
        t0 = time.perf_counter()
        try:
            check_image(page)
            raw = self._gateway.send(
                prompting.build_statement_prompt(),
                None,
                page,
                timeout=self._page_timeout,
            )
            parsed = parse_statement_page(raw, today=self._today())
        except (ProviderError, ParseError, InvalidInputError) as e:
            _logger.error(
                "statement:page_failed page_index=%d error=%s detail=%s",
                page_index,
                e.__class__.__name__,
                e,
            )
            outcome = PageOutcome(
                page_index=page_index,
                debug_summary=f"page could not be read: {e}",
                transaction_count=0,
                error=e.__class__.__name__,
            )
            return outcome, []

        _logger.info(
            "statement:page_done page_index=%d transactions=%d latency_ms=%.2f summary=%r",
            page_index,
            len(parsed.transactions),
            (time.perf_counter() - t0) * 1000.0,
            parsed.debug_summary,
        )
        outcome = PageOutcome(
            page_index=page_index,
            debug_summary=parsed.debug_summary,
            transaction_count=len(parsed.transactions),
        )
        return outcome, parsed.transactions

    def extract(
        self,
        pages: Sequence[bytes | str],
        *,
        cancel: threading.Event | None = None,
    ) -> DocumentExtraction:
        outcomes: list[PageOutcome] = []
        per_page: list[list[ExtractedTransaction]] = []
        cancelled = False

        for page_index, page in enumerate(pages):
            if cancel is not None and cancel.is_set():
                cancelled = True
                break
            if page_index > 0 and self._pause(cancel):
                cancelled = True
                break
            outcome, rows = self._extract_page(page_index, page)
            outcomes.append(outcome)
            per_page.append(rows)

        merged = merge_page_transactions(per_page)
        _logger.info(
            "statement:done pages=%d attempted=%d transactions=%d cancelled=%s",
            len(pages),
            len(outcomes),
            len(merged),
            cancelled,
        )
        return DocumentExtraction(transactions=merged, pages=outcomes, cancelled=cancelled)


__all__ = [
    "DEFAULT_PAGE_DELAY_MS",
    "DocumentExtraction",
    "PageOutcome",
    "StatementExtractor",
    "merge_page_transactions",
]
