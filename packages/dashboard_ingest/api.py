"""Public API: the ingestion orchestrator and its result envelopes.

:class:`IngestionOrchestrator` composes prompt building, the model gateway,
reply parsing, reconciliation and multi-page extraction. It is stateless: the
ledger is passed in per call and the returned records belong to the caller,
who decides how to persist them (see :class:`dashboard_ingest.storage.DashboardStore`).
"""

from __future__ import annotations

import datetime as dt
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from . import prompting
from .documents import check_image
from .errors import (
    ClassificationError,
    IngestionError,
    InvalidInputError,
    ParseError,
    ValidationError,
)
from .gateway import LanguageModelGateway
from .logging_setup import get_logger
from .parsing import parse_reply
from .reconcile import BalanceReconciler
from .schema import BalanceUpdateRecord, Record, TransactionRecord
from .statements import DocumentExtraction, StatementExtractor

_PARSE_FAILURE_MESSAGE = "Failed to parse AI response. Please try again."

_logger = get_logger("dashboard_ingest.api")


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    """A classified record plus the balance correction it triggered, if any.

    ``ledger`` is the reconciled ledger (newest first) for transactions with a
    forced balance and for balance updates; ``None`` otherwise.
    """

    record: Record
    message: str = ""
    correction: TransactionRecord | None = None
    ledger: list[TransactionRecord] | None = None

    @property
    def data_type(self) -> str:
        return self.record.data_type

    def to_envelope(self) -> dict[str, Any]:
        return {"dataType": self.data_type, "data": self.record.to_wire(), "message": self.message}


@dataclass(frozen=True, slots=True)
class IngestionFailure:
    message: str
    error: IngestionError | None = None

    def to_envelope(self) -> dict[str, Any]:
        return {"error": True, "message": self.message}


class IngestionOrchestrator:
    def __init__(
        self,
        gateway: LanguageModelGateway,
        *,
        reconciler: BalanceReconciler | None = None,
        extractor: StatementExtractor | None = None,
        today: Callable[[], dt.date] = dt.date.today,
    ) -> None:
        self._gateway = gateway
        self._today = today
        self.reconciler = reconciler or BalanceReconciler(today=today)
        self.extractor = extractor or StatementExtractor(gateway, today=today)

    def classify(
        self,
        text: str | None = None,
        image: bytes | str | None = None,
        *,
        ledger: Sequence[TransactionRecord] = (),
    ) -> ClassificationResult | IngestionFailure:
        """Classify free text and/or an image into one record.

        Raises :class:`InvalidInputError` (before any model call) when both
        inputs are empty; provider errors propagate. Parse, classification and
        validation failures are returned as :class:`IngestionFailure`.
        """

        has_text = isinstance(text, str) and bool(text.strip())
        if not has_text and not image:
            raise InvalidInputError("Please provide some text or an image")
        if image:
            check_image(image)

        today = self._today()
        system_prompt = prompting.build_classification_prompt(today)
        raw = self._gateway.send(system_prompt, text.strip() if has_text else None, image or None)

        try:
            parsed = parse_reply(raw, today=today)
        except ParseError as e:
            _logger.warning("classify:parse_failed detail=%s", e)
            return IngestionFailure(message=_PARSE_FAILURE_MESSAGE, error=e)
        except ClassificationError as e:
            _logger.info("classify:not_understood message=%r", e.message)
            return IngestionFailure(message=e.message, error=e)
        except ValidationError as e:
            _logger.warning("classify:invalid field=%s reason=%s", e.field, e.reason)
            return IngestionFailure(
                message=f"Could not read '{e.field}' from the response. Please try again.",
                error=e,
            )

        record = parsed.record
        _logger.info("classify:done data_type=%s", record.data_type)

        if isinstance(record, BalanceUpdateRecord):
            rec = self.reconciler.apply_balance_update(ledger, record)
            return ClassificationResult(
                record=record, message=parsed.message, correction=rec.correction, ledger=rec.ledger
            )
        if isinstance(record, TransactionRecord) and record.forced_balance is not None:
            rec = self.reconciler.apply_forced_balance(ledger, record)
            return ClassificationResult(
                record=record, message=parsed.message, correction=rec.correction, ledger=rec.ledger
            )
        return ClassificationResult(record=record, message=parsed.message)

    def extract_document(
        self,
        pages: Sequence[bytes | str],
        *,
        cancel: threading.Event | None = None,
    ) -> DocumentExtraction:
        """Extract transactions from statement page images (see :mod:`.statements`)."""

        return self.extractor.extract(pages, cancel=cancel)


__all__ = ["ClassificationResult", "IngestionFailure", "IngestionOrchestrator"]
