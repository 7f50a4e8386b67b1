"""Public interface for the ``dashboard_ingest`` package.

This module exposes the orchestrator, the record models and the typed errors
as the stable import surface. There is no runtime logic here, only symbol
re-exports.
"""

from .api import ClassificationResult, IngestionFailure, IngestionOrchestrator
from .errors import (
    ClassificationError,
    IngestionError,
    InvalidInputError,
    ParseError,
    ProviderError,
    ProviderQuotaError,
    ValidationError,
)
from .gateway import LanguageModelGateway, OpenAIChatGateway
from .reconcile import BalanceReconciler, Reconciliation
from .schema import (
    BalanceUpdateRecord,
    ExtractedTransaction,
    InvestmentRecord,
    MovieRecord,
    NoteRecord,
    PasswordRecord,
    Record,
    TransactionRecord,
    validate_record,
)
from .settings import IngestSettings
from .statements import DocumentExtraction, PageOutcome, StatementExtractor
from .storage import DashboardStore, InMemoryKeyValueStore, SqlKeyValueStore

__all__ = [
    # API
    "IngestionOrchestrator",
    "ClassificationResult",
    "IngestionFailure",
    "StatementExtractor",
    "DocumentExtraction",
    "PageOutcome",
    "BalanceReconciler",
    "Reconciliation",
    "LanguageModelGateway",
    "OpenAIChatGateway",
    "IngestSettings",
    # Storage
    "DashboardStore",
    "InMemoryKeyValueStore",
    "SqlKeyValueStore",
    # Models / types
    "Record",
    "TransactionRecord",
    "MovieRecord",
    "NoteRecord",
    "PasswordRecord",
    "InvestmentRecord",
    "BalanceUpdateRecord",
    "ExtractedTransaction",
    "validate_record",
    # Errors
    "IngestionError",
    "InvalidInputError",
    "ProviderError",
    "ProviderQuotaError",
    "ParseError",
    "ClassificationError",
    "ValidationError",
]
