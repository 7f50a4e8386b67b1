"""Forced-balance reconciliation.

A user-declared balance is made true by adding at most one synthetic
"Balance Correction" transaction for the difference between the declared and
the computed ledger balance. Both entry points (a plain balance update, and a
new transaction that carries a ``forcedBalance``) go through
:meth:`BalanceReconciler.reconcile`; the second one commits the new
transaction before measuring the difference.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from .logging_setup import get_logger
from .schema import OTHER, BalanceUpdateRecord, TransactionRecord

CORRECTION_SOURCE = "Balance Correction"
DEFAULT_TOLERANCE = 1.0

_logger = get_logger("dashboard_ingest.reconcile")


@dataclass(frozen=True, slots=True)
class Reconciliation:
    """The ledger after reconciliation (newest first) and the correction, if any."""

    ledger: list[TransactionRecord]
    correction: TransactionRecord | None = None


def ledger_balance(ledger: Iterable[TransactionRecord]) -> float:
    """Sum of income amounts minus sum of expense amounts."""

    return sum((tx.signed_amount for tx in ledger), 0.0)


class BalanceReconciler:
    def __init__(
        self,
        *,
        tolerance: float = DEFAULT_TOLERANCE,
        today: Callable[[], dt.date] = dt.date.today,
    ) -> None:
        if tolerance < 0:
            raise ValueError("tolerance must be non-negative")
        self.tolerance = tolerance
        self._today = today

    def ledger_balance(self, ledger: Iterable[TransactionRecord]) -> float:
        return ledger_balance(ledger)

    def correction_for(
        self, current_balance: float, target_balance: float
    ) -> TransactionRecord | None:
        difference = target_balance - current_balance
        if difference == 0 or abs(difference) < self.tolerance:
            return None
        return TransactionRecord(
            type="income" if difference > 0 else "expense",
            source=CORRECTION_SOURCE,
            amount=abs(difference),
            tags=[OTHER],
            date=self._today(),
        )

    def reconcile(
        self,
        ledger: Sequence[TransactionRecord],
        target_balance: float,
        *,
        pending: TransactionRecord | None = None,
    ) -> Reconciliation:
        """Return a new ledger whose balance matches ``target_balance``.

        When ``pending`` is given it is committed first (prepended, without
        its ``forced_balance``) and the balance is measured including it. The
        correction, when needed, is prepended in front of everything else.
        Records in ``ledger`` are never mutated.
        """

        updated: list[TransactionRecord] = list(ledger)
        if pending is not None:
            updated.insert(0, pending.ledger_entry())

        current = ledger_balance(updated)
        correction = self.correction_for(current, target_balance)
        if correction is None:
            _logger.info(
                "reconcile:balanced current=%.2f target=%.2f", current, target_balance
            )
            return Reconciliation(ledger=updated, correction=None)

        _logger.info(
            "reconcile:correction current=%.2f target=%.2f type=%s amount=%.2f",
            current,
            target_balance,
            correction.type,
            correction.amount,
        )
        return Reconciliation(ledger=[correction, *updated], correction=correction)

    def apply_balance_update(
        self, ledger: Sequence[TransactionRecord], update: BalanceUpdateRecord
    ) -> Reconciliation:
        return self.reconcile(ledger, update.target_balance)

    def apply_forced_balance(
        self, ledger: Sequence[TransactionRecord], transaction: TransactionRecord
    ) -> Reconciliation:
        """Commit ``transaction`` and honour its ``forced_balance`` when set."""

        if transaction.forced_balance is None:
            return Reconciliation(ledger=[transaction.ledger_entry(), *ledger])
        return self.reconcile(ledger, transaction.forced_balance, pending=transaction)


__all__ = [
    "CORRECTION_SOURCE",
    "BalanceReconciler",
    "Reconciliation",
    "ledger_balance",
]
