"""Record shapes, closed vocabularies and the single validation dispatch point.

Six record kinds are supported, each a Pydantic model keyed by its wire
``dataType``:

- ``transaction`` → :class:`TransactionRecord`
- ``movie`` → :class:`MovieRecord`
- ``note`` → :class:`NoteRecord`
- ``password`` → :class:`PasswordRecord`
- ``investment`` → :class:`InvestmentRecord`
- ``balance_update`` → :class:`BalanceUpdateRecord`

Parsing is tolerant: numeric strings become numbers, negative
monetary values become their absolute value, unknown enum values are
normalized to ``"Other"`` (or the field's default) instead of being rejected.
Only structurally unusable data (a missing title, a non-numeric amount, an
unknown ``dataType``) is reported, through :class:`dashboard_ingest.errors.ValidationError`.

Python attributes are snake_case; wire names are camelCase. Use
:meth:`DashboardRecord.to_wire` to obtain the JSON shape stored by the
dashboard.
"""

from __future__ import annotations

import datetime as dt
import math
import re
import uuid
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, ClassVar, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .errors import ValidationError

# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------

TRANSACTION_TYPES: tuple[str, ...] = ("income", "expense")

TRANSACTION_TAGS: tuple[str, ...] = (
    "Salary",
    "Freelance",
    "Investment",
    "Gift",
    "Rent/Mortgage",
    "Utilities",
    "Family",
    "Retail",
    "loan",
    "Education",
    "Food",
    "Transport",
    "Entertainment",
    "Healthcare",
    "Other",
)

MOVIE_STATUSES: tuple[str, ...] = ("to-watch", "watching", "watched")

MOVIE_GENRES: tuple[str, ...] = (
    "Action",
    "Comedy",
    "Drama",
    "Horror",
    "Sci-Fi",
    "Romance",
    "Documentary",
    "Thriller",
    "Animation",
    "Other",
)

NOTE_CATEGORIES: tuple[str, ...] = ("Personal", "Work", "Ideas", "Tasks", "Other")

PASSWORD_CATEGORIES: tuple[str, ...] = ("Social", "Banking", "Email", "Shopping", "Work", "Other")

INVESTMENT_TYPES: tuple[str, ...] = ("STOCK", "MF", "SIP", "EPF")

MONTH_NAMES: tuple[str, ...] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

OTHER = "Other"
DEFAULT_SIP_DAY = 5

# ---------------------------------------------------------------------------
# Normalization helpers (shared by the models and the statement parser)
# ---------------------------------------------------------------------------

_CURRENCY_PREFIX = re.compile(r"^(?:rs\.?|inr|usd)\s*", re.IGNORECASE)
_NUMBER_NOISE = re.compile(r"[,\s₹$€£]")
_STATEMENT_DATE_FORMATS: tuple[str, ...] = (
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d %b %Y",
    "%d-%b-%Y",
    "%d %B %Y",
    "%b %d, %Y",
)


def coerce_number(value: Any) -> float | None:
    """Return ``value`` as a finite float, ``None`` when blank.

    Accepts ints/floats and numeric strings with thousands separators or a
    currency marker (``"17,000"``, ``"₹ 2,500.50"``, ``"Rs. 300"``).
    """

    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("expected a number, got a boolean")
    if isinstance(value, int | float):
        num = float(value)
    elif isinstance(value, str):
        s = _CURRENCY_PREFIX.sub("", value.strip())
        s = _NUMBER_NOISE.sub("", s)
        if not s:
            return None
        try:
            num = float(s)
        except ValueError as e:
            raise ValueError(f"not a number: {value!r}") from e
    else:
        raise ValueError(f"expected a number, got {type(value).__name__}")
    if not math.isfinite(num):
        raise ValueError(f"not a finite number: {value!r}")
    return num


def coerce_money(value: Any) -> float | None:
    """Like :func:`coerce_number` but clamps negatives to their absolute value."""

    num = coerce_number(value)
    return abs(num) if num is not None else None


def normalize_choice(value: Any, choices: Sequence[str], default: str) -> str:
    """Case-insensitive lookup of ``value`` in ``choices``; ``default`` otherwise."""

    if not isinstance(value, str):
        return default
    key = value.strip().casefold()
    for choice in choices:
        if choice.casefold() == key:
            return choice
    return default


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, Iterable) and not isinstance(value, Mapping):
        items = value
    else:
        items = [value]
    out: list[str] = []
    for item in items:
        if item is None:
            continue
        s = str(item).strip()
        if s:
            out.append(s)
    return out


_EXPENSE_WORDS = frozenset({"expense", "debit", "withdrawal"})


def normalize_transaction_type(value: Any) -> str:
    """Map ``value`` onto ``"income"``/``"expense"``.

    Only expense words (``expense``, ``debit``, ``withdrawal``) count as an
    expense; anything else, including unknown labels such as ``"refund"``, is
    income.
    """

    if isinstance(value, str) and value.strip().casefold() in _EXPENSE_WORDS:
        return "expense"
    return "income"


def normalize_tags(value: Any) -> list[str]:
    """Map tags onto :data:`TRANSACTION_TAGS`, unknown ones to ``"Other"``.

    Order is preserved and duplicates are removed.
    """

    tags = [normalize_choice(t, TRANSACTION_TAGS, OTHER) for t in _as_str_list(value)]
    return list(dict.fromkeys(tags))


def coerce_date(value: Any, today: dt.date) -> dt.date:
    """Parse a calendar date; blank values fall back to ``today``."""

    if value is None:
        return today
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"expected an ISO date string, got {type(value).__name__}")
    s = value.strip()
    if not s:
        return today
    try:
        return dt.date.fromisoformat(s[:10])
    except ValueError:
        pass
    try:
        return dt.datetime.fromisoformat(s).date()
    except ValueError:
        pass
    for fmt in _STATEMENT_DATE_FORMATS:
        try:
            return dt.datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"not a calendar date: {value!r}")


def _today_from(info: ValidationInfo) -> dt.date:
    ctx = info.context if isinstance(info.context, Mapping) else None
    today = ctx.get("today") if ctx else None
    return today if isinstance(today, dt.date) else dt.date.today()


def _as_text(value: Any) -> Any:
    # Models sometimes emit numeric passwords/usernames; keep them as text.
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return value


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Record models
# ---------------------------------------------------------------------------


class DashboardRecord(BaseModel):
    """Common configuration for every record kind."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    data_type: ClassVar[str]
    # Wire names the language model is asked to fill in (locally generated
    # fields such as ``id`` are not listed).
    prompt_fields: ClassVar[tuple[str, ...]]

    def to_wire(self) -> dict[str, Any]:
        """Return the camelCase JSON shape, omitting unset optional fields."""

        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class TransactionRecord(DashboardRecord):
    """An income or expense entry in the ledger.

    ``forced_balance`` carries a balance the user stated alongside the
    transaction ("Salary 17k, balance now 23k"); it is consumed by the
    reconciler and never persisted (see :meth:`ledger_entry`).
    """

    data_type: ClassVar[str] = "transaction"
    prompt_fields: ClassVar[tuple[str, ...]] = (
        "type",
        "source",
        "amount",
        "tags",
        "date",
        "forcedBalance",
    )

    id: str = Field(default_factory=_new_id)
    type: Literal["income", "expense"]
    source: str = Field(min_length=1)
    amount: float = Field(ge=0)
    tags: list[str] = Field(default_factory=list)
    date: dt.date = Field(default=None, validate_default=True)
    forced_balance: float | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return normalize_transaction_type(v)
        return v

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> Any:
        return coerce_money(v)

    @field_validator("forced_balance", mode="before")
    @classmethod
    def _forced_balance(cls, v: Any) -> float | None:
        return coerce_number(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v: Any) -> list[str]:
        return normalize_tags(v)

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, v: Any, info: ValidationInfo) -> dt.date:
        return coerce_date(v, _today_from(info))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def month(self) -> str:
        return MONTH_NAMES[self.date.month - 1]

    @property
    def signed_amount(self) -> float:
        return self.amount if self.type == "income" else -self.amount

    def ledger_entry(self) -> TransactionRecord:
        """Return a copy suitable for the ledger (no ``forced_balance``)."""

        return self.model_copy(update={"forced_balance": None})


class MovieRecord(DashboardRecord):
    data_type: ClassVar[str] = "movie"
    prompt_fields: ClassVar[tuple[str, ...]] = (
        "title",
        "status",
        "genre",
        "rating",
        "notes",
        "cast",
    )

    id: str = Field(default_factory=_new_id)
    title: str = Field(min_length=1)
    status: Literal["to-watch", "watching", "watched"] = "to-watch"
    genre: str | None = None
    rating: int | None = None
    notes: str | None = None
    cast: list[str] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v: Any) -> str:
        if isinstance(v, str):
            v = re.sub(r"[\s_]+", "-", v.strip())
        return normalize_choice(v, MOVIE_STATUSES, "to-watch")

    @field_validator("genre", mode="before")
    @classmethod
    def _genre(cls, v: Any) -> str | None:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return normalize_choice(v, MOVIE_GENRES, OTHER)

    @field_validator("rating", mode="before")
    @classmethod
    def _rating(cls, v: Any) -> int | None:
        num = coerce_number(v)
        if num is None:
            return None
        return int(min(5, max(1, round(num))))

    @field_validator("notes", mode="before")
    @classmethod
    def _notes(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("cast", mode="before")
    @classmethod
    def _cast(cls, v: Any) -> list[str]:
        return _as_str_list(v)


class NoteRecord(DashboardRecord):
    data_type: ClassVar[str] = "note"
    prompt_fields: ClassVar[tuple[str, ...]] = ("title", "content", "category")

    id: str = Field(default_factory=_new_id)
    title: str = Field(min_length=1)
    content: str = ""
    category: str = OTHER

    @field_validator("content", mode="before")
    @classmethod
    def _content(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, v: Any) -> str:
        return normalize_choice(v, NOTE_CATEGORIES, OTHER)


class PasswordRecord(DashboardRecord):
    data_type: ClassVar[str] = "password"
    prompt_fields: ClassVar[tuple[str, ...]] = ("site", "username", "password", "category")

    id: str = Field(default_factory=_new_id)
    site: str = Field(min_length=1)
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    category: str = OTHER
    notes: str | None = None

    @field_validator("site", "username", "password", mode="before")
    @classmethod
    def _text(cls, v: Any) -> Any:
        return _as_text(v)

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, v: Any) -> str:
        return normalize_choice(v, PASSWORD_CATEGORIES, OTHER)


class InvestmentRecord(DashboardRecord):
    """A stock, mutual fund, SIP or EPF holding.

    Portfolio screenshots often show only invested/current totals. In that
    case the quantity is resolved as 1 and the prices carry the totals.
    """

    data_type: ClassVar[str] = "investment"
    prompt_fields: ClassVar[tuple[str, ...]] = (
        "type",
        "symbol",
        "name",
        "quantity",
        "buyPrice",
        "currentPrice",
        "totalInvested",
        "sipAmount",
        "sipDate",
    )

    id: str = Field(default_factory=_new_id)
    instrument_type: Literal["STOCK", "MF", "SIP", "EPF"] = Field(default="MF", alias="type")
    symbol: str = "UNKNOWN"
    name: str = ""
    quantity: float = Field(default=0.0, ge=0)
    buy_price: float = Field(default=0.0, ge=0)
    current_price: float = Field(default=0.0, ge=0)
    total_invested: float | None = None
    sip_amount: float | None = None
    sip_date: int | None = None

    @field_validator("instrument_type", mode="before")
    @classmethod
    def _instrument_type(cls, v: Any) -> str:
        return normalize_choice(v, INVESTMENT_TYPES, "MF")

    @field_validator("symbol", mode="before")
    @classmethod
    def _symbol(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "UNKNOWN"
        return _as_text(v)

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v: Any) -> Any:
        return "" if v is None else _as_text(v)

    @field_validator("quantity", "buy_price", "current_price", mode="before")
    @classmethod
    def _amounts(cls, v: Any) -> float:
        return coerce_money(v) or 0.0

    @field_validator("total_invested", "sip_amount", mode="before")
    @classmethod
    def _optional_amounts(cls, v: Any) -> float | None:
        return coerce_money(v) or None

    @field_validator("sip_date", mode="before")
    @classmethod
    def _sip_date(cls, v: Any) -> int | None:
        num = coerce_number(v)
        if num is None:
            return None
        day = int(round(num))
        return day if 1 <= day <= 31 else None

    @model_validator(mode="after")
    def _resolve_defaults(self) -> InvestmentRecord:
        if not self.name:
            self.name = self.symbol
        if self.quantity == 0:
            self.quantity = 1.0
            if self.buy_price == 0 and self.total_invested:
                self.buy_price = self.total_invested
        if self.current_price == 0:
            self.current_price = self.buy_price
        if self.instrument_type == "SIP" and self.sip_date is None:
            self.sip_date = DEFAULT_SIP_DAY
        return self


class BalanceUpdateRecord(DashboardRecord):
    """An explicit "my balance is now X" declaration."""

    data_type: ClassVar[str] = "balance_update"
    prompt_fields: ClassVar[tuple[str, ...]] = ("balance",)

    target_balance: float = Field(alias="balance")

    @field_validator("target_balance", mode="before")
    @classmethod
    def _target(cls, v: Any) -> Any:
        return coerce_number(v)


Record = (
    TransactionRecord
    | MovieRecord
    | NoteRecord
    | PasswordRecord
    | InvestmentRecord
    | BalanceUpdateRecord
)

RECORD_MODELS: dict[str, type[DashboardRecord]] = {
    model.data_type: model
    for model in (
        TransactionRecord,
        MovieRecord,
        NoteRecord,
        PasswordRecord,
        InvestmentRecord,
        BalanceUpdateRecord,
    )
}

DATA_TYPES: tuple[str, ...] = tuple(RECORD_MODELS)


def _first_error_field(exc: PydanticValidationError, fallback: str) -> tuple[str, str]:
    errors = exc.errors()
    if not errors:
        return fallback, str(exc)
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()))
    return loc or fallback, str(first.get("msg", "invalid value"))


def validate_record(
    data_type: Any,
    data: Any,
    *,
    today: dt.date | None = None,
) -> Record:
    """Validate ``data`` as the record kind named by ``data_type``.

    This is the single dispatch point over :data:`RECORD_MODELS`. Raises
    :class:`~dashboard_ingest.errors.ValidationError` naming the first
    offending wire field; ``dataType`` and ``data`` are reported for an unknown
    kind or a non-object payload respectively.
    """

    model = None
    if isinstance(data_type, str):
        model = RECORD_MODELS.get(data_type.strip().lower())
    if model is None:
        raise ValidationError("dataType", f"unsupported record type {data_type!r}")
    if not isinstance(data, Mapping):
        raise ValidationError("data", "expected an object")
    try:
        record = model.model_validate(dict(data), context={"today": today or dt.date.today()})
    except PydanticValidationError as e:
        field, msg = _first_error_field(e, model.data_type)
        raise ValidationError(field, msg) from e
    return record  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Statement rows
# ---------------------------------------------------------------------------


class ExtractedTransaction(BaseModel):
    """One transaction row read from a statement page, pending user review.

    Tags are free keywords as read from the statement; :meth:`to_record`
    normalizes them onto the closed vocabulary. A date that cannot be read is
    replaced by today and the original text is kept in ``raw_date`` so the row
    can be flagged during review.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    date: dt.date = Field(default=None, validate_default=True)
    source: str = "Unknown"
    amount: float = 0.0
    type: Literal["income", "expense"] = "income"
    tags: list[str] = Field(default_factory=list)
    raw_date: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _keep_unreadable_date(cls, data: Any, info: ValidationInfo) -> Any:
        if not isinstance(data, Mapping):
            return data
        value = data.get("date")
        try:
            coerce_date(value, _today_from(info))
        except ValueError:
            return {**data, "date": None, "raw_date": str(value)}
        return data

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, v: Any, info: ValidationInfo) -> dt.date:
        return coerce_date(v, _today_from(info))

    @field_validator("source", mode="before")
    @classmethod
    def _source(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "Unknown"
        return _as_text(v)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> float:
        try:
            return coerce_money(v) or 0.0
        except ValueError:
            return 0.0

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, v: Any) -> str:
        return normalize_transaction_type(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v: Any) -> list[str]:
        return _as_str_list(v)

    def to_record(self) -> TransactionRecord:
        return TransactionRecord.model_validate(
            {
                "type": self.type,
                "source": self.source,
                "amount": self.amount,
                "tags": self.tags,
                "date": self.date,
            }
        )


__all__ = [
    "DATA_TYPES",
    "INVESTMENT_TYPES",
    "MOVIE_GENRES",
    "MOVIE_STATUSES",
    "NOTE_CATEGORIES",
    "PASSWORD_CATEGORIES",
    "RECORD_MODELS",
    "TRANSACTION_TAGS",
    "TRANSACTION_TYPES",
    "BalanceUpdateRecord",
    "DashboardRecord",
    "ExtractedTransaction",
    "InvestmentRecord",
    "MovieRecord",
    "NoteRecord",
    "PasswordRecord",
    "Record",
    "TransactionRecord",
    "coerce_date",
    "coerce_money",
    "coerce_number",
    "normalize_choice",
    "normalize_tags",
    "normalize_transaction_type",
    "validate_record",
]
