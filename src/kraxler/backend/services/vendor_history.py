"""Aggregate previously processed invoices per sender for anomaly checks.

The aggregator never talks to a database handle of its own; a store client is
injected by the caller so tests can substitute :class:`InMemoryInvoiceStore`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    and_,
    func,
    select,
)
from sqlalchemy.engine import Engine

from kraxler.backend.config.schema import DeductibleCategory

_LOGGER = logging.getLogger(__name__)

# Only committed records count as history; drafts and skipped mail do not.
QUALIFYING_STATUSES = frozenset({"extracted", "downloaded", "reviewed", "filed"})


@dataclass(frozen=True)
class VendorAggregate:
    """Raw aggregate returned by a store for one sender within one account."""

    invoice_count: int
    last_category: str | None
    total_amount_cents: int


@dataclass(frozen=True)
class VendorHistory:
    invoice_count: int = 0
    last_category: DeductibleCategory | None = None
    total_amount_cents: int = 0
    avg_amount_cents: int = 0

    @property
    def is_new_vendor(self) -> bool:
        return self.invoice_count == 0


NO_HISTORY = VendorHistory()


class InvoiceStore(Protocol):
    def vendor_aggregate(self, account: str, sender_domain: str) -> VendorAggregate | None:
        """Return the aggregate for ``sender_domain`` or ``None`` when no rows match."""


@dataclass(frozen=True)
class InvoiceRecord:
    account: str
    sender_domain: str | None
    date: str | None
    status: str
    deductible: str | None = None
    amount_cents: int | None = None


class InMemoryInvoiceStore:
    """Store backed by a list of records, used by tests and small scripts."""

    def __init__(self, records: Iterable[InvoiceRecord] = ()) -> None:
        self._records = list(records)

    def add(self, record: InvoiceRecord) -> None:
        self._records.append(record)

    def vendor_aggregate(self, account: str, sender_domain: str) -> VendorAggregate | None:
        matches = [
            record
            for record in self._records
            if record.account == account
            and record.sender_domain == sender_domain
            and record.status in QUALIFYING_STATUSES
        ]
        if not matches:
            return None

        latest = max(matches, key=lambda record: record.date or "")
        return VendorAggregate(
            invoice_count=len(matches),
            last_category=latest.deductible,
            total_amount_cents=sum(record.amount_cents or 0 for record in matches),
        )


metadata = MetaData()

emails_table = Table(
    "emails",
    metadata,
    Column("id", String, primary_key=True),
    Column("account", String, nullable=False),
    Column("sender_domain", String),
    Column("date", String),
    Column("status", String, nullable=False),
    Column("deductible", String),
    Column("invoice_amount_cents", Integer),
)


class SqlInvoiceStore:
    """Store reading the processed-invoice table through SQLAlchemy Core."""

    def __init__(self, engine: Engine, table: Table = emails_table) -> None:
        self._engine = engine
        self._table = table

    def vendor_aggregate(self, account: str, sender_domain: str) -> VendorAggregate | None:
        table = self._table
        condition = and_(
            table.c.account == account,
            table.c.sender_domain == sender_domain,
            table.c.status.in_(sorted(QUALIFYING_STATUSES)),
        )

        with self._engine.connect() as connection:
            count, total = connection.execute(
                select(
                    func.count(),
                    func.coalesce(func.sum(table.c.invoice_amount_cents), 0),
                ).where(condition)
            ).one()
            if not count:
                return None

            last_category = connection.execute(
                select(table.c.deductible)
                .where(condition)
                .order_by(table.c.date.desc())
                .limit(1)
            ).scalar()

        return VendorAggregate(
            invoice_count=int(count),
            last_category=last_category,
            total_amount_cents=int(total),
        )


def _coerce_category(value: str | None) -> DeductibleCategory | None:
    if value is None:
        return None
    try:
        return DeductibleCategory(value)
    except ValueError:
        _LOGGER.warning("Ignoring unknown stored category %r in vendor history", value)
        return None


def _average_cents(total: int, count: int) -> int:
    if count <= 0:
        return 0
    average = Decimal(total) / Decimal(count)
    return int(average.quantize(Decimal(1), rounding=ROUND_HALF_UP))


class VendorHistoryAggregator:
    def __init__(self, store: InvoiceStore) -> None:
        self._store = store

    def history_for(self, account: str, sender_domain: str | None) -> VendorHistory:
        """Return the history for ``sender_domain``; a missing sender yields no history."""

        if not sender_domain:
            return NO_HISTORY

        aggregate = self._store.vendor_aggregate(account, sender_domain)
        _LOGGER.debug(
            "Vendor history account=%s sender=%s aggregate=%s",
            account,
            sender_domain,
            aggregate,
        )
        if aggregate is None:
            return NO_HISTORY

        return VendorHistory(
            invoice_count=aggregate.invoice_count,
            last_category=_coerce_category(aggregate.last_category),
            total_amount_cents=aggregate.total_amount_cents,
            avg_amount_cents=_average_cents(
                aggregate.total_amount_cents, aggregate.invoice_count
            ),
        )


__all__ = [
    "InMemoryInvoiceStore",
    "InvoiceRecord",
    "InvoiceStore",
    "NO_HISTORY",
    "QUALIFYING_STATUSES",
    "SqlInvoiceStore",
    "VendorAggregate",
    "VendorHistory",
    "VendorHistoryAggregator",
    "emails_table",
    "metadata",
]
