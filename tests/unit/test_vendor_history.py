"""Unit coverage for vendor history aggregation."""

from __future__ import annotations

import logging

import pytest
from sqlalchemy import create_engine, insert

from kraxler.backend.config.schema import DeductibleCategory
from kraxler.backend.services.vendor_history import (
    NO_HISTORY,
    InMemoryInvoiceStore,
    InvoiceRecord,
    SqlInvoiceStore,
    VendorHistoryAggregator,
    emails_table,
    metadata,
)

ACCOUNT = "me@example.com"


def test_history_counts_only_qualifying_records(invoice_store: InMemoryInvoiceStore) -> None:
    history = VendorHistoryAggregator(invoice_store).history_for(ACCOUNT, "jetbrains.com")

    assert history.invoice_count == 3
    assert history.total_amount_cents == 26801
    assert history.avg_amount_cents == 8934
    assert history.last_category is DeductibleCategory.FULL
    assert not history.is_new_vendor


def test_unknown_vendor_has_no_history(invoice_store: InMemoryInvoiceStore) -> None:
    history = VendorHistoryAggregator(invoice_store).history_for(ACCOUNT, "unknown.example")

    assert history == NO_HISTORY
    assert history.is_new_vendor
    assert history.last_category is None


@pytest.mark.parametrize("sender", [None, ""])
def test_missing_sender_short_circuits(sender) -> None:
    class ExplodingStore:
        def vendor_aggregate(self, account, sender_domain):
            raise AssertionError("store must not be queried")

    assert VendorHistoryAggregator(ExplodingStore()).history_for(ACCOUNT, sender) == NO_HISTORY


def test_history_is_scoped_to_the_account(invoice_store: InMemoryInvoiceStore) -> None:
    history = VendorHistoryAggregator(invoice_store).history_for("other@example.com", "jetbrains.com")

    assert history.invoice_count == 1
    assert history.last_category is DeductibleCategory.NONE


def test_average_rounds_half_up() -> None:
    store = InMemoryInvoiceStore(
        [
            InvoiceRecord(ACCOUNT, "shop.example", "2024-01-01", "filed", "full", 1),
            InvoiceRecord(ACCOUNT, "shop.example", "2024-01-02", "filed", "full", 2),
        ]
    )

    assert VendorHistoryAggregator(store).history_for(ACCOUNT, "shop.example").avg_amount_cents == 2


def test_missing_amounts_count_as_zero() -> None:
    store = InMemoryInvoiceStore(
        [
            InvoiceRecord(ACCOUNT, "shop.example", "2024-01-01", "downloaded", "meals"),
            InvoiceRecord(ACCOUNT, "shop.example", "2024-01-02", "downloaded", "meals", 1000),
        ]
    )

    history = VendorHistoryAggregator(store).history_for(ACCOUNT, "shop.example")

    assert history.invoice_count == 2
    assert history.total_amount_cents == 1000
    assert history.avg_amount_cents == 500


def test_unknown_stored_category_is_dropped(caplog: pytest.LogCaptureFixture) -> None:
    store = InMemoryInvoiceStore(
        [InvoiceRecord(ACCOUNT, "shop.example", "2024-01-01", "filed", "mystery", 100)]
    )

    with caplog.at_level(logging.WARNING):
        history = VendorHistoryAggregator(store).history_for(ACCOUNT, "shop.example")

    assert history.invoice_count == 1
    assert history.last_category is None
    assert "mystery" in caplog.text


@pytest.fixture()
def sql_store() -> SqlInvoiceStore:
    engine = create_engine("sqlite+pysqlite:///:memory:")
    metadata.create_all(engine)
    rows = [
        ("1", ACCOUNT, "aws.amazon.com", "2024-01-03", "filed", "full", 12000),
        ("2", ACCOUNT, "aws.amazon.com", "2024-02-03", "filed", "full", 13000),
        ("3", ACCOUNT, "aws.amazon.com", "2024-03-03", "reviewed", "partial", None),
        ("4", ACCOUNT, "aws.amazon.com", "2024-04-03", "skipped", "none", 99999),
        ("5", "other@example.com", "aws.amazon.com", "2024-05-03", "filed", "none", 1),
    ]
    with engine.begin() as connection:
        connection.execute(
            insert(emails_table),
            [
                {
                    "id": row_id,
                    "account": account,
                    "sender_domain": sender,
                    "date": day,
                    "status": status,
                    "deductible": deductible,
                    "invoice_amount_cents": amount,
                }
                for row_id, account, sender, day, status, deductible, amount in rows
            ],
        )
    return SqlInvoiceStore(engine)


def test_sql_store_aggregates_committed_invoices(sql_store: SqlInvoiceStore) -> None:
    history = VendorHistoryAggregator(sql_store).history_for(ACCOUNT, "aws.amazon.com")

    assert history.invoice_count == 3
    assert history.total_amount_cents == 25000
    assert history.avg_amount_cents == 8333
    assert history.last_category is DeductibleCategory.PARTIAL


def test_sql_store_returns_no_history_for_unknown_vendor(sql_store: SqlInvoiceStore) -> None:
    assert VendorHistoryAggregator(sql_store).history_for(ACCOUNT, "nobody.example") == NO_HISTORY
