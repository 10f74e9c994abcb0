"""Test configuration utilities and shared fixtures."""

import sys
from pathlib import Path

# Ensure the ``src`` directory is importable when tests are executed without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest  # noqa: E402
from flask import Flask  # noqa: E402
from flask.testing import FlaskClient  # noqa: E402

from kraxler.backend.app import create_app  # noqa: E402
from kraxler.backend.config.loader import clear_config_cache, parse_config  # noqa: E402
from kraxler.backend.config.schema import KraxlerConfig  # noqa: E402
from kraxler.backend.services.vendor_history import (  # noqa: E402
    InMemoryInvoiceStore,
    InvoiceRecord,
)


def make_config(**overrides) -> KraxlerConfig:
    """Build a configuration from camelCase keys like an authored file."""

    data = {
        "version": 2,
        "jurisdiction": "AT",
        "situations": [
            {
                "id": "1",
                "from": "2024-01-01",
                "to": "2024-06-30",
                "telecomBusinessPercent": 50,
                "internetBusinessPercent": 40,
            },
            {
                "id": "2",
                "from": "2024-07-01",
                "hasCompanyCar": True,
                "companyCarType": "electric",
                "carBusinessPercent": 80,
                "telecomBusinessPercent": 60,
                "internetBusinessPercent": 60,
            },
        ],
        "incomeSources": [
            {
                "id": "freelance_dev",
                "name": "Freelance development",
                "validFrom": "2024-01-01",
            },
            {
                "id": "rental_apt_1",
                "name": "Apartment rental",
                "category": "vermietung",
                "validFrom": "2024-04-01",
                "validTo": "2024-09-30",
                "telecomPercentOverride": 0,
            },
        ],
        "allocationRules": [],
        "categoryDefaults": {"full": "freelance_dev"},
    }
    data.update(overrides)
    return parse_config(data)


@pytest.fixture()
def config() -> KraxlerConfig:
    return make_config()


@pytest.fixture()
def invoice_store() -> InMemoryInvoiceStore:
    """Three committed invoices from one vendor plus noise that must be ignored."""

    return InMemoryInvoiceStore(
        [
            InvoiceRecord("me@example.com", "jetbrains.com", "2024-01-10", "filed", "full", 8900),
            InvoiceRecord("me@example.com", "jetbrains.com", "2024-02-10", "reviewed", "full", 8900),
            InvoiceRecord("me@example.com", "jetbrains.com", "2024-03-10", "extracted", "full", 9001),
            InvoiceRecord("me@example.com", "jetbrains.com", "2024-04-10", "pending", "none", 50000),
            InvoiceRecord("other@example.com", "jetbrains.com", "2024-05-10", "filed", "none", 100),
        ]
    )


@pytest.fixture(autouse=True)
def _reset_config_cache():
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture()
def app(config: KraxlerConfig, invoice_store: InMemoryInvoiceStore) -> Flask:
    """Return a configured Flask application for integration tests."""

    application = create_app(config=config, store=invoice_store)
    application.config.update(TESTING=True)
    return application


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Provide a test client bound to the configured Flask app."""

    return app.test_client()


@pytest.fixture()
def build_config():
    """Expose :func:`make_config` to tests that need variations."""

    return make_config
