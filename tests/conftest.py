import os


def _set_test_env() -> None:
    defaults = {
        "APP_NAME": "Assured Rewards Ledger Test",
        "ENVIRONMENT": "test",
        "AUTO_CREATE_TABLES": "false",
        "DATABASE_URL": "sqlite://",
        "SERVICE_API_KEY": "",
        "LOG_LEVEL": "WARNING",
        "WALLET_CURRENCY": "INR",
        "QR_TECH_FEE_PER_CODE": "1.00",
        "QR_TECH_FEE_TAX_RATE": "18.00",
        "INVOICE_NUMBER_PREFIX": "AR",
        "INVENTORY_SEED_DEFAULT_COUNT": "20",
        "INVENTORY_INSERT_CHUNK_SIZE": "7",
        "RECONCILE_ON_WRITE": "true",
    }
    for key, value in defaults.items():
        os.environ.setdefault(key, value)


_set_test_env()

import pytest  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.database import Base  # noqa: E402
from app.models import Campaign, Vendor  # noqa: E402
from app.services.inventory import import_inventory_series  # noqa: E402
from app.services.wallet import credit  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(tmp_path):
    """Sessions on a file-backed database, each with its own connection.

    Used to interleave two units of work the way two API workers would.
    """
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(file_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=file_engine)
    try:
        yield sessionmaker(bind=file_engine, autocommit=False, autoflush=False)
    finally:
        file_engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_vendor(db):
    def _make(business_name: str = "Sharma Traders") -> Vendor:
        vendor = Vendor(business_name=business_name, contact_email="owner@example.com")
        db.add(vendor)
        db.commit()
        return vendor

    return _make


@pytest.fixture
def make_campaign(db):
    def _make(vendor: Vendor, title: str = "Diwali cashback") -> Campaign:
        campaign = Campaign(vendor_id=vendor.id, title=title)
        db.add(campaign)
        db.commit()
        return campaign

    return _make


@pytest.fixture
def vendor(make_vendor):
    return make_vendor()


@pytest.fixture
def campaign(make_campaign, vendor):
    return make_campaign(vendor)


@pytest.fixture
def fund_wallet(db):
    def _fund(vendor_id: int, amount) -> None:
        credit(db, vendor_id, amount)

    return _fund


@pytest.fixture
def stock_inventory(db):
    counter = {"value": 0}

    def _stock(vendor_id: int, count: int, series_code: str = "AUTO"):
        hashes = []
        for _ in range(count):
            counter["value"] += 1
            hashes.append(f"test-{vendor_id}-{series_code}-{counter['value']:05d}")
        return import_inventory_series(db, vendor_id, series_code, hashes)

    return _stock
