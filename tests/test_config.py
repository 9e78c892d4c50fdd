from decimal import Decimal

from app.core.config import Settings, get_settings
from app.core.database import _build_connect_args, _resolve_database_url


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("QR_TECH_FEE_PER_CODE", "2.50")
    monkeypatch.setenv("reconcile_on_write", "false")

    settings = Settings()

    assert settings.qr_tech_fee_per_code == Decimal("2.50")
    assert settings.reconcile_on_write is False


def test_test_environment_defaults():
    settings = get_settings()
    assert settings.database_url == "sqlite://"
    assert settings.invoice_number_prefix == "AR"
    assert settings.qr_tech_fee_tax_rate == Decimal("18.00")


def test_connect_args_per_backend():
    assert _build_connect_args("sqlite://") == {"check_same_thread": False}
    assert _build_connect_args("postgresql://u:p@localhost:5432/rewards")["keepalives"] == 1
    assert "sslmode" not in _build_connect_args("postgresql://u:p@localhost:5432/rewards")
    assert _build_connect_args("postgresql://u:p@db.example.com:5432/rewards")["sslmode"] == "require"
    assert _build_connect_args("mysql://u:p@localhost/rewards") == {}


def test_non_postgres_urls_are_left_alone():
    assert _resolve_database_url("sqlite:///./rewards.db") == "sqlite:///./rewards.db"
