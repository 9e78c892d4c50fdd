from decimal import Decimal

import pytest
from sqlalchemy import event

from app.models import CampaignBudget, CampaignBudgetStatus, QRCode, QRStatus, Vendor
from app.services.errors import (
    DuplicateSeedAttempt,
    InsufficientInventory,
    InvalidAmount,
    InvalidLedgerRequest,
    VendorNotFound,
)
from app.services.inventory import (
    SeriesSpec,
    allocate_inventory_qrs,
    count_available_inventory,
    import_inventory_series,
    inventory_summary,
    normalize_series_code,
    positive_quantity,
    seed_vendor_inventory,
)


@pytest.fixture
def budget(db, vendor, campaign):
    budget = CampaignBudget(
        campaign_id=campaign.id,
        vendor_id=vendor.id,
        initial_locked_amount=Decimal("100.00"),
        locked_amount=Decimal("100.00"),
        status=CampaignBudgetStatus.ACTIVE,
    )
    db.add(budget)
    db.commit()
    return budget


def test_allocation_shortfall_leaves_inventory_untouched(db, vendor, campaign, budget, stock_inventory):
    stock_inventory(vendor.id, 10)

    with pytest.raises(InsufficientInventory) as excinfo:
        allocate_inventory_qrs(db, vendor.id, campaign.id, budget.id, 12, Decimal("5"))

    assert excinfo.value.context == {"requested": 12, "available": 10}
    assert count_available_inventory(db, vendor.id) == 10
    assert db.query(QRCode).filter(QRCode.campaign_id.isnot(None)).count() == 0


def test_allocation_binds_exactly_quantity(db, vendor, campaign, budget, stock_inventory):
    stock_inventory(vendor.id, 10)

    codes = allocate_inventory_qrs(
        db, vendor.id, campaign.id, budget.id, 4, Decimal("7.50"), order_id="ORD-1"
    )

    assert len(codes) == 4
    assert count_available_inventory(db, vendor.id) == 6
    for qr in codes:
        db.refresh(qr)
        assert qr.status == QRStatus.FUNDED
        assert qr.campaign_id == campaign.id
        assert qr.campaign_budget_id == budget.id
        assert Decimal(qr.cashback_amount) == Decimal("7.50")
        assert qr.order_id == "ORD-1"


def test_allocation_follows_series_order(db, vendor, campaign, budget, stock_inventory):
    stock_inventory(vendor.id, 3, series_code="B")
    stock_inventory(vendor.id, 3, series_code="A")

    mixed = allocate_inventory_qrs(db, vendor.id, campaign.id, budget.id, 4, Decimal("1"))
    assert [(qr.series_code, qr.series_order) for qr in mixed] == [("A", 1), ("A", 2), ("A", 3), ("B", 1)]

    filtered = allocate_inventory_qrs(db, vendor.id, campaign.id, budget.id, 2, Decimal("1"), series_code="B")
    assert [(qr.series_code, qr.series_order) for qr in filtered] == [("B", 2), ("B", 3)]


def test_allocation_respects_series_filter_shortfall(db, vendor, campaign, budget, stock_inventory):
    stock_inventory(vendor.id, 5, series_code="A")
    stock_inventory(vendor.id, 1, series_code="B")

    with pytest.raises(InsufficientInventory):
        allocate_inventory_qrs(db, vendor.id, campaign.id, budget.id, 2, Decimal("1"), series_code="B")

    assert count_available_inventory(db, vendor.id, "B") == 1


def test_allocation_never_reuses_other_vendor_codes(db, make_vendor, vendor, campaign, budget, stock_inventory):
    other = make_vendor("Other Vendor")
    stock_inventory(other.id, 5)

    with pytest.raises(InsufficientInventory):
        allocate_inventory_qrs(db, vendor.id, campaign.id, budget.id, 1, Decimal("1"))


def test_allocation_unknown_vendor_is_rejected_before_selecting(db, vendor, campaign, budget, stock_inventory):
    stock_inventory(vendor.id, 2)

    with pytest.raises(VendorNotFound):
        allocate_inventory_qrs(db, 4242, campaign.id, budget.id, 1, Decimal("1"))
    assert count_available_inventory(db, vendor.id) == 2


def test_allocation_validates_inputs(db, vendor, campaign, budget):
    with pytest.raises(InvalidLedgerRequest):
        allocate_inventory_qrs(db, vendor.id, campaign.id, budget.id, 0, Decimal("1"))
    with pytest.raises(InvalidAmount):
        allocate_inventory_qrs(db, vendor.id, campaign.id, budget.id, 1, Decimal("0"))


def test_import_series_skips_duplicates_and_continues_order(db, vendor):
    first = import_inventory_series(db, vendor.id, " SHEET-1 ", ["h1", "h2", "h2", " h3 ", "", None])
    assert (first.series_code, first.requested, first.created, first.duplicates) == ("SHEET-1", 3, 3, 0)

    second = import_inventory_series(db, vendor.id, "SHEET-1", ["h3", "h4"], source_batch="print-run-2")
    assert (second.created, second.duplicates) == (1, 1)

    h4 = db.query(QRCode).filter(QRCode.unique_hash == "h4").one()
    assert h4.series_order == 4
    assert h4.source_batch == "print-run-2"
    assert h4.status == QRStatus.INVENTORY


def test_import_skips_hash_committed_by_concurrent_import(session_factory):
    setup = session_factory()
    first = Vendor(business_name="First Print Shop", contact_email="first@example.com")
    second = Vendor(business_name="Second Print Shop", contact_email="second@example.com")
    setup.add_all([first, second])
    setup.commit()
    first_id, second_id = first.id, second.id
    setup.close()

    racing = session_factory()
    importer = session_factory()
    fired = []

    def _commit_competing_import(orm_execute_state):
        # Runs after the duplicate pre-check, just before the insert is sent.
        if orm_execute_state.is_insert and not fired:
            fired.append(True)
            import_inventory_series(racing, first_id, "SHEET-A", ["shared-hash"])

    event.listen(importer, "do_orm_execute", _commit_competing_import)
    try:
        result = import_inventory_series(importer, second_id, "SHEET-B", ["shared-hash", "own-hash"])
    finally:
        event.remove(importer, "do_orm_execute", _commit_competing_import)

    assert fired
    assert (result.requested, result.created, result.duplicates) == (2, 1, 1)
    owners = dict(importer.query(QRCode.unique_hash, QRCode.vendor_id).all())
    assert owners == {"shared-hash": first_id, "own-hash": second_id}
    racing.close()
    importer.close()


def test_import_series_rejects_empty_input(db, vendor):
    with pytest.raises(InvalidLedgerRequest):
        import_inventory_series(db, vendor.id, "  ", ["h1"])
    with pytest.raises(InvalidLedgerRequest):
        import_inventory_series(db, vendor.id, "A", [" ", None])
    with pytest.raises(InvalidLedgerRequest):
        import_inventory_series(db, vendor.id, "A", ["x" * 129])


def test_import_series_unknown_vendor(db):
    with pytest.raises(VendorNotFound):
        import_inventory_series(db, 4242, "A", ["h1"])


def test_seed_is_one_time(db, vendor):
    result = seed_vendor_inventory(db, vendor.id, target_count=15)
    assert (result.created, result.total) == (15, 15)

    with pytest.raises(DuplicateSeedAttempt):
        seed_vendor_inventory(db, vendor.id, target_count=5)
    assert count_available_inventory(db, vendor.id) == 15


def test_seed_refuses_when_any_code_exists(db, vendor, stock_inventory):
    stock_inventory(vendor.id, 1)
    code = db.query(QRCode).one()
    code.status = QRStatus.VOID
    db.commit()

    with pytest.raises(DuplicateSeedAttempt):
        seed_vendor_inventory(db, vendor.id)


def test_seed_rejects_explicit_zero_count(db, vendor):
    with pytest.raises(InvalidLedgerRequest):
        seed_vendor_inventory(db, vendor.id, target_count=0)
    assert inventory_summary(db, vendor.id)["by_status"] == {}


def test_seed_uses_default_count_and_series_plan(db, make_vendor):
    default_vendor = make_vendor("Default Seed")
    assert seed_vendor_inventory(db, default_vendor.id).created == 20

    planned = make_vendor("Planned Seed")
    seed_vendor_inventory(db, planned.id, series=[SeriesSpec("A", 2), SeriesSpec("B", 3)])
    summary = inventory_summary(db, planned.id)
    assert summary["available_by_series"] == {"A": 2, "B": 3}
    assert summary["by_status"] == {"inventory": 5}
    assert summary["available"] == 5

    hashes = [row[0] for row in db.query(QRCode.unique_hash).filter(QRCode.vendor_id == planned.id)]
    assert len(set(hashes)) == 5
    assert all(len(value) == 64 for value in hashes)


@pytest.mark.parametrize("value, expected", [(3, 3), ("7", 7), (2.0, 2)])
def test_positive_quantity_accepts_whole_numbers(value, expected):
    assert positive_quantity(value) == expected


@pytest.mark.parametrize("value", [0, -1, 2.5, True, None, "two"])
def test_positive_quantity_rejects_invalid(value):
    with pytest.raises(InvalidLedgerRequest):
        positive_quantity(value)


def test_normalize_series_code():
    assert normalize_series_code("  ") == "AUTO"
    assert normalize_series_code(None, None) is None
    assert normalize_series_code("x" * 80) == "x" * 64
