from decimal import Decimal

import pytest

from app.models import (
    CampaignBudget,
    CampaignBudgetSource,
    CampaignBudgetStatus,
    Invoice,
    InvoiceType,
    QRCode,
    QRStatus,
    Transaction,
    TransactionCategory,
)
from app.services.campaign_budget import cancel_campaign, settle_redeemed_code
from app.services.reconciliation import (
    audit_wallet,
    backfill_legacy_invoices_for_vendor,
    backfill_legacy_locked_budgets,
    check_budget_invariant,
    legacy_lock_key,
    reconcile_vendor,
)
from app.services.wallet import charge_fee, credit, get_wallet


def _legacy_codes(db, vendor, campaign, statuses, cashback=Decimal("10.00")):
    codes = []
    for index, status in enumerate(statuses, start=1):
        qr = QRCode(
            vendor_id=vendor.id,
            unique_hash=f"legacy-{campaign.id}-{index}",
            series_code="LEGACY",
            series_order=index,
            status=status,
            cashback_amount=cashback,
            campaign_id=campaign.id,
        )
        db.add(qr)
        codes.append(qr)
    db.commit()
    return codes


def _snapshot(db, vendor_id):
    db.expire_all()
    wallet = get_wallet(db, vendor_id)
    budgets = [
        (b.id, Decimal(b.initial_locked_amount), Decimal(b.locked_amount), Decimal(b.spent_amount), b.status)
        for b in db.query(CampaignBudget).order_by(CampaignBudget.id)
    ]
    links = [(qr.id, qr.campaign_budget_id) for qr in db.query(QRCode).order_by(QRCode.id)]
    return (
        Decimal(wallet.balance),
        Decimal(wallet.locked_balance),
        budgets,
        links,
        db.query(Transaction).count(),
    )


def test_legacy_backfill_locks_outstanding_and_records_spent(db, vendor, campaign, fund_wallet):
    fund_wallet(vendor.id, Decimal("100"))
    _legacy_codes(
        db,
        vendor,
        campaign,
        [QRStatus.ACTIVE, QRStatus.ASSIGNED, QRStatus.EXPIRED, QRStatus.REDEEMED, QRStatus.INVENTORY],
    )

    result = backfill_legacy_locked_budgets(db, vendor.id)

    assert result.codes_linked == 4
    assert result.locked_amount == Decimal("30.00")
    assert result.skipped_campaigns == []
    budget = db.query(CampaignBudget).one()
    assert budget.source == CampaignBudgetSource.LEGACY_BACKFILL.value
    assert (
        Decimal(budget.initial_locked_amount),
        Decimal(budget.locked_amount),
        Decimal(budget.spent_amount),
    ) == (Decimal("40.00"), Decimal("30.00"), Decimal("10.00"))
    check_budget_invariant(budget)

    wallet = get_wallet(db, vendor.id)
    assert (Decimal(wallet.balance), Decimal(wallet.locked_balance)) == (Decimal("100.00"), Decimal("30.00"))
    lock_entry = db.query(Transaction).filter(Transaction.category == TransactionCategory.LOCK_FUNDS).one()
    assert lock_entry.idempotency_key.startswith(f"legacy_lock:{campaign.id}:")
    assert lock_entry.campaign_budget_id == budget.id
    # Inventory codes are not campaign commitments.
    assert db.query(QRCode).filter(QRCode.status == QRStatus.INVENTORY).one().campaign_budget_id is None


def test_legacy_backfill_is_idempotent(db, vendor, campaign, fund_wallet):
    fund_wallet(vendor.id, Decimal("100"))
    _legacy_codes(db, vendor, campaign, [QRStatus.ACTIVE, QRStatus.ACTIVE, QRStatus.REDEEMED])

    backfill_legacy_locked_budgets(db, vendor.id)
    first = _snapshot(db, vendor.id)
    again = backfill_legacy_locked_budgets(db, vendor.id)
    second = _snapshot(db, vendor.id)

    assert first == second
    assert again.codes_linked == 0
    assert again.budgets_touched == []


def test_legacy_backfill_skips_campaign_without_funds(db, vendor, campaign, fund_wallet):
    fund_wallet(vendor.id, Decimal("15"))
    _legacy_codes(db, vendor, campaign, [QRStatus.ACTIVE, QRStatus.ACTIVE])

    result = backfill_legacy_locked_budgets(db, vendor.id)

    assert result.skipped_campaigns == [campaign.id]
    assert db.query(CampaignBudget).count() == 0
    assert all(qr.campaign_budget_id is None for qr in db.query(QRCode))
    assert Decimal(get_wallet(db, vendor.id).locked_balance) == Decimal("0.00")

    credit(db, vendor.id, Decimal("10"))
    retry = backfill_legacy_locked_budgets(db, vendor.id)
    assert retry.codes_linked == 2
    assert Decimal(get_wallet(db, vendor.id).locked_balance) == Decimal("20.00")


def test_fully_redeemed_legacy_campaign_gets_closed_budget(db, vendor, campaign, fund_wallet):
    fund_wallet(vendor.id, Decimal("5"))
    _legacy_codes(db, vendor, campaign, [QRStatus.REDEEMED, QRStatus.REDEEMED])

    backfill_legacy_locked_budgets(db, vendor.id)

    budget = db.query(CampaignBudget).one()
    assert budget.status == CampaignBudgetStatus.CLOSED
    assert Decimal(budget.spent_amount) == Decimal("20.00")
    assert db.query(Transaction).filter(Transaction.category == TransactionCategory.LOCK_FUNDS).count() == 0


def test_legacy_codes_can_be_settled_and_cancelled(db, vendor, campaign, fund_wallet):
    fund_wallet(vendor.id, Decimal("100"))
    codes = _legacy_codes(db, vendor, campaign, [QRStatus.ACTIVE, QRStatus.ACTIVE, QRStatus.ACTIVE])

    # Settling reconciles first, so the unlinked code gets a budget on the way.
    settle_redeemed_code(db, codes[0].id)
    cancellation = cancel_campaign(db, campaign.id)

    assert cancellation.refunded_amount == Decimal("20.00")
    assert cancellation.voided_count == 2
    wallet = get_wallet(db, vendor.id)
    db.refresh(wallet)
    assert (Decimal(wallet.balance), Decimal(wallet.locked_balance)) == (Decimal("90.00"), Decimal("0.00"))
    assert audit_wallet(db, vendor.id).is_consistent


def test_invoice_backfill_covers_uninvoiced_entries_once(db, vendor):
    credit(db, vendor.id, Decimal("100"))
    charge_fee(db, vendor.id, Decimal("11.80"))

    first = backfill_legacy_invoices_for_vendor(db, vendor.id)
    second = backfill_legacy_invoices_for_vendor(db, vendor.id)

    assert first.invoices_created == 2
    assert second.invoices_created == 0
    invoices = db.query(Invoice).order_by(Invoice.id).all()
    assert [invoice.invoice_type for invoice in invoices] == [
        InvoiceType.DEPOSIT_RECEIPT,
        InvoiceType.FEE_TAX_INVOICE,
    ]
    fee = invoices[1]
    assert (Decimal(fee.subtotal), Decimal(fee.tax), Decimal(fee.total)) == (
        Decimal("10.00"),
        Decimal("1.80"),
        Decimal("11.80"),
    )
    assert invoices[0].number.endswith("/000001")
    assert invoices[1].number.endswith("/000002")
    assert all(entry.invoice_id is not None for entry in db.query(Transaction))


def test_invoice_backfill_without_wallet_is_empty(db, vendor):
    assert backfill_legacy_invoices_for_vendor(db, vendor.id).invoices_created == 0


def test_reconcile_vendor_runs_both_backfills(db, vendor, campaign, fund_wallet):
    fund_wallet(vendor.id, Decimal("50"))
    _legacy_codes(db, vendor, campaign, [QRStatus.ACTIVE])

    report = reconcile_vendor(db, vendor.id)

    assert report["locked_budgets"].codes_linked == 1
    # Recharge receipt plus the synthesized lock's receipt.
    assert report["invoices"].invoices_created == 2
    assert audit_wallet(db, vendor.id).is_consistent


@pytest.mark.parametrize("ids", [[3, 1, 2], [1, 2, 3]])
def test_legacy_lock_key_is_order_independent(ids):
    assert legacy_lock_key(7, ids) == legacy_lock_key(7, [1, 2, 3])
    assert legacy_lock_key(7, ids) != legacy_lock_key(8, ids)
