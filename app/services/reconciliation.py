"""Idempotent backfill of pre-ledger data plus wallet and budget audits.

Vendors onboarded before campaign budgets existed own QR codes that point at a
campaign but at no budget, and ledger entries that were never invoiced. The
backfills below turn that legacy shape into the current one exactly once: every
record they touch is linked (and so drops out of the next scan), and every
synthesized lock carries a deterministic idempotency key.
"""
import hashlib
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import unit_of_work
from app.models import (
    CampaignBudget,
    CampaignBudgetSource,
    CampaignBudgetStatus,
    InvoiceType,
    QRCode,
    QRStatus,
    Transaction,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
    RESERVATION_CATEGORIES,
    Wallet,
)
from app.services.errors import BudgetInvariantViolation
from app.services.invoice import issue_fee_invoice, issue_receipt, split_tax_inclusive
from app.services.wallet import LedgerRefs, available_balance, ensure_wallet, lock, lock_wallet
from app.utils.money import ZERO, to_money


settings = get_settings()
logger = logging.getLogger(__name__)

LEGACY_OUTSTANDING_STATUSES = (
    QRStatus.FUNDED,
    QRStatus.GENERATED,
    QRStatus.ASSIGNED,
    QRStatus.ACTIVE,
    QRStatus.EXPIRED,
    QRStatus.BLOCKED,
)
LEGACY_SPENT_STATUSES = (QRStatus.REDEEMED,)

BILLABLE_CATEGORIES = {
    TransactionCategory.RECHARGE: (InvoiceType.DEPOSIT_RECEIPT, "Wallet recharge"),
    TransactionCategory.TECH_FEE_CHARGE: (InvoiceType.FEE_TAX_INVOICE, "QR technology fee"),
    TransactionCategory.QR_PURCHASE: (InvoiceType.FEE_TAX_INVOICE, "QR purchase"),
    TransactionCategory.LOCK_FUNDS: (InvoiceType.LOCK_RECEIPT, "Cashback reserve"),
    TransactionCategory.UNLOCK_REFUND: (InvoiceType.REFUND_RECEIPT, "Cashback reserve released"),
}


@dataclass
class LockBackfillResult:
    budgets_touched: list[int] = field(default_factory=list)
    codes_linked: int = 0
    locked_amount: Decimal = ZERO
    skipped_campaigns: list[int] = field(default_factory=list)


@dataclass
class InvoiceBackfillResult:
    invoices_created: int = 0
    transaction_ids: list[int] = field(default_factory=list)


@dataclass
class WalletAudit:
    vendor_id: int
    balance: Decimal
    expected_balance: Decimal
    locked_balance: Decimal
    expected_locked_balance: Decimal

    @property
    def is_consistent(self) -> bool:
        return (
            self.balance == self.expected_balance
            and self.locked_balance == self.expected_locked_balance
            and ZERO <= self.locked_balance <= self.balance
        )


def check_budget_invariant(budget: CampaignBudget) -> None:
    initial = to_money(budget.initial_locked_amount)
    locked = to_money(budget.locked_amount)
    spent = to_money(budget.spent_amount)
    refunded = to_money(budget.refunded_amount)
    if min(locked, spent, refunded) < 0 or initial != locked + spent + refunded:
        raise BudgetInvariantViolation(
            f"Budget {budget.id} is inconsistent: initial={initial} locked={locked} spent={spent} refunded={refunded}"
        )


def legacy_lock_key(campaign_id: int, qr_ids: list[int]) -> str:
    digest = hashlib.sha256(",".join(str(qr_id) for qr_id in sorted(qr_ids)).encode()).hexdigest()[:24]
    return f"legacy_lock:{campaign_id}:{digest}"


def _legacy_budget_for(db: Session, vendor_id: int, campaign_id: int) -> CampaignBudget | None:
    return (
        db.query(CampaignBudget)
        .filter(
            CampaignBudget.vendor_id == vendor_id,
            CampaignBudget.campaign_id == campaign_id,
            CampaignBudget.source == CampaignBudgetSource.LEGACY_BACKFILL.value,
            CampaignBudget.status != CampaignBudgetStatus.REFUNDED,
        )
        .order_by(CampaignBudget.id.desc())
        .with_for_update()
        .populate_existing()
        .first()
    )


def backfill_legacy_locked_budgets(db: Session, vendor_id: int) -> LockBackfillResult:
    result = LockBackfillResult()
    with unit_of_work(db):
        lock_wallet(db, vendor_id)
        legacy_codes = (
            db.query(QRCode)
            .filter(
                QRCode.vendor_id == vendor_id,
                QRCode.campaign_id.isnot(None),
                QRCode.campaign_budget_id.is_(None),
                QRCode.status.in_(LEGACY_OUTSTANDING_STATUSES + LEGACY_SPENT_STATUSES),
            )
            .order_by(QRCode.id.asc())
            .with_for_update()
            .populate_existing()
            .all()
        )
        if not legacy_codes:
            return result

        by_campaign: dict[int, list[QRCode]] = defaultdict(list)
        for qr in legacy_codes:
            by_campaign[qr.campaign_id].append(qr)

        for campaign_id, codes in sorted(by_campaign.items()):
            outstanding = [qr for qr in codes if qr.status in LEGACY_OUTSTANDING_STATUSES]
            spent = [qr for qr in codes if qr.status in LEGACY_SPENT_STATUSES]
            outstanding_total = to_money(sum((to_money(qr.cashback_amount) for qr in outstanding), ZERO))
            spent_total = to_money(sum((to_money(qr.cashback_amount) for qr in spent), ZERO))

            key = legacy_lock_key(campaign_id, [qr.id for qr in codes])
            prior_lock = db.query(Transaction).filter(Transaction.idempotency_key == key).first()

            if outstanding_total > 0 and not prior_lock:
                wallet = ensure_wallet(db, vendor_id)
                if available_balance(wallet) < outstanding_total:
                    # Leave the codes unlinked; a later run picks them up once funds exist.
                    logger.warning(
                        "Skipping legacy lock backfill for vendor %s campaign %s: outstanding=%s available=%s",
                        vendor_id,
                        campaign_id,
                        outstanding_total,
                        available_balance(wallet),
                    )
                    result.skipped_campaigns.append(campaign_id)
                    continue

            budget = _legacy_budget_for(db, vendor_id, campaign_id)
            if prior_lock and prior_lock.campaign_budget_id:
                budget = db.get(CampaignBudget, prior_lock.campaign_budget_id)
            if not budget:
                budget = CampaignBudget(
                    campaign_id=campaign_id,
                    vendor_id=vendor_id,
                    initial_locked_amount=ZERO,
                    locked_amount=ZERO,
                    spent_amount=ZERO,
                    refunded_amount=ZERO,
                    status=CampaignBudgetStatus.ACTIVE,
                    source=CampaignBudgetSource.LEGACY_BACKFILL.value,
                )
                db.add(budget)
                db.flush()

            if not prior_lock:
                budget.initial_locked_amount = to_money(budget.initial_locked_amount) + outstanding_total + spent_total
                budget.locked_amount = to_money(budget.locked_amount) + outstanding_total
                budget.spent_amount = to_money(budget.spent_amount) + spent_total
                if outstanding_total > 0:
                    budget.status = CampaignBudgetStatus.ACTIVE
                    lock(
                        db,
                        vendor_id,
                        outstanding_total,
                        LedgerRefs(
                            description="Legacy cashback commitment locked",
                            reference_id=f"LEGACY_{campaign_id}",
                            campaign_budget_id=budget.id,
                            idempotency_key=key,
                            metadata={
                                "backfill": "legacy_locked_budget",
                                "outstanding_codes": len(outstanding),
                                "redeemed_codes": len(spent),
                                "spent_amount": spent_total,
                            },
                        ),
                    )
                elif to_money(budget.locked_amount) == 0 and budget.status == CampaignBudgetStatus.ACTIVE:
                    budget.status = CampaignBudgetStatus.CLOSED
                check_budget_invariant(budget)

            for qr in codes:
                qr.campaign_budget_id = budget.id
            db.flush()

            if budget.id not in result.budgets_touched:
                result.budgets_touched.append(budget.id)
            result.codes_linked += len(codes)
            if not prior_lock:
                result.locked_amount += outstanding_total

    if result.codes_linked or result.skipped_campaigns:
        logger.info(
            "Legacy lock backfill for vendor %s: budgets=%s codes=%s locked=%s skipped=%s",
            vendor_id,
            result.budgets_touched,
            result.codes_linked,
            result.locked_amount,
            result.skipped_campaigns,
        )
    return result


def backfill_legacy_invoices_for_vendor(db: Session, vendor_id: int) -> InvoiceBackfillResult:
    result = InvoiceBackfillResult()
    with unit_of_work(db):
        wallet = lock_wallet(db, vendor_id)
        if not wallet:
            return result

        entries = (
            db.query(Transaction)
            .filter(
                Transaction.wallet_id == wallet.id,
                Transaction.status == TransactionStatus.SUCCESS,
                Transaction.invoice_id.is_(None),
                Transaction.category.in_(list(BILLABLE_CATEGORIES)),
            )
            .order_by(Transaction.id.asc())
            .with_for_update()
            .all()
        )
        for entry in entries:
            invoice_type, label = BILLABLE_CATEGORIES[entry.category]
            metadata = {"backfilled": True, "transaction_id": entry.id, "category": entry.category.value}
            if invoice_type == InvoiceType.FEE_TAX_INVOICE:
                subtotal, tax = split_tax_inclusive(entry.amount, settings.qr_tech_fee_tax_rate)
                invoice = issue_fee_invoice(
                    db,
                    vendor_id=vendor_id,
                    quantity=1,
                    subtotal=subtotal,
                    tax=tax,
                    campaign_budget_id=entry.campaign_budget_id,
                    issued_at=entry.created_at,
                    metadata=metadata,
                )
            else:
                invoice = issue_receipt(
                    db,
                    vendor_id=vendor_id,
                    invoice_type=invoice_type,
                    label=label,
                    amount=entry.amount,
                    campaign_budget_id=entry.campaign_budget_id,
                    issued_at=entry.created_at,
                    metadata=metadata,
                )
            entry.invoice_id = invoice.id
            result.invoices_created += 1
            result.transaction_ids.append(entry.id)
        db.flush()

    if result.invoices_created:
        logger.info("Backfilled %s invoices for vendor %s", result.invoices_created, vendor_id)
    return result


def reconcile_vendor(db: Session, vendor_id: int) -> dict:
    with unit_of_work(db):
        budgets = backfill_legacy_locked_budgets(db, vendor_id)
        invoices = backfill_legacy_invoices_for_vendor(db, vendor_id)
    return {"locked_budgets": budgets, "invoices": invoices}


def audit_wallet(db: Session, vendor_id: int) -> WalletAudit:
    """Recompute balances from successful ledger entries and compare with the wallet row."""
    wallet = db.query(Wallet).filter(Wallet.vendor_id == vendor_id).first()
    if not wallet:
        return WalletAudit(vendor_id, ZERO, ZERO, ZERO, ZERO)

    totals: dict[tuple, Decimal] = defaultdict(lambda: ZERO)
    rows = (
        db.query(Transaction.entry_type, Transaction.category, func.coalesce(func.sum(Transaction.amount), 0))
        .filter(Transaction.wallet_id == wallet.id, Transaction.status == TransactionStatus.SUCCESS)
        .group_by(Transaction.entry_type, Transaction.category)
        .all()
    )
    for entry_type, category, amount in rows:
        totals[(TransactionType(entry_type), TransactionCategory(category))] = to_money(amount)

    expected_balance = ZERO
    for (entry_type, category), amount in totals.items():
        if category in RESERVATION_CATEGORIES:
            continue
        expected_balance += amount if entry_type == TransactionType.CREDIT else -amount

    expected_locked = (
        totals[(TransactionType.DEBIT, TransactionCategory.LOCK_FUNDS)]
        - totals[(TransactionType.CREDIT, TransactionCategory.UNLOCK_REFUND)]
        - totals[(TransactionType.DEBIT, TransactionCategory.LOCKED_SPEND)]
    )
    return WalletAudit(
        vendor_id=vendor_id,
        balance=to_money(wallet.balance),
        expected_balance=to_money(expected_balance),
        locked_balance=to_money(wallet.locked_balance),
        expected_locked_balance=to_money(expected_locked),
    )
