import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import unit_of_work
from app.models import (
    Campaign,
    CampaignBudget,
    CampaignBudgetSource,
    CampaignBudgetStatus,
    Invoice,
    InvoiceType,
    LIVE_QR_STATUSES,
    QRCode,
    QRStatus,
)
from app.services.errors import (
    BudgetInvariantViolation,
    CampaignNotFound,
    InvalidAmount,
    InvalidLedgerRequest,
    QRCodeNotFound,
)
from app.services.inventory import allocate_inventory_qrs, positive_quantity
from app.services.invoice import issue_fee_invoice, issue_receipt
from app.services.reconciliation import check_budget_invariant, reconcile_vendor
from app.services.wallet import (
    LedgerRefs,
    LedgerResult,
    charge_fee,
    ensure_wallet,
    lock,
    lock_wallet,
    spend_locked,
    unlock_refund,
)
from app.utils.money import CENT, ZERO, to_amount, to_money


settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass
class FundingQuote:
    quantity: int
    cashback_per_code: Decimal
    cashback_total: Decimal
    fee_subtotal: Decimal
    fee_tax: Decimal

    @property
    def fee_total(self) -> Decimal:
        return self.fee_subtotal + self.fee_tax

    @property
    def grand_total(self) -> Decimal:
        return self.cashback_total + self.fee_total


@dataclass
class FundingResult:
    campaign_budget: CampaignBudget
    qr_codes: list[QRCode]
    invoices: list[Invoice]
    quote: FundingQuote


@dataclass
class CancellationResult:
    campaign_id: int
    refunded_amount: Decimal = ZERO
    voided_count: int = 0
    budgets: list[CampaignBudget] = field(default_factory=list)


def compute_funding_quote(quantity, cashback_amount_per_code) -> FundingQuote:
    safe_quantity = positive_quantity(quantity)
    cashback = to_amount(cashback_amount_per_code)
    if cashback is None:
        raise InvalidAmount("Cashback amount per code must be greater than zero")

    fee_per_code = to_money(settings.qr_tech_fee_per_code)
    fee_subtotal = to_money(fee_per_code * safe_quantity)
    fee_tax = (fee_subtotal * Decimal(settings.qr_tech_fee_tax_rate) / Decimal("100")).quantize(
        CENT, rounding=ROUND_HALF_UP
    )
    return FundingQuote(
        quantity=safe_quantity,
        cashback_per_code=cashback,
        cashback_total=to_money(cashback * safe_quantity),
        fee_subtotal=fee_subtotal,
        fee_tax=fee_tax,
    )


def _get_campaign(db: Session, campaign_id: int) -> Campaign:
    campaign = db.get(Campaign, campaign_id)
    if not campaign:
        raise CampaignNotFound(f"Campaign {campaign_id} not found")
    return campaign


def _reconcile_before_write(db: Session, vendor_id: int) -> None:
    if settings.reconcile_on_write:
        reconcile_vendor(db, vendor_id)


def fund_campaign(
    db: Session,
    vendor_id: int,
    campaign_id: int,
    quantity,
    cashback_amount_per_code,
    series_code: Optional[str] = None,
    order_id: Optional[str] = None,
) -> FundingResult:
    """Charge the technology fee, lock the cashback total and bind inventory codes.

    Runs as one unit of work: an insufficient balance or inventory anywhere in
    the chain leaves no fee charge, lock, budget, invoice or allocation behind.
    Invoices are numbered last so the shared sequence row is held briefly.
    """
    quote = compute_funding_quote(quantity, cashback_amount_per_code)

    with unit_of_work(db):
        campaign = _get_campaign(db, campaign_id)
        if campaign.vendor_id != vendor_id:
            raise CampaignNotFound(f"Campaign {campaign_id} does not belong to vendor {vendor_id}")

        ensure_wallet(db, vendor_id)
        _reconcile_before_write(db, vendor_id)

        budget = CampaignBudget(
            campaign_id=campaign_id,
            vendor_id=vendor_id,
            initial_locked_amount=quote.cashback_total,
            locked_amount=quote.cashback_total,
            spent_amount=ZERO,
            refunded_amount=ZERO,
            status=CampaignBudgetStatus.ACTIVE,
            source=CampaignBudgetSource.FUNDING.value,
        )
        db.add(budget)
        db.flush()

        reference = f"FUND_{campaign_id}_{budget.id}"
        fee_entry = None
        if quote.fee_total > 0:
            fee_entry = charge_fee(
                db,
                vendor_id,
                quote.fee_total,
                LedgerRefs(
                    description=f"Technology fee for {quote.quantity} QR codes",
                    reference_id=reference,
                    campaign_budget_id=budget.id,
                    metadata={
                        "quantity": quote.quantity,
                        "fee_subtotal": quote.fee_subtotal,
                        "fee_tax": quote.fee_tax,
                    },
                ),
            ).transaction

        lock_entry = lock(
            db,
            vendor_id,
            quote.cashback_total,
            LedgerRefs(
                description=f"Cashback locked for {quote.quantity} QR codes",
                reference_id=reference,
                campaign_budget_id=budget.id,
                metadata={"quantity": quote.quantity, "cashback_per_code": quote.cashback_per_code},
            ),
        ).transaction

        qr_codes = allocate_inventory_qrs(
            db,
            vendor_id=vendor_id,
            campaign_id=campaign_id,
            campaign_budget_id=budget.id,
            quantity=quote.quantity,
            cashback_amount=quote.cashback_per_code,
            series_code=series_code,
            order_id=order_id,
        )
        check_budget_invariant(budget)

        invoices: list[Invoice] = []
        if fee_entry is not None:
            fee_invoice = issue_fee_invoice(
                db,
                vendor_id=vendor_id,
                quantity=quote.quantity,
                subtotal=quote.fee_subtotal,
                tax=quote.fee_tax,
                campaign_budget_id=budget.id,
                metadata={"campaign_id": campaign_id},
            )
            fee_entry.invoice_id = fee_invoice.id
            invoices.append(fee_invoice)

        lock_receipt = issue_receipt(
            db,
            vendor_id=vendor_id,
            invoice_type=InvoiceType.LOCK_RECEIPT,
            label="Cashback reserve",
            amount=quote.cashback_total,
            qty=quote.quantity,
            campaign_budget_id=budget.id,
            metadata={"campaign_id": campaign_id},
        )
        lock_entry.invoice_id = lock_receipt.id
        invoices.append(lock_receipt)
        db.flush()

    logger.info(
        "Funded campaign %s for vendor %s: budget=%s codes=%s cashback=%s fee=%s",
        campaign_id,
        vendor_id,
        budget.id,
        len(qr_codes),
        quote.cashback_total,
        quote.fee_total,
    )
    return FundingResult(campaign_budget=budget, qr_codes=qr_codes, invoices=invoices, quote=quote)


def cancel_campaign(db: Session, campaign_id: int) -> CancellationResult:
    """Release every active budget of a campaign and void its unredeemed codes.

    Redeemed codes keep their binding: cashback already paid out is never clawed back.
    """
    result = CancellationResult(campaign_id=campaign_id)

    with unit_of_work(db):
        campaign = _get_campaign(db, campaign_id)
        vendor_id = campaign.vendor_id
        lock_wallet(db, vendor_id)
        _reconcile_before_write(db, vendor_id)

        live_codes = (
            db.query(QRCode)
            .filter(QRCode.campaign_id == campaign_id, QRCode.status.in_(LIVE_QR_STATUSES))
            .order_by(QRCode.id.asc())
            .with_for_update()
            .populate_existing()
            .all()
        )
        budgets = (
            db.query(CampaignBudget)
            .filter(
                CampaignBudget.campaign_id == campaign_id,
                CampaignBudget.status == CampaignBudgetStatus.ACTIVE,
            )
            .order_by(CampaignBudget.id.asc())
            .with_for_update()
            .populate_existing()
            .all()
        )

        refunds = []
        for budget in budgets:
            check_budget_invariant(budget)
            refundable = to_money(budget.locked_amount)
            if refundable > 0:
                entry = unlock_refund(
                    db,
                    vendor_id,
                    refundable,
                    LedgerRefs(
                        description=f"Campaign {campaign_id} cancelled",
                        reference_id=f"CANCEL_{campaign_id}_{budget.id}",
                        campaign_budget_id=budget.id,
                    ),
                ).transaction
                refunds.append((budget, refundable, entry))
            budget.refunded_amount = to_money(budget.refunded_amount) + refundable
            budget.locked_amount = ZERO
            budget.status = CampaignBudgetStatus.REFUNDED
            check_budget_invariant(budget)
            result.refunded_amount += refundable
            result.budgets.append(budget)

        for qr in live_codes:
            qr.status = QRStatus.VOID
            qr.campaign_id = None
        result.voided_count = len(live_codes)

        for budget, refundable, entry in refunds:
            receipt = issue_receipt(
                db,
                vendor_id=vendor_id,
                invoice_type=InvoiceType.REFUND_RECEIPT,
                label="Cashback reserve released on cancellation",
                amount=refundable,
                campaign_budget_id=budget.id,
                metadata={"campaign_id": campaign_id},
            )
            entry.invoice_id = receipt.id
        db.flush()

    logger.info(
        "Cancelled campaign %s for vendor %s: refunded=%s voided=%s",
        campaign_id,
        vendor_id,
        result.refunded_amount,
        result.voided_count,
    )
    return result


def settle_redeemed_code(db: Session, qr_id: int, reference_id: Optional[str] = None) -> LedgerResult:
    """Convert one code's reserved cashback into a final spend when it is redeemed.

    The budget's spent_amount is authoritative and moves in the same unit of work
    as the locked_spend ledger entry, so the two can never drift apart.
    """
    with unit_of_work(db):
        owner = db.query(QRCode.vendor_id).filter(QRCode.id == qr_id).scalar()
        if owner is None:
            raise QRCodeNotFound(f"QR code {qr_id} not found")
        lock_wallet(db, owner)

        qr = db.query(QRCode).filter(QRCode.id == qr_id).with_for_update().populate_existing().one()
        if qr.status == QRStatus.REDEEMED:
            raise InvalidLedgerRequest(f"QR code {qr_id} has already been redeemed")
        if qr.status not in LIVE_QR_STATUSES or qr.campaign_id is None:
            raise InvalidLedgerRequest(f"QR code {qr_id} is not redeemable (status {qr.status.value})")

        if qr.campaign_budget_id is None:
            _reconcile_before_write(db, qr.vendor_id)
        if qr.campaign_budget_id is None:
            raise BudgetInvariantViolation(f"QR code {qr_id} is not linked to a campaign budget")

        budget = (
            db.query(CampaignBudget)
            .filter(CampaignBudget.id == qr.campaign_budget_id)
            .with_for_update()
            .populate_existing()
            .one()
        )
        amount = to_money(qr.cashback_amount)
        if budget.status != CampaignBudgetStatus.ACTIVE or to_money(budget.locked_amount) < amount:
            raise BudgetInvariantViolation(
                f"Budget {budget.id} cannot cover cashback {amount} (locked {to_money(budget.locked_amount)})"
            )

        ledger = spend_locked(
            db,
            qr.vendor_id,
            amount,
            LedgerRefs(
                description="Cashback redeemed",
                reference_id=reference_id or f"REDEEM_{qr.id}",
                campaign_budget_id=budget.id,
                qr_id=qr.id,
                idempotency_key=f"redeem:{qr.id}",
            ),
        )
        budget.locked_amount = to_money(budget.locked_amount) - amount
        budget.spent_amount = to_money(budget.spent_amount) + amount
        if to_money(budget.locked_amount) == 0:
            budget.status = CampaignBudgetStatus.CLOSED
        check_budget_invariant(budget)

        qr.status = QRStatus.REDEEMED
        qr.redeemed_at = datetime.now(timezone.utc)
        db.flush()

    logger.info("Settled redemption of QR %s: %s spent from budget %s", qr_id, amount, budget.id)
    return ledger
