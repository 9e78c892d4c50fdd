import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models import Invoice, InvoiceItem, InvoiceSequence, InvoiceType, InvoiceStatus
from app.utils.money import CENT, to_money


settings = get_settings()
logger = logging.getLogger(__name__)


def financial_year_code(at: Optional[datetime] = None) -> str:
    """Indian financial year (April to March) as 'YY-YY'."""
    at = at or datetime.now(timezone.utc)
    start_year = at.year if at.month >= 4 else at.year - 1
    return f"{str(start_year)[-2:]}-{str(start_year + 1)[-2:]}"


def next_invoice_number(db: Session, issued_at: Optional[datetime] = None, prefix: Optional[str] = None) -> str:
    prefix = prefix or settings.invoice_number_prefix
    fy_code = financial_year_code(issued_at)
    sequence = (
        db.query(InvoiceSequence)
        .filter(InvoiceSequence.prefix == prefix, InvoiceSequence.fy_code == fy_code)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not sequence:
        sequence = InvoiceSequence(prefix=prefix, fy_code=fy_code, last_value=0)
        db.add(sequence)
    sequence.last_value = int(sequence.last_value or 0) + 1
    db.flush()
    return f"{prefix}/{fy_code}/{sequence.last_value:06d}"


def normalize_invoice_items(items: Optional[list[dict[str, Any]]]) -> list[dict[str, Any]]:
    normalized = []
    for item in items or []:
        try:
            qty = max(1, int(item.get("qty") or 1))
        except (TypeError, ValueError):
            qty = 1
        unit_price = to_money(item.get("unit_price"))
        amount = to_money(item["amount"]) if item.get("amount") is not None else to_money(unit_price * qty)
        if amount < 0:
            continue
        tax_rate = item.get("tax_rate")
        normalized.append(
            {
                "label": str(item.get("label") or "Item").strip() or "Item",
                "qty": qty,
                "unit_price": unit_price,
                "amount": amount,
                "hsn_sac": str(item["hsn_sac"]).strip() if item.get("hsn_sac") else None,
                "tax_rate": to_money(tax_rate) if tax_rate is not None else None,
            }
        )
    return normalized


def split_tax_inclusive(total: Decimal, rate: Decimal) -> tuple[Decimal, Decimal]:
    """Split a tax-inclusive total into (subtotal, tax) at a percentage rate."""
    total = to_money(total)
    subtotal = (total * Decimal("100") / (Decimal("100") + Decimal(rate))).quantize(CENT, rounding=ROUND_HALF_UP)
    return subtotal, total - subtotal


def create_invoice(
    db: Session,
    *,
    vendor_id: int,
    invoice_type: InvoiceType,
    items: Optional[list[dict[str, Any]]] = None,
    subtotal=None,
    tax=None,
    total=None,
    campaign_budget_id: Optional[int] = None,
    metadata: Optional[dict[str, Any]] = None,
    issued_at: Optional[datetime] = None,
    number_prefix: Optional[str] = None,
) -> Invoice:
    issued_at = issued_at or datetime.now(timezone.utc)
    lines = normalize_invoice_items(items)

    computed_subtotal = to_money(subtotal) if subtotal is not None else to_money(sum(line["amount"] for line in lines))
    computed_tax = to_money(tax) if tax is not None else Decimal("0.00")
    computed_total = to_money(total) if total is not None else computed_subtotal + computed_tax

    invoice = Invoice(
        number=next_invoice_number(db, issued_at, number_prefix),
        vendor_id=vendor_id,
        campaign_budget_id=campaign_budget_id,
        invoice_type=invoice_type,
        subtotal=computed_subtotal,
        tax=computed_tax,
        total=computed_total,
        status=InvoiceStatus.ISSUED,
        issued_at=issued_at,
        meta=metadata or None,
    )
    invoice.items = [InvoiceItem(**line) for line in lines]
    db.add(invoice)
    db.flush()
    logger.info("Issued %s %s for vendor %s total=%s", invoice_type.value, invoice.number, vendor_id, computed_total)
    return invoice


def issue_fee_invoice(
    db: Session,
    *,
    vendor_id: int,
    quantity: int,
    subtotal: Decimal,
    tax: Decimal,
    campaign_budget_id: Optional[int] = None,
    issued_at: Optional[datetime] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> Invoice:
    return create_invoice(
        db,
        vendor_id=vendor_id,
        invoice_type=InvoiceType.FEE_TAX_INVOICE,
        items=[
            {
                "label": "QR technology fee",
                "qty": quantity,
                "unit_price": to_money(subtotal / quantity) if quantity else subtotal,
                "amount": subtotal,
                "hsn_sac": settings.qr_tech_fee_hsn_sac,
                "tax_rate": settings.qr_tech_fee_tax_rate,
            }
        ],
        subtotal=subtotal,
        tax=tax,
        campaign_budget_id=campaign_budget_id,
        issued_at=issued_at,
        metadata=metadata,
    )


def issue_receipt(
    db: Session,
    *,
    vendor_id: int,
    invoice_type: InvoiceType,
    label: str,
    amount: Decimal,
    qty: int = 1,
    campaign_budget_id: Optional[int] = None,
    issued_at: Optional[datetime] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> Invoice:
    """Untaxed receipt for deposits, cashback locks and refunds."""
    amount = to_money(amount)
    return create_invoice(
        db,
        vendor_id=vendor_id,
        invoice_type=invoice_type,
        items=[
            {
                "label": label,
                "qty": qty,
                "unit_price": to_money(amount / qty) if qty else amount,
                "amount": amount,
            }
        ],
        subtotal=amount,
        tax=Decimal("0.00"),
        campaign_budget_id=campaign_budget_id,
        issued_at=issued_at,
        metadata=metadata,
    )
