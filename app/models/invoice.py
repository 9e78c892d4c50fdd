import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Enum, Index, DateTime, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.base import TimestampMixin


class InvoiceType(str, enum.Enum):
    FEE_TAX_INVOICE = "FEE_TAX_INVOICE"
    DEPOSIT_RECEIPT = "DEPOSIT_RECEIPT"
    LOCK_RECEIPT = "LOCK_RECEIPT"
    REFUND_RECEIPT = "REFUND_RECEIPT"


class InvoiceStatus(str, enum.Enum):
    ISSUED = "issued"
    VOID = "void"


class Invoice(Base, TimestampMixin):
    """Immutable receipt issued alongside fee, lock, refund and recharge entries."""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(String(32), unique=True, nullable=False)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False)
    campaign_budget_id = Column(Integer, ForeignKey("campaign_budgets.id"), nullable=True)
    invoice_type = Column(Enum(InvoiceType), nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.ISSUED)
    issued_at = Column(DateTime(timezone=True), nullable=False)
    meta = Column("metadata", JSON, nullable=True)

    items = relationship("InvoiceItem", back_populates="invoice", order_by="InvoiceItem.id")
    transactions = relationship("Transaction", back_populates="invoice")


class InvoiceItem(Base, TimestampMixin):
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    label = Column(String(255), nullable=False)
    qty = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    hsn_sac = Column(String(16), nullable=True)
    tax_rate = Column(Numeric(5, 2), nullable=True)

    invoice = relationship("Invoice", back_populates="items")


class InvoiceSequence(Base, TimestampMixin):
    __tablename__ = "invoice_sequences"
    __table_args__ = (UniqueConstraint("prefix", "fy_code", name="uq_invoice_sequences_prefix_fy"),)

    id = Column(Integer, primary_key=True, index=True)
    prefix = Column(String(8), nullable=False)
    fy_code = Column(String(8), nullable=False)
    last_value = Column(Integer, nullable=False, default=0)


Index("ix_invoices_vendor_issued_at", Invoice.vendor_id, Invoice.issued_at)
