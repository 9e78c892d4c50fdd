import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Enum, Index, JSON, CheckConstraint
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.base import TimestampMixin


class TransactionType(str, enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    REFUNDED = "refunded"


class TransactionCategory(str, enum.Enum):
    RECHARGE = "recharge"
    LOCK_FUNDS = "lock_funds"
    UNLOCK_REFUND = "unlock_refund"
    TECH_FEE_CHARGE = "tech_fee_charge"
    LOCKED_SPEND = "locked_spend"
    ADMIN_ADJUSTMENT = "admin_adjustment"
    WITHDRAWAL = "withdrawal"
    REFUND = "refund"
    CASHBACK_PAYOUT = "cashback_payout"
    QR_PURCHASE = "qr_purchase"
    CAMPAIGN_PAYMENT = "campaign_payment"


# Move funds between available and locked; they never change `balance`.
RESERVATION_CATEGORIES = frozenset({TransactionCategory.LOCK_FUNDS, TransactionCategory.UNLOCK_REFUND})


class Transaction(Base, TimestampMixin):
    """Append-only ledger entry. One row per wallet mutation."""

    __tablename__ = "wallet_transactions"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_wallet_transactions_amount_positive"),)

    id = Column(Integer, primary_key=True, index=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id"), nullable=False)
    entry_type = Column(Enum(TransactionType), nullable=False)
    category = Column(Enum(TransactionCategory), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(Enum(TransactionStatus), nullable=False, default=TransactionStatus.SUCCESS)
    description = Column(String(255), nullable=True)
    reference_id = Column(String(64), nullable=True, index=True)
    campaign_budget_id = Column(Integer, ForeignKey("campaign_budgets.id"), nullable=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True)
    qr_id = Column(Integer, ForeignKey("qr_codes.id"), nullable=True)
    idempotency_key = Column(String(96), unique=True, nullable=True)
    meta = Column("metadata", JSON, nullable=True)

    wallet = relationship("Wallet", back_populates="transactions")
    campaign_budget = relationship("CampaignBudget", back_populates="transactions")
    invoice = relationship("Invoice", back_populates="transactions")


Index("ix_wallet_transactions_wallet_status", Transaction.wallet_id, Transaction.status)
Index("ix_wallet_transactions_campaign_budget_id", Transaction.campaign_budget_id)
Index("ix_wallet_transactions_invoice_id", Transaction.invoice_id)
