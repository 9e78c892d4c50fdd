import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Enum, Index, CheckConstraint
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.base import TimestampMixin


class CampaignBudgetStatus(str, enum.Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    REFUNDED = "refunded"


class CampaignBudgetSource(str, enum.Enum):
    FUNDING = "funding"
    LEGACY_BACKFILL = "legacy_backfill"


class CampaignBudget(Base, TimestampMixin):
    __tablename__ = "campaign_budgets"
    __table_args__ = (
        CheckConstraint("locked_amount >= 0", name="ck_campaign_budgets_locked_non_negative"),
        CheckConstraint("spent_amount >= 0", name="ck_campaign_budgets_spent_non_negative"),
        CheckConstraint("refunded_amount >= 0", name="ck_campaign_budgets_refunded_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), nullable=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False)
    initial_locked_amount = Column(Numeric(12, 2), nullable=False)
    locked_amount = Column(Numeric(12, 2), nullable=False)
    spent_amount = Column(Numeric(12, 2), nullable=False, default=0)
    refunded_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(Enum(CampaignBudgetStatus), nullable=False, default=CampaignBudgetStatus.ACTIVE)
    source = Column(String(24), nullable=False, default=CampaignBudgetSource.FUNDING.value)

    campaign = relationship("Campaign", back_populates="budgets")
    transactions = relationship("Transaction", back_populates="campaign_budget")
    qr_codes = relationship("QRCode", back_populates="campaign_budget")


Index("ix_campaign_budgets_campaign_status", CampaignBudget.campaign_id, CampaignBudget.status)
Index("ix_campaign_budgets_vendor_status", CampaignBudget.vendor_id, CampaignBudget.status)
