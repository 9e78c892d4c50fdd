import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Enum, Index, DateTime
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.base import TimestampMixin


class QRStatus(str, enum.Enum):
    INVENTORY = "inventory"
    FUNDED = "funded"
    GENERATED = "generated"
    ASSIGNED = "assigned"
    ACTIVE = "active"
    REDEEMED = "redeemed"
    EXPIRED = "expired"
    BLOCKED = "blocked"
    VOID = "void"


# Bound to a campaign and still redeemable.
LIVE_QR_STATUSES = (QRStatus.FUNDED, QRStatus.GENERATED, QRStatus.ASSIGNED, QRStatus.ACTIVE)


class QRCode(Base, TimestampMixin):
    __tablename__ = "qr_codes"

    id = Column(Integer, primary_key=True, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False)
    unique_hash = Column(String(128), unique=True, nullable=False)
    series_code = Column(String(64), nullable=True)
    series_order = Column(Integer, nullable=True)
    source_batch = Column(String(96), nullable=True)
    imported_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(Enum(QRStatus), nullable=False, default=QRStatus.INVENTORY)
    cashback_amount = Column(Numeric(12, 2), nullable=False, default=0)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), nullable=True)
    campaign_budget_id = Column(Integer, ForeignKey("campaign_budgets.id"), nullable=True)
    order_id = Column(String(64), nullable=True)
    redeemed_at = Column(DateTime(timezone=True), nullable=True)

    campaign_budget = relationship("CampaignBudget", back_populates="qr_codes")


Index("ix_qr_codes_vendor_status_series", QRCode.vendor_id, QRCode.status, QRCode.series_code)
Index("ix_qr_codes_vendor_series_order", QRCode.vendor_id, QRCode.series_code, QRCode.series_order)
Index("ix_qr_codes_campaign_budget_status", QRCode.campaign_budget_id, QRCode.status)
Index("ix_qr_codes_campaign_status", QRCode.campaign_id, QRCode.status)
