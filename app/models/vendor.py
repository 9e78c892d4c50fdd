from sqlalchemy import Column, Integer, String, ForeignKey, Index
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.base import TimestampMixin


class Vendor(Base, TimestampMixin):
    """Referential anchor for wallets, budgets and inventory. Profile CRUD lives elsewhere."""

    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True, index=True)
    business_name = Column(String(255), nullable=False)
    contact_email = Column(String(255), nullable=True)

    wallet = relationship("Wallet", back_populates="vendor", uselist=False)
    campaigns = relationship("Campaign", back_populates="vendor")


class Campaign(Base, TimestampMixin):
    __tablename__ = "campaigns"

    id = Column(Integer, primary_key=True, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False)
    title = Column(String(255), nullable=False)

    vendor = relationship("Vendor", back_populates="campaigns")
    budgets = relationship("CampaignBudget", back_populates="campaign")


Index("ix_campaigns_vendor_id", Campaign.vendor_id)
