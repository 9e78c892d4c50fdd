from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, CheckConstraint, Index
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.base import TimestampMixin


class Wallet(Base, TimestampMixin):
    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("locked_balance >= 0", name="ck_wallets_locked_non_negative"),
        CheckConstraint("locked_balance <= balance", name="ck_wallets_locked_within_balance"),
    )

    id = Column(Integer, primary_key=True, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), unique=True, nullable=False)
    balance = Column(Numeric(12, 2), default=0, nullable=False)
    locked_balance = Column(Numeric(12, 2), default=0, nullable=False)
    currency = Column(String(3), default="INR", nullable=False)

    vendor = relationship("Vendor", back_populates="wallet")
    transactions = relationship("Transaction", back_populates="wallet")


Index("ix_wallets_vendor_id", Wallet.vendor_id)
