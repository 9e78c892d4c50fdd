from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models import TransactionCategory, TransactionStatus, TransactionType


class WalletOut(BaseModel):
    vendor_id: int
    currency: str
    total_balance: Decimal
    locked_balance: Decimal
    available_balance: Decimal


class RechargeRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    reference_id: Optional[str] = Field(default=None, max_length=64)
    description: Optional[str] = Field(default=None, max_length=255)


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: Optional[datetime] = None
    entry_type: TransactionType
    category: TransactionCategory
    amount: Decimal
    status: TransactionStatus
    description: Optional[str] = None
    reference_id: Optional[str] = None
    campaign_budget_id: Optional[int] = None
    invoice_id: Optional[int] = None
    qr_id: Optional[int] = None
    meta: Optional[dict[str, Any]] = None


class RechargeResponse(BaseModel):
    wallet: WalletOut
    transaction: TransactionOut
    invoice_number: Optional[str] = None


class WalletAuditOut(BaseModel):
    vendor_id: int
    balance: Decimal
    expected_balance: Decimal
    locked_balance: Decimal
    expected_locked_balance: Decimal
    is_consistent: bool
