from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models import CampaignBudgetStatus, InvoiceType, QRStatus


class FundCampaignRequest(BaseModel):
    vendor_id: int
    quantity: int = Field(..., gt=0)
    cashback_amount_per_code: Decimal = Field(..., gt=0)
    series_code: Optional[str] = Field(default=None, max_length=64)
    order_id: Optional[str] = Field(default=None, max_length=64)


class CampaignBudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    campaign_id: Optional[int] = None
    vendor_id: int
    initial_locked_amount: Decimal
    locked_amount: Decimal
    spent_amount: Decimal
    refunded_amount: Decimal
    status: CampaignBudgetStatus


class QRCodeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    unique_hash: str
    series_code: Optional[str] = None
    series_order: Optional[int] = None
    status: QRStatus
    cashback_amount: Decimal


class InvoiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    number: str
    invoice_type: InvoiceType
    subtotal: Decimal
    tax: Decimal
    total: Decimal


class FundCampaignResponse(BaseModel):
    campaign_budget: CampaignBudgetOut
    qr_codes: list[QRCodeOut]
    invoices: list[InvoiceOut]
    cashback_total: Decimal
    fee_total: Decimal


class CancelCampaignResponse(BaseModel):
    campaign_id: int
    refunded_amount: Decimal
    voided_count: int


class SettleRedemptionRequest(BaseModel):
    reference_id: Optional[str] = Field(default=None, max_length=64)


class SettleRedemptionResponse(BaseModel):
    qr_id: int
    amount: Decimal
    transaction_id: int
