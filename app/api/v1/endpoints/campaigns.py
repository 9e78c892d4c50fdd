from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.campaign import (
    CancelCampaignResponse,
    FundCampaignRequest,
    FundCampaignResponse,
    SettleRedemptionRequest,
    SettleRedemptionResponse,
)
from app.services.campaign_budget import cancel_campaign, fund_campaign, settle_redeemed_code

router = APIRouter()


@router.post("/{campaign_id}/fund", response_model=FundCampaignResponse)
def fund(campaign_id: int, payload: FundCampaignRequest, db: Session = Depends(get_db)):
    result = fund_campaign(
        db,
        vendor_id=payload.vendor_id,
        campaign_id=campaign_id,
        quantity=payload.quantity,
        cashback_amount_per_code=payload.cashback_amount_per_code,
        series_code=payload.series_code,
        order_id=payload.order_id,
    )
    return {
        "campaign_budget": result.campaign_budget,
        "qr_codes": result.qr_codes,
        "invoices": result.invoices,
        "cashback_total": result.quote.cashback_total,
        "fee_total": result.quote.fee_total,
    }


@router.post("/{campaign_id}/cancel", response_model=CancelCampaignResponse)
def cancel(campaign_id: int, db: Session = Depends(get_db)):
    result = cancel_campaign(db, campaign_id)
    return {
        "campaign_id": result.campaign_id,
        "refunded_amount": result.refunded_amount,
        "voided_count": result.voided_count,
    }


@router.post("/qr/{qr_id}/settle", response_model=SettleRedemptionResponse)
def settle(qr_id: int, payload: SettleRedemptionRequest | None = None, db: Session = Depends(get_db)):
    result = settle_redeemed_code(db, qr_id, reference_id=payload.reference_id if payload else None)
    return {"qr_id": qr_id, "amount": result.amount, "transaction_id": result.transaction.id}
