from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db, unit_of_work
from app.schemas.reconciliation import BackfillResponse
from app.services.reconciliation import reconcile_vendor
from app.services.wallet import lock_vendor, lock_wallet

router = APIRouter()


@router.post("/{vendor_id}/backfill", response_model=BackfillResponse)
def backfill_vendor(vendor_id: int, db: Session = Depends(get_db)):
    with unit_of_work(db):
        if lock_wallet(db, vendor_id) is None:
            lock_vendor(db, vendor_id)
        report = reconcile_vendor(db, vendor_id)
    budgets = report["locked_budgets"]
    return {
        "vendor_id": vendor_id,
        "budgets_touched": budgets.budgets_touched,
        "codes_linked": budgets.codes_linked,
        "locked_amount": budgets.locked_amount,
        "skipped_campaigns": budgets.skipped_campaigns,
        "invoices_created": report["invoices"].invoices_created,
    }
