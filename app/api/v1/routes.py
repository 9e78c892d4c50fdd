from fastapi import APIRouter, Depends
from app.api.v1.endpoints import wallet, inventory, campaigns, reconciliation
from app.dependencies import require_service_key

router = APIRouter(dependencies=[Depends(require_service_key)])

router.include_router(wallet.router, prefix="/wallet", tags=["wallet"])
router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
router.include_router(campaigns.router, prefix="/campaigns", tags=["campaigns"])
router.include_router(reconciliation.router, prefix="/reconciliation", tags=["reconciliation"])
