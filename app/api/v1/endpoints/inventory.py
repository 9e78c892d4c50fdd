from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.inventory import (
    ImportSeriesRequest,
    ImportSeriesResponse,
    InventorySummaryOut,
    SeedInventoryRequest,
    SeedInventoryResponse,
)
from app.services.inventory import SeriesSpec, import_inventory_series, inventory_summary, seed_vendor_inventory

router = APIRouter()


@router.post("/{vendor_id}/series", response_model=ImportSeriesResponse)
def import_series(vendor_id: int, payload: ImportSeriesRequest, db: Session = Depends(get_db)):
    result = import_inventory_series(
        db,
        vendor_id,
        payload.series_code,
        payload.hashes,
        source_batch=payload.source_batch,
    )
    return asdict(result)


@router.post("/{vendor_id}/seed", response_model=SeedInventoryResponse)
def seed_inventory(vendor_id: int, payload: SeedInventoryRequest, db: Session = Depends(get_db)):
    series = [SeriesSpec(spec.series_code, spec.count) for spec in payload.series] if payload.series else None
    result = seed_vendor_inventory(db, vendor_id, target_count=payload.target_count, series=series)
    return {"created": result.created, "total": result.total}


@router.get("/{vendor_id}/summary", response_model=InventorySummaryOut)
def read_inventory_summary(vendor_id: int, db: Session = Depends(get_db)):
    return inventory_summary(db, vendor_id)
