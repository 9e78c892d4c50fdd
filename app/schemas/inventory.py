from typing import Optional

from pydantic import BaseModel, Field


class ImportSeriesRequest(BaseModel):
    series_code: str = Field(..., min_length=1, max_length=64)
    hashes: list[str] = Field(..., min_length=1)
    source_batch: Optional[str] = Field(default=None, max_length=96)


class ImportSeriesResponse(BaseModel):
    series_code: str
    requested: int
    created: int
    duplicates: int


class SeriesSpecIn(BaseModel):
    series_code: str = Field(..., min_length=1, max_length=64)
    count: int = Field(..., gt=0)


class SeedInventoryRequest(BaseModel):
    target_count: Optional[int] = Field(default=None, gt=0)
    series: Optional[list[SeriesSpecIn]] = None


class SeedInventoryResponse(BaseModel):
    created: int
    total: int


class InventorySummaryOut(BaseModel):
    vendor_id: int
    by_status: dict[str, int]
    available: int
    available_by_series: dict[str, int]
