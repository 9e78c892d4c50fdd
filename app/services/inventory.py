import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import unit_of_work
from app.models import QRCode, QRStatus
from app.services.errors import (
    DuplicateSeedAttempt,
    InsufficientInventory,
    InvalidAmount,
    InvalidLedgerRequest,
)
from app.services.wallet import lock_vendor
from app.utils.money import to_amount


settings = get_settings()
logger = logging.getLogger(__name__)

DEFAULT_AUTO_SERIES = "AUTO"
SERIES_CODE_MAX_LENGTH = 64
QR_HASH_MAX_LENGTH = 128


@dataclass
class SeriesSpec:
    series_code: str
    count: int


@dataclass
class ImportResult:
    series_code: str
    requested: int
    created: int
    duplicates: int


@dataclass
class SeedResult:
    created: int
    total: int


def generate_qr_hash() -> str:
    return secrets.token_hex(32)


def normalize_series_code(value, fallback: Optional[str] = DEFAULT_AUTO_SERIES) -> Optional[str]:
    if not isinstance(value, str):
        return fallback
    trimmed = value.strip()
    if not trimmed:
        return fallback
    return trimmed[:SERIES_CODE_MAX_LENGTH]


def positive_quantity(quantity) -> int:
    if isinstance(quantity, bool):
        raise InvalidLedgerRequest("Quantity must be a positive integer")
    try:
        value = int(quantity)
    except (TypeError, ValueError):
        raise InvalidLedgerRequest("Quantity must be a positive integer")
    # Reject fractional numbers instead of silently truncating them.
    if value <= 0 or (not isinstance(quantity, str) and value != quantity):
        raise InvalidLedgerRequest("Quantity must be a positive integer")
    return value


def _allocation_order(series_code: Optional[str]):
    # Series order first so printed sheets number predictably; id breaks created_at ties
    # (bulk inserts share one transaction timestamp on PostgreSQL).
    if series_code:
        return (QRCode.series_order.asc().nulls_last(), QRCode.created_at.asc(), QRCode.id.asc())
    return (
        QRCode.series_code.asc().nulls_last(),
        QRCode.series_order.asc().nulls_last(),
        QRCode.created_at.asc(),
        QRCode.id.asc(),
    )


def count_available_inventory(db: Session, vendor_id: int, series_code: Optional[str] = None) -> int:
    query = db.query(func.count(QRCode.id)).filter(
        QRCode.vendor_id == vendor_id,
        QRCode.status == QRStatus.INVENTORY,
    )
    if series_code:
        query = query.filter(QRCode.series_code == series_code)
    return int(query.scalar() or 0)


def allocate_inventory_qrs(
    db: Session,
    vendor_id: int,
    campaign_id: int,
    campaign_budget_id: int,
    quantity,
    cashback_amount,
    series_code: Optional[str] = None,
    order_id: Optional[str] = None,
) -> list[QRCode]:
    """Bind `quantity` inventory codes to a campaign budget, or fail without touching any.

    Candidate rows are selected FOR UPDATE inside the caller's unit of work, so the
    availability check is made against locked, live rows: a concurrent allocation
    either waits for this one or sees the codes already flipped to funded.
    """
    safe_quantity = positive_quantity(quantity)
    cashback = to_amount(cashback_amount)
    if cashback is None:
        raise InvalidAmount("Cashback amount must be greater than zero")
    series = normalize_series_code(series_code, None)

    with unit_of_work(db):
        # Serialize allocators per vendor: a LIMIT applied before a FOR UPDATE wait
        # would otherwise return short once the other allocator's rows drop out.
        lock_vendor(db, vendor_id)
        query = db.query(QRCode).filter(
            QRCode.vendor_id == vendor_id,
            QRCode.status == QRStatus.INVENTORY,
        )
        if series:
            query = query.filter(QRCode.series_code == series)
        rows = (
            query.order_by(*_allocation_order(series))
            .limit(safe_quantity)
            .with_for_update()
            .populate_existing()
            .all()
        )

        if len(rows) < safe_quantity:
            series_message = f' for series "{series}"' if series else ""
            logger.warning(
                "Inventory allocation rejected for vendor %s: requested=%s available=%s series=%s",
                vendor_id,
                safe_quantity,
                len(rows),
                series,
            )
            raise InsufficientInventory(
                f"Insufficient QR inventory{series_message}. Please contact admin to provision more codes.",
                requested=safe_quantity,
                available=len(rows),
            )

        for qr in rows:
            qr.status = QRStatus.FUNDED
            qr.campaign_id = campaign_id
            qr.campaign_budget_id = campaign_budget_id
            qr.cashback_amount = cashback
            qr.order_id = order_id
        db.flush()

    logger.info(
        "Allocated %s QR codes to campaign %s (budget %s) for vendor %s",
        safe_quantity,
        campaign_id,
        campaign_budget_id,
        vendor_id,
    )
    return rows


def _next_series_order(db: Session, vendor_id: int, series_code: str) -> int:
    current = (
        db.query(func.max(QRCode.series_order))
        .filter(QRCode.vendor_id == vendor_id, QRCode.series_code == series_code)
        .scalar()
    )
    return int(current or 0) + 1


def _insert_statement(db: Session):
    # Hashes committed concurrently by another import are skipped, not raised.
    if db.get_bind().dialect.name == "postgresql":
        return postgresql_insert(QRCode)
    return sqlite_insert(QRCode)


def _insert_inventory(
    db: Session,
    vendor_id: int,
    hashes: list[str],
    *,
    series_code: str,
    start_order: int,
    source_batch: str,
    imported_at: datetime,
) -> int:
    """Insert inventory rows in chunks, skipping hashes that already exist anywhere.

    Returns the number of rows actually written. Known duplicates are filtered up
    front so series order stays contiguous; a hash that lands concurrently between
    that check and the insert is dropped by the conflict clause and left as a gap.
    """
    chunk_size = max(1, int(settings.inventory_insert_chunk_size))
    order = start_order
    created = 0
    for index in range(0, len(hashes), chunk_size):
        chunk = hashes[index:index + chunk_size]
        existing = {
            row[0] for row in db.query(QRCode.unique_hash).filter(QRCode.unique_hash.in_(chunk)).all()
        }
        rows = []
        for unique_hash in chunk:
            if unique_hash in existing:
                continue
            rows.append(
                {
                    "vendor_id": vendor_id,
                    "unique_hash": unique_hash,
                    "series_code": series_code,
                    "series_order": order,
                    "source_batch": source_batch,
                    "imported_at": imported_at,
                    "status": QRStatus.INVENTORY,
                    "cashback_amount": Decimal("0.00"),
                }
            )
            order += 1
        if not rows:
            continue
        statement = (
            _insert_statement(db)
            .values(rows)
            .on_conflict_do_nothing(index_elements=[QRCode.unique_hash])
            .returning(QRCode.id)
        )
        inserted = db.execute(statement).all()
        created += len(inserted)
        if len(inserted) < len(rows):
            logger.warning(
                "Skipped %s QR hashes inserted concurrently for vendor %s series %s",
                len(rows) - len(inserted),
                vendor_id,
                series_code,
            )
    return created


def import_inventory_series(
    db: Session,
    vendor_id: int,
    series_code: str,
    hashes: Iterable,
    source_batch: Optional[str] = None,
) -> ImportResult:
    series = normalize_series_code(series_code, None)
    if not series:
        raise InvalidLedgerRequest("series_code is required")

    sanitized = list(
        dict.fromkeys(
            str(item).strip()
            for item in (hashes or [])
            if item is not None and str(item).strip()
        )
    )
    if not sanitized:
        raise InvalidLedgerRequest("At least one QR hash is required")
    if any(len(item) > QR_HASH_MAX_LENGTH for item in sanitized):
        raise InvalidLedgerRequest(f"QR hashes must be at most {QR_HASH_MAX_LENGTH} characters")

    with unit_of_work(db):
        lock_vendor(db, vendor_id)
        created = _insert_inventory(
            db,
            vendor_id,
            sanitized,
            series_code=series,
            start_order=_next_series_order(db, vendor_id, series),
            source_batch=(source_batch or f"IMPORT_{series}")[:96],
            imported_at=datetime.now(timezone.utc),
        )

    duplicates = len(sanitized) - created
    logger.info(
        "Imported series %s for vendor %s: requested=%s created=%s duplicates=%s",
        series,
        vendor_id,
        len(sanitized),
        created,
        duplicates,
    )
    return ImportResult(series_code=series, requested=len(sanitized), created=created, duplicates=duplicates)


def seed_vendor_inventory(
    db: Session,
    vendor_id: int,
    target_count: Optional[int] = None,
    series: Optional[list[SeriesSpec]] = None,
) -> SeedResult:
    """One-time initial stock for a vendor.

    Refuses when the vendor owns any QR code at all, whatever its status: a vendor
    that has already consumed part of its pool must not be topped up by a reseed.
    """
    if series:
        plan = [
            SeriesSpec(normalize_series_code(spec.series_code), positive_quantity(spec.count))
            for spec in series
        ]
    else:
        # An explicit 0 is rejected rather than replaced by the default.
        count = settings.inventory_seed_default_count if target_count is None else target_count
        plan = [SeriesSpec(DEFAULT_AUTO_SERIES, positive_quantity(count))]

    with unit_of_work(db):
        lock_vendor(db, vendor_id)
        existing = db.query(func.count(QRCode.id)).filter(QRCode.vendor_id == vendor_id).scalar() or 0
        if existing:
            logger.warning("Refusing to reseed vendor %s: %s QR codes already exist", vendor_id, existing)
            raise DuplicateSeedAttempt(
                f"Vendor {vendor_id} already has {existing} QR codes; inventory can only be seeded once",
                existing=int(existing),
            )

        imported_at = datetime.now(timezone.utc)
        created = 0
        for spec in plan:
            created += _insert_inventory(
                db,
                vendor_id,
                [generate_qr_hash() for _ in range(spec.count)],
                series_code=spec.series_code,
                start_order=_next_series_order(db, vendor_id, spec.series_code),
                source_batch="AUTO_SEED",
                imported_at=imported_at,
            )
        total = count_available_inventory(db, vendor_id)

    logger.info("Seeded %s QR codes for vendor %s", created, vendor_id)
    return SeedResult(created=created, total=total)


def inventory_summary(db: Session, vendor_id: int) -> dict:
    by_status = {
        (status.value if isinstance(status, QRStatus) else str(status)): int(count)
        for status, count in db.query(QRCode.status, func.count(QRCode.id))
        .filter(QRCode.vendor_id == vendor_id)
        .group_by(QRCode.status)
        .all()
    }
    available_by_series = {
        (series_code or ""): int(count)
        for series_code, count in db.query(QRCode.series_code, func.count(QRCode.id))
        .filter(QRCode.vendor_id == vendor_id, QRCode.status == QRStatus.INVENTORY)
        .group_by(QRCode.series_code)
        .all()
    }
    return {
        "vendor_id": vendor_id,
        "by_status": by_status,
        "available": sum(available_by_series.values()),
        "available_by_series": available_by_series,
    }
