import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import unit_of_work
from app.models import (
    Vendor,
    Wallet,
    Transaction,
    TransactionType,
    TransactionStatus,
    TransactionCategory,
    RESERVATION_CATEGORIES,
)
from app.services.errors import (
    InvalidAmount,
    InvalidLedgerRequest,
    InsufficientAvailableBalance,
    InsufficientLockedBalance,
    VendorNotFound,
    WalletNotFound,
)
from app.utils.money import to_amount, to_money


settings = get_settings()
logger = logging.getLogger(__name__)

_METADATA_SCALARS = (str, int, float, bool)
# Categories that move locked funds; only lock, unlock_refund and spend_locked may write them.
_PRIMITIVE_ONLY_CATEGORIES = RESERVATION_CATEGORIES | {TransactionCategory.LOCKED_SPEND}


@dataclass
class LedgerRefs:
    category: Optional[TransactionCategory] = None
    description: Optional[str] = None
    reference_id: Optional[str] = None
    campaign_budget_id: Optional[int] = None
    invoice_id: Optional[int] = None
    qr_id: Optional[int] = None
    idempotency_key: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


@dataclass
class LedgerResult:
    wallet: Wallet
    transaction: Transaction
    amount: Decimal


def clean_metadata(metadata: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Validate a ledger payload: string keys, primitive values. Decimals are kept as strings."""
    if metadata is None:
        return None
    if not isinstance(metadata, dict):
        raise InvalidLedgerRequest("Ledger metadata must be a mapping")
    cleaned: dict[str, Any] = {}
    for key, value in metadata.items():
        if not isinstance(key, str) or not key:
            raise InvalidLedgerRequest("Ledger metadata keys must be non-empty strings")
        if isinstance(value, Decimal):
            value = str(value)
        elif value is not None and not isinstance(value, _METADATA_SCALARS):
            raise InvalidLedgerRequest(f"Unsupported metadata value for '{key}'")
        cleaned[key] = value
    return cleaned or None


def available_balance(wallet: Wallet) -> Decimal:
    return to_money(wallet.balance) - to_money(wallet.locked_balance)


def wallet_snapshot(wallet: Wallet) -> dict:
    total = to_money(wallet.balance)
    locked = to_money(wallet.locked_balance)
    return {
        "vendor_id": wallet.vendor_id,
        "currency": wallet.currency,
        "total_balance": total,
        "locked_balance": locked,
        "available_balance": total - locked,
    }


def _require_amount(amount, message: str) -> Decimal:
    value = to_amount(amount)
    if value is None:
        raise InvalidAmount(message)
    return value


def lock_wallet(db: Session, vendor_id: int) -> Optional[Wallet]:
    """Row-lock the vendor's wallet, if it exists.

    Wallet-affecting units take this lock first, before vendor, QR, budget or
    invoice-sequence rows, so concurrent units always lock in the same order.
    """
    # populate_existing: never trust a balance cached in the identity map.
    return (
        db.query(Wallet)
        .filter(Wallet.vendor_id == vendor_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def lock_vendor(db: Session, vendor_id: int) -> Vendor:
    vendor = db.query(Vendor).filter(Vendor.id == vendor_id).with_for_update().first()
    if not vendor:
        raise VendorNotFound(f"Vendor {vendor_id} not found")
    return vendor


def ensure_wallet(db: Session, vendor_id: int) -> Wallet:
    """Return the vendor's wallet row-locked for update, creating it on first use."""
    with unit_of_work(db):
        wallet = lock_wallet(db, vendor_id)
        if wallet:
            return wallet
        # Serialize first-time creation on the vendor row.
        lock_vendor(db, vendor_id)
        wallet = lock_wallet(db, vendor_id)
        if not wallet:
            wallet = Wallet(
                vendor_id=vendor_id,
                balance=Decimal("0.00"),
                locked_balance=Decimal("0.00"),
                currency=settings.wallet_currency,
            )
            db.add(wallet)
            db.flush()
            logger.info("Created wallet %s for vendor %s", wallet.id, vendor_id)
        return wallet


def get_wallet(db: Session, vendor_id: int) -> Wallet:
    wallet = db.query(Wallet).filter(Wallet.vendor_id == vendor_id).first()
    if not wallet:
        raise WalletNotFound(f"Wallet not found for vendor {vendor_id}")
    return wallet


def _require_wallet(db: Session, vendor_id: int) -> Wallet:
    wallet = lock_wallet(db, vendor_id)
    if not wallet:
        raise WalletNotFound(f"Wallet not found for vendor {vendor_id}")
    return wallet


def _resolve_category(refs: LedgerRefs, default: TransactionCategory) -> TransactionCategory:
    if refs.category is None:
        return default
    category = TransactionCategory(refs.category)
    if category in _PRIMITIVE_ONLY_CATEGORIES:
        raise InvalidLedgerRequest(f"Category '{category.value}' is reserved for lock/unlock/spend entries")
    return category


def _record_entry(
    db: Session,
    wallet: Wallet,
    entry_type: TransactionType,
    category: TransactionCategory,
    amount: Decimal,
    refs: LedgerRefs,
    default_description: str,
) -> Transaction:
    entry = Transaction(
        wallet_id=wallet.id,
        entry_type=entry_type,
        category=category,
        amount=amount,
        status=TransactionStatus.SUCCESS,
        description=refs.description or default_description,
        reference_id=refs.reference_id,
        campaign_budget_id=refs.campaign_budget_id,
        invoice_id=refs.invoice_id,
        qr_id=refs.qr_id,
        idempotency_key=refs.idempotency_key,
        meta=clean_metadata(refs.metadata),
    )
    db.add(entry)
    # Flush so the next primitive in the same unit re-reads the new balance.
    db.flush()
    logger.info(
        "Ledger %s %s %s on wallet %s (vendor %s)",
        entry_type.value,
        category.value,
        amount,
        wallet.id,
        wallet.vendor_id,
    )
    return entry


def credit(db: Session, vendor_id: int, amount, refs: Optional[LedgerRefs] = None) -> LedgerResult:
    refs = refs or LedgerRefs()
    value = _require_amount(amount, "Amount must be greater than zero")
    category = _resolve_category(refs, TransactionCategory.RECHARGE)
    with unit_of_work(db):
        wallet = ensure_wallet(db, vendor_id)
        wallet.balance = to_money(wallet.balance) + value
        entry = _record_entry(db, wallet, TransactionType.CREDIT, category, value, refs, "Wallet credited")
    return LedgerResult(wallet=wallet, transaction=entry, amount=value)


def lock(db: Session, vendor_id: int, amount, refs: Optional[LedgerRefs] = None) -> LedgerResult:
    refs = refs or LedgerRefs()
    value = _require_amount(amount, "Lock amount must be greater than zero")
    with unit_of_work(db):
        wallet = ensure_wallet(db, vendor_id)
        if available_balance(wallet) < value:
            raise InsufficientAvailableBalance(
                f"Insufficient available wallet balance to lock {value}",
                available=str(available_balance(wallet)),
            )
        wallet.locked_balance = to_money(wallet.locked_balance) + value
        entry = _record_entry(
            db, wallet, TransactionType.DEBIT, TransactionCategory.LOCK_FUNDS, value, refs, "Funds locked for campaign"
        )
    return LedgerResult(wallet=wallet, transaction=entry, amount=value)


def charge_fee(db: Session, vendor_id: int, amount, refs: Optional[LedgerRefs] = None) -> LedgerResult:
    refs = refs or LedgerRefs()
    value = _require_amount(amount, "Fee amount must be greater than zero")
    category = _resolve_category(refs, TransactionCategory.TECH_FEE_CHARGE)
    with unit_of_work(db):
        wallet = ensure_wallet(db, vendor_id)
        # Locked funds are never touched by a fee.
        if available_balance(wallet) < value:
            raise InsufficientAvailableBalance(
                f"Insufficient available wallet balance to charge fee {value}",
                available=str(available_balance(wallet)),
            )
        wallet.balance = to_money(wallet.balance) - value
        entry = _record_entry(db, wallet, TransactionType.DEBIT, category, value, refs, "Technology fee charged")
    return LedgerResult(wallet=wallet, transaction=entry, amount=value)


def spend_locked(db: Session, vendor_id: int, amount, refs: Optional[LedgerRefs] = None) -> LedgerResult:
    refs = refs or LedgerRefs()
    value = _require_amount(amount, "Spend amount must be greater than zero")
    with unit_of_work(db):
        wallet = _require_wallet(db, vendor_id)
        if to_money(wallet.locked_balance) < value:
            raise InsufficientLockedBalance(f"Insufficient locked wallet balance to spend {value}")
        if to_money(wallet.balance) < value:
            raise InsufficientLockedBalance("Wallet balance is lower than spend amount")
        wallet.balance = to_money(wallet.balance) - value
        wallet.locked_balance = to_money(wallet.locked_balance) - value
        entry = _record_entry(
            db,
            wallet,
            TransactionType.DEBIT,
            TransactionCategory.LOCKED_SPEND,
            value,
            refs,
            "Locked funds spent on redemption",
        )
    return LedgerResult(wallet=wallet, transaction=entry, amount=value)


def unlock_refund(db: Session, vendor_id: int, amount, refs: Optional[LedgerRefs] = None) -> LedgerResult:
    refs = refs or LedgerRefs()
    value = _require_amount(amount, "Refund amount must be greater than zero")
    with unit_of_work(db):
        wallet = _require_wallet(db, vendor_id)
        if to_money(wallet.locked_balance) < value:
            raise InsufficientLockedBalance(f"Insufficient locked wallet balance to release {value}")
        wallet.locked_balance = to_money(wallet.locked_balance) - value
        entry = _record_entry(
            db,
            wallet,
            TransactionType.CREDIT,
            TransactionCategory.UNLOCK_REFUND,
            value,
            refs,
            "Locked funds refunded to available balance",
        )
    return LedgerResult(wallet=wallet, transaction=entry, amount=value)
