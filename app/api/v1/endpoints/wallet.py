from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db, unit_of_work
from app.models import InvoiceType, Transaction
from app.schemas.wallet import RechargeRequest, RechargeResponse, TransactionOut, WalletAuditOut, WalletOut
from app.services.invoice import issue_receipt
from app.services.reconciliation import audit_wallet
from app.services.wallet import LedgerRefs, credit, get_wallet, wallet_snapshot

router = APIRouter()


@router.get("/{vendor_id}", response_model=WalletOut)
def read_wallet(vendor_id: int, db: Session = Depends(get_db)):
    return wallet_snapshot(get_wallet(db, vendor_id))


@router.get("/{vendor_id}/transactions", response_model=list[TransactionOut])
def list_transactions(
    vendor_id: int,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    wallet = get_wallet(db, vendor_id)
    return (
        db.query(Transaction)
        .filter(Transaction.wallet_id == wallet.id)
        .order_by(Transaction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


@router.post("/{vendor_id}/recharge", response_model=RechargeResponse)
def recharge_wallet(vendor_id: int, payload: RechargeRequest, db: Session = Depends(get_db)):
    with unit_of_work(db):
        result = credit(
            db,
            vendor_id,
            payload.amount,
            LedgerRefs(
                description=payload.description or "Wallet recharge",
                reference_id=payload.reference_id,
            ),
        )
        receipt = issue_receipt(
            db,
            vendor_id=vendor_id,
            invoice_type=InvoiceType.DEPOSIT_RECEIPT,
            label="Wallet recharge",
            amount=result.amount,
            metadata={"reference_id": payload.reference_id} if payload.reference_id else None,
        )
        result.transaction.invoice_id = receipt.id
        db.flush()
        invoice_number = receipt.number

    return {
        "wallet": wallet_snapshot(result.wallet),
        "transaction": result.transaction,
        "invoice_number": invoice_number,
    }


@router.get("/{vendor_id}/audit", response_model=WalletAuditOut)
def read_wallet_audit(vendor_id: int, db: Session = Depends(get_db)):
    audit = audit_wallet(db, vendor_id)
    return {
        "vendor_id": audit.vendor_id,
        "balance": audit.balance,
        "expected_balance": audit.expected_balance,
        "locked_balance": audit.locked_balance,
        "expected_locked_balance": audit.expected_locked_balance,
        "is_consistent": audit.is_consistent,
    }
