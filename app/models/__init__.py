from app.models.vendor import Vendor, Campaign
from app.models.wallet import Wallet
from app.models.transaction import (
    Transaction,
    TransactionType,
    TransactionStatus,
    TransactionCategory,
    RESERVATION_CATEGORIES,
)
from app.models.campaign_budget import CampaignBudget, CampaignBudgetStatus, CampaignBudgetSource
from app.models.qr_code import QRCode, QRStatus, LIVE_QR_STATUSES
from app.models.invoice import Invoice, InvoiceItem, InvoiceSequence, InvoiceType, InvoiceStatus

__all__ = [
    "Vendor",
    "Campaign",
    "Wallet",
    "Transaction",
    "TransactionType",
    "TransactionStatus",
    "TransactionCategory",
    "RESERVATION_CATEGORIES",
    "CampaignBudget",
    "CampaignBudgetStatus",
    "CampaignBudgetSource",
    "QRCode",
    "QRStatus",
    "LIVE_QR_STATUSES",
    "Invoice",
    "InvoiceItem",
    "InvoiceSequence",
    "InvoiceType",
    "InvoiceStatus",
]
