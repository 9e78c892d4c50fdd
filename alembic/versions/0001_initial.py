"""initial

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade():
    op.create_table(
        "vendors",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("business_name", sa.String(255), nullable=False),
        sa.Column("contact_email", sa.String(255), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "campaigns",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("vendor_id", sa.Integer, sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_campaigns_vendor_id", "campaigns", ["vendor_id"], unique=False)

    op.create_table(
        "wallets",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("vendor_id", sa.Integer, sa.ForeignKey("vendors.id"), nullable=False, unique=True),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("locked_balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="INR"),
        *_timestamps(),
        sa.CheckConstraint("locked_balance >= 0", name="ck_wallets_locked_non_negative"),
        sa.CheckConstraint("locked_balance <= balance", name="ck_wallets_locked_within_balance"),
    )
    op.create_index("ix_wallets_vendor_id", "wallets", ["vendor_id"], unique=False)

    op.create_table(
        "campaign_budgets",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("campaign_id", sa.Integer, sa.ForeignKey("campaigns.id"), nullable=True),
        sa.Column("vendor_id", sa.Integer, sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("initial_locked_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("locked_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("spent_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("refunded_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum("ACTIVE", "CLOSED", "REFUNDED", name="campaignbudgetstatus"),
            nullable=False,
        ),
        sa.Column("source", sa.String(24), nullable=False, server_default="funding"),
        *_timestamps(),
        sa.CheckConstraint("locked_amount >= 0", name="ck_campaign_budgets_locked_non_negative"),
        sa.CheckConstraint("spent_amount >= 0", name="ck_campaign_budgets_spent_non_negative"),
        sa.CheckConstraint("refunded_amount >= 0", name="ck_campaign_budgets_refunded_non_negative"),
    )
    op.create_index(
        "ix_campaign_budgets_campaign_status", "campaign_budgets", ["campaign_id", "status"], unique=False
    )
    op.create_index("ix_campaign_budgets_vendor_status", "campaign_budgets", ["vendor_id", "status"], unique=False)

    op.create_table(
        "qr_codes",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("vendor_id", sa.Integer, sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("unique_hash", sa.String(128), nullable=False, unique=True),
        sa.Column("series_code", sa.String(64), nullable=True),
        sa.Column("series_order", sa.Integer, nullable=True),
        sa.Column("source_batch", sa.String(96), nullable=True),
        sa.Column("imported_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "INVENTORY",
                "FUNDED",
                "GENERATED",
                "ASSIGNED",
                "ACTIVE",
                "REDEEMED",
                "EXPIRED",
                "BLOCKED",
                "VOID",
                name="qrstatus",
            ),
            nullable=False,
        ),
        sa.Column("cashback_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("campaign_id", sa.Integer, sa.ForeignKey("campaigns.id"), nullable=True),
        sa.Column("campaign_budget_id", sa.Integer, sa.ForeignKey("campaign_budgets.id"), nullable=True),
        sa.Column("order_id", sa.String(64), nullable=True),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_qr_codes_vendor_status_series", "qr_codes", ["vendor_id", "status", "series_code"], unique=False
    )
    op.create_index(
        "ix_qr_codes_vendor_series_order", "qr_codes", ["vendor_id", "series_code", "series_order"], unique=False
    )
    op.create_index(
        "ix_qr_codes_campaign_budget_status", "qr_codes", ["campaign_budget_id", "status"], unique=False
    )
    op.create_index("ix_qr_codes_campaign_status", "qr_codes", ["campaign_id", "status"], unique=False)

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("number", sa.String(32), nullable=False, unique=True),
        sa.Column("vendor_id", sa.Integer, sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("campaign_budget_id", sa.Integer, sa.ForeignKey("campaign_budgets.id"), nullable=True),
        sa.Column(
            "invoice_type",
            sa.Enum(
                "FEE_TAX_INVOICE",
                "DEPOSIT_RECEIPT",
                "LOCK_RECEIPT",
                "REFUND_RECEIPT",
                name="invoicetype",
            ),
            nullable=False,
        ),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("tax", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.Enum("ISSUED", "VOID", name="invoicestatus"), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("metadata", sa.JSON, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_invoices_vendor_issued_at", "invoices", ["vendor_id", "issued_at"], unique=False)

    op.create_table(
        "invoice_items",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("invoice_id", sa.Integer, sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("label", sa.String(255), nullable=False),
        sa.Column("qty", sa.Integer, nullable=False, server_default="1"),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("hsn_sac", sa.String(16), nullable=True),
        sa.Column("tax_rate", sa.Numeric(5, 2), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_invoice_items_invoice_id", "invoice_items", ["invoice_id"], unique=False)

    op.create_table(
        "invoice_sequences",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("prefix", sa.String(8), nullable=False),
        sa.Column("fy_code", sa.String(8), nullable=False),
        sa.Column("last_value", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("prefix", "fy_code", name="uq_invoice_sequences_prefix_fy"),
    )

    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("wallet_id", sa.Integer, sa.ForeignKey("wallets.id"), nullable=False),
        sa.Column("entry_type", sa.Enum("CREDIT", "DEBIT", name="transactiontype"), nullable=False),
        sa.Column(
            "category",
            sa.Enum(
                "RECHARGE",
                "LOCK_FUNDS",
                "UNLOCK_REFUND",
                "TECH_FEE_CHARGE",
                "LOCKED_SPEND",
                "ADMIN_ADJUSTMENT",
                "WITHDRAWAL",
                "REFUND",
                "CASHBACK_PAYOUT",
                "QR_PURCHASE",
                "CAMPAIGN_PAYMENT",
                name="transactioncategory",
            ),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING", "SUCCESS", "FAILED", "REFUNDED", name="transactionstatus"),
            nullable=False,
        ),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("reference_id", sa.String(64), nullable=True),
        sa.Column("campaign_budget_id", sa.Integer, sa.ForeignKey("campaign_budgets.id"), nullable=True),
        sa.Column("invoice_id", sa.Integer, sa.ForeignKey("invoices.id"), nullable=True),
        sa.Column("qr_id", sa.Integer, sa.ForeignKey("qr_codes.id"), nullable=True),
        sa.Column("idempotency_key", sa.String(96), nullable=True, unique=True),
        sa.Column("metadata", sa.JSON, nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_wallet_transactions_amount_positive"),
    )
    op.create_index(
        "ix_wallet_transactions_wallet_status", "wallet_transactions", ["wallet_id", "status"], unique=False
    )
    op.create_index(
        "ix_wallet_transactions_campaign_budget_id", "wallet_transactions", ["campaign_budget_id"], unique=False
    )
    op.create_index("ix_wallet_transactions_invoice_id", "wallet_transactions", ["invoice_id"], unique=False)
    op.create_index("ix_wallet_transactions_reference_id", "wallet_transactions", ["reference_id"], unique=False)


def downgrade():
    op.drop_table("wallet_transactions")
    op.drop_table("invoice_sequences")
    op.drop_table("invoice_items")
    op.drop_table("invoices")
    op.drop_table("qr_codes")
    op.drop_table("campaign_budgets")
    op.drop_table("wallets")
    op.drop_table("campaigns")
    op.drop_table("vendors")
    op.execute("DROP TYPE IF EXISTS transactioncategory")
    op.execute("DROP TYPE IF EXISTS transactionstatus")
    op.execute("DROP TYPE IF EXISTS transactiontype")
    op.execute("DROP TYPE IF EXISTS invoicestatus")
    op.execute("DROP TYPE IF EXISTS invoicetype")
    op.execute("DROP TYPE IF EXISTS qrstatus")
    op.execute("DROP TYPE IF EXISTS campaignbudgetstatus")
