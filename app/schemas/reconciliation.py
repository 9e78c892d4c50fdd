from decimal import Decimal

from pydantic import BaseModel


class BackfillResponse(BaseModel):
    vendor_id: int
    budgets_touched: list[int]
    codes_linked: int
    locked_amount: Decimal
    skipped_campaigns: list[int]
    invoices_created: int
