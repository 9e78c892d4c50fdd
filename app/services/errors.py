class LedgerError(Exception):
    """A rejected business operation. Aborts the enclosing unit of work."""

    status_code = 400
    code = "LEDGER_ERROR"
    hint = "Check the request and try again."

    def __init__(self, message: str | None = None, *, hint: str | None = None, **context):
        self.message = message or self.__class__.__doc__ or self.code
        if hint:
            self.hint = hint
        self.context = context
        super().__init__(self.message)

    def to_detail(self) -> dict:
        return {
            "message": self.message,
            "code": self.code,
            "hint": self.hint,
        }


class InvalidAmount(LedgerError):
    """Amount must be greater than zero."""

    code = "INVALID_AMOUNT"
    hint = "Use a positive amount with at most two decimal places."


class InvalidLedgerRequest(LedgerError):
    code = "INVALID_REQUEST"


class InsufficientAvailableBalance(LedgerError):
    """Insufficient available wallet balance."""

    code = "INSUFFICIENT_AVAILABLE_BALANCE"
    hint = "Recharge the wallet or lower the amount."


class InsufficientLockedBalance(LedgerError):
    """Insufficient locked wallet balance."""

    code = "INSUFFICIENT_LOCKED_BALANCE"
    hint = "Only reserved funds can be spent or released."


class InsufficientInventory(LedgerError):
    """Insufficient QR inventory. Please contact admin to provision more codes."""

    code = "INSUFFICIENT_INVENTORY"
    hint = "Import or seed more QR codes for this vendor."


class WalletNotFound(LedgerError):
    """Wallet not found."""

    status_code = 404
    code = "WALLET_NOT_FOUND"
    hint = "The vendor has no wallet yet; recharge it first."


class VendorNotFound(LedgerError):
    """Vendor not found."""

    status_code = 404
    code = "VENDOR_NOT_FOUND"
    hint = "Create the vendor before issuing financial operations."


class CampaignNotFound(LedgerError):
    """Campaign not found."""

    status_code = 404
    code = "CAMPAIGN_NOT_FOUND"
    hint = "Check the campaign id and its owning vendor."


class QRCodeNotFound(LedgerError):
    """QR code not found."""

    status_code = 404
    code = "QR_CODE_NOT_FOUND"


class BudgetInvariantViolation(LedgerError):
    """Campaign budget amounts are inconsistent."""

    status_code = 409
    code = "BUDGET_INVARIANT_VIOLATION"
    hint = "Run reconciliation for the vendor and retry."


class DuplicateSeedAttempt(LedgerError):
    """Vendor inventory has already been seeded."""

    status_code = 409
    code = "DUPLICATE_SEED_ATTEMPT"
    hint = "Use series import to add more codes to an existing vendor."
