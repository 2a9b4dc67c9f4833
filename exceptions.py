class LoanLedgerError(Exception):
    """Base exception for loan ledger errors."""


class LoanValidationError(LoanLedgerError, ValueError):
    """Loan fields fail validation at construction."""


class InvalidReturnDateError(LoanLedgerError):
    """Return date falls before the loan date."""
