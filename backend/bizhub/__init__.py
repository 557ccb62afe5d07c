"""BizHub Ledger — auditable activity log and invoice voiding."""

__version__ = "1.0.0"
