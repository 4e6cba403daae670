# cotizador/errors.py
"""Exceptions raised by quote operations and handled by the web layer."""


class QuoteError(Exception):
    """Base class for recoverable quote errors."""


class ValidationError(QuoteError):
    """The quote failed a business rule; nothing was exported or saved."""

    def __init__(self, rule: str, message: str) -> None:
        super().__init__(message)
        self.rule = rule
        self.message = message


class ExportError(QuoteError):
    """PDF generation or delivery failed."""


class PersistenceError(QuoteError):
    """Reading or writing the local quote store failed."""


class BusyError(QuoteError):
    """Another export or save is still in flight."""
