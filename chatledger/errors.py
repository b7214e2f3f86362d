class LedgerError(Exception):
    """Base class for errors raised by the ledger bot."""


class LedgerValidationError(LedgerError):
    """A financial record failed domain validation."""


class NLPServiceError(LedgerError):
    """The language model could not be reached or returned an error."""


class HandlerRegistryError(LedgerError):
    """The intent handler set does not cover every intent exactly once."""
