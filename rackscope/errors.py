# ==============================================
# Errors
# ==============================================
#
# Exception taxonomy shared by every topic.
#
#   RackscopeError
#   ├── StorageError          catalog / rack store I/O failed
#   ├── ScrapeError           scrape collaborator could not produce a rack
#   └── RackUnavailableError  even the guaranteed fallback rack failed
#
# Classification ambiguity is never an error (it resolves to "Other").
# ==============================================


class RackscopeError(Exception):
    """Base class for all rackscope errors."""


class StorageError(RackscopeError):
    """Raised when the persistent catalog cannot be read or written."""


class ScrapeError(RackscopeError):
    """Raised when a rack could not be scraped."""

    def __init__(self, source_id: str, message: str):
        super().__init__(f"Failed to scrape {source_id}: {message}")
        self.source_id = source_id


class RackUnavailableError(RackscopeError):
    """Raised when no rack could be retrieved at all."""
