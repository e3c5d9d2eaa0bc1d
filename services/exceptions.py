class UploadValidationError(Exception):
    """Raised when an uploaded file fails validation (e.g., wrong headers, bad data)."""
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class DataProcessingError(Exception):
    """Raised when something goes wrong in a processing pipeline."""
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ConfigError(Exception):
    """Raised when config.json describes an impossible sheet layout."""
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class PreconditionError(Exception):
    """Raised when a write request is missing its sheet, date, time, manager or items."""
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class SheetReadError(Exception):
    """Raised when the catalog or inventory sheet can't be read."""
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class NoWriteSlotError(Exception):
    """Raised when every candidate ledger column group already holds data."""
    def __init__(self, message, update_keys=None):
        super().__init__(message)
        self.message = message
        self.update_keys = list(update_keys or [])


class PartialWriteError(Exception):
    """Raised when some of the dispatched range writes failed."""
    def __init__(self, message, report):
        super().__init__(message)
        self.message = message
        self.report = report
