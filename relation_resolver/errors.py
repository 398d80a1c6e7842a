from typing import Optional


class SchemaLoadError(Exception):
    """Raised when a schema source exists but cannot be read or inspected."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source
