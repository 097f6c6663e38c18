class CatalogError(Exception):
    """Base class for catalog and layout errors."""


class LayoutLoadError(CatalogError):
    """The persisted layout file exists but could not be read or parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load layout from {path}: {reason}")
