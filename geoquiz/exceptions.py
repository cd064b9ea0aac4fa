"""Exceptions raised by the quiz."""


class GeoquizError(Exception):
    """Base class for quiz errors."""
    pass


class ImportSourceError(GeoquizError):
    """Raised when an import source cannot be read or parsed."""
    pass
