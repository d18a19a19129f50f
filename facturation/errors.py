"""
Error taxonomy for Factur-X generation.

Field-level problems are collected and carried by ``ValidationError``;
structural and I/O problems (``LoadError``, ``ContainerError``) abort the
generation on first occurrence.
"""
from __future__ import annotations


class FacturXError(Exception):
    """Base class for every error raised by this package."""


class FormatError(FacturXError):
    """A date, currency, country, VAT or SIRET string is malformed."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class DateFormatError(FormatError):
    """A date is not in the ``YYYY-MM-DD`` layout."""


class ValidationError(FacturXError):
    """One or more required fields are missing or invalid.

    ``errors`` holds every problem found (``FieldError`` objects or plain
    messages from the PDF/A structural check), so callers can report all
    of them at once.
    """

    def __init__(self, message: str, errors: list | None = None):
        self.errors = list(errors or [])
        if self.errors:
            message = f"{message}: " + "; ".join(str(e) for e in self.errors)
        super().__init__(message)


class LoadError(FacturXError):
    """A font, logo, configuration or storage file could not be read or written."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class ContainerError(FacturXError):
    """The PDF container could not be parsed, modified or saved."""
