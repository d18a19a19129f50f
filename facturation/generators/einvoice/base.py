"""
Abstract base for the structured e-invoice payload.

To add a new profile or syntax:
1. Subclass ``EInvoiceStandard``
2. Implement ``generate_xml()`` and ``xml_filename`` / ``profile``
3. Register it in ``facturation/generators/einvoice/__init__.py`` STANDARDS dict
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from facturation.generators.einvoice.xmp import FacturXProfile
from facturation.models import EmitterConfig, FieldError, InvoiceForm, InvoiceTotals

FACTURX_FILENAME = "factur-x.xml"


class EInvoiceStandard(ABC):
    """Abstract base for an e-invoice standard."""

    @property
    @abstractmethod
    def standard_name(self) -> str:
        """Human-readable name, e.g. 'Factur-X MINIMUM'."""

    @property
    @abstractmethod
    def profile(self) -> FacturXProfile:
        """Profile asserted in the XML context and in the XMP metadata."""

    @property
    def xml_filename(self) -> str:
        """Filename of the embedded XML."""
        return FACTURX_FILENAME

    @property
    def profile_name(self) -> str:
        return self.profile.xmp_name

    @abstractmethod
    def generate_xml(self, invoice: InvoiceForm, emitter: EmitterConfig,
                     totals: InvoiceTotals) -> str:
        """Generate the standards-compliant XML document."""

    def validate_data(self, invoice: InvoiceForm, emitter: EmitterConfig) -> list[FieldError]:
        """Check the inputs before XML generation.

        Returns:
            Every problem found (empty = OK).
        """
        errors = list(invoice.validate())
        errors.extend(FieldError(f"emitter.{e.field}", e.message) for e in emitter.validate())
        return errors
