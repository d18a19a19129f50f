"""
Factur-X invoice generation.

Produces a PDF/A-3 invoice with its Cross Industry Invoice XML embedded as
an associated file and XMP metadata declaring Factur-X conformance.
"""
from facturation.assets import FontSet
from facturation.errors import (
    ContainerError, DateFormatError, FacturXError, FormatError, LoadError, ValidationError,
)
from facturation.models import (
    DiscountType, EmitterConfig, FieldError, InvoiceForm, InvoiceLine, InvoiceTotals, InvoiceTypeCode,
)
from facturation.pipeline import FacturXResult, generate_facturx_pdf, save_result
from facturation.tax import compute_totals, vat_breakdown

__version__ = "0.1.0"
