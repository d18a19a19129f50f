"""
End-to-end Factur-X generation.

validate -> totals -> CII XML -> baseline PDF -> embed XML -> XMP
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime

from facturation.assets import FontSet
from facturation.errors import LoadError, ValidationError
from facturation.formatting import utc
from facturation.generators.einvoice import (
    embed_xml_in_pdf, generate_xmp_metadata, get_standard, inject_xmp, validate_xmp_metadata,
)
from facturation.generators.facture import metadata_for, render_invoice_pdf
from facturation.models import EmitterConfig, FieldError, InvoiceForm, InvoiceTotals
from facturation.tax import compute_totals

logger = logging.getLogger(__name__)


@dataclass
class FacturXResult:
    pdf: bytes
    xml: str
    totals: InvoiceTotals
    warnings: list[str] = field(default_factory=list)


def generate_facturx_pdf(
    invoice: InvoiceForm,
    emitter: EmitterConfig,
    fonts: FontSet,
    *,
    logo: bytes | None = None,
    now: datetime | None = None,
    skip_invalid_lines: bool = False,
    standard: str | None = None,
) -> FacturXResult:
    """Generate the Factur-X PDF/A-3 for ``invoice``.

    Args:
        invoice: The invoice; its lines receive their computed totals.
        emitter: Issuer identity.
        fonts: Regular and bold fonts to embed.
        logo: Optional logo image bytes.
        now: Timestamp written in the XMP packet, the PDF info and the
            attachment; defaults to the current UTC time.
        skip_invalid_lines: Drop lines failing ``InvoiceLine.is_valid`` (with
            a warning) instead of rejecting the whole invoice. Errors on
            lines that are still billed are reported as usual.
        standard: E-invoice standard name, see ``get_standard``.

    Raises:
        ValidationError: With every field error, when the inputs are invalid.
        FormatError, LoadError, ContainerError: From the generation stages.
    """
    now = utc(now)
    warnings: list[str] = []
    std = get_standard(standard)

    errors = std.validate_data(invoice, emitter)
    if skip_invalid_lines:
        # lines that are still billed keep their errors
        skipped = [i for i, line in enumerate(invoice.lines) if not line.is_valid()]
        if skipped:
            message = f"Lines {skipped} are invalid and were left out"
            logger.warning("Invoice %s: %s", invoice.invoice_number, message)
            warnings.append(message)
        skipped_prefixes = tuple(f"lines[{i}][" for i in skipped)
        errors = [e for e in errors if not e.field.startswith(skipped_prefixes)]
        if not invoice.valid_lines and not any(e.field == "lines" for e in errors):
            errors.append(FieldError("lines", "The invoice has no valid line"))
    if errors:
        raise ValidationError(f"Invoice {invoice.invoice_number!r} is invalid", errors)

    totals = compute_totals(invoice)
    xml = std.generate_xml(invoice, emitter, totals)

    metadata = metadata_for(invoice, emitter)
    metadata.profile = std.profile
    metadata.xml_filename = std.xml_filename
    warnings.extend(validate_xmp_metadata(metadata).warnings)

    pdf = render_invoice_pdf(invoice, emitter, totals, fonts=fonts, logo=logo,
                             metadata=metadata, now=now)
    pdf = embed_xml_in_pdf(pdf, xml, filename=std.xml_filename, now=now)
    pdf = inject_xmp(pdf, generate_xmp_metadata(metadata, now=now))

    logger.info("Generated %s for invoice %s (%d bytes)",
                std.standard_name, invoice.invoice_number, len(pdf))
    return FacturXResult(pdf=pdf, xml=xml, totals=totals, warnings=warnings)


def _safe_filename(invoice_number: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "_", invoice_number).strip("._") or "invoice"


def save_result(result: FacturXResult, emitter: EmitterConfig, invoice_number: str) -> dict[str, str]:
    """Write the PDF and XML into the emitter's storage directories.

    Returns:
        Mapping ``{'pdf': path, 'xml': path}`` of the files written; a kind
        whose storage directory is not configured is skipped.
    """
    name = _safe_filename(invoice_number)
    written = {}
    for kind, directory, data in (
        ("pdf", emitter.pdf_storage, result.pdf),
        ("xml", emitter.xml_storage, result.xml.encode("utf-8")),
    ):
        if not directory:
            continue
        path = os.path.join(directory, f"{name}.{kind}")
        try:
            os.makedirs(directory, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as exc:
            raise LoadError(f"Cannot write {kind.upper()} '{path}': {exc}", path) from exc
        written[kind] = path
        logger.info("Saved %s (%d bytes)", path, len(data))
    return written
