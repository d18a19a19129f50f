"""
Factur-X e-invoice generation.

Structured CII payload, XMP metadata and PDF/A-3 container handling,
with a registry so further profiles can be plugged in.
"""
from facturation.generators.einvoice.base import EInvoiceStandard, FACTURX_FILENAME
from facturation.generators.einvoice.cii import MinimumCIIStandard
from facturation.generators.einvoice.embed import embed_xml_in_pdf, extract_xml, inject_xmp
from facturation.generators.einvoice.xmp import (
    FacturXProfile,
    XmpMetadata,
    generate_xmp_metadata,
    validate_xmp_metadata,
)

# Registry of available e-invoice standards
STANDARDS: dict[str, type[EInvoiceStandard]] = {
    "minimum": MinimumCIIStandard,
}

DEFAULT_STANDARD = "minimum"


def get_standard(name: str | None = None) -> EInvoiceStandard:
    """Get an e-invoice standard instance by name.

    Args:
        name: Standard identifier (e.g. 'minimum'). Uses DEFAULT_STANDARD if None.

    Raises:
        ValueError: If the standard name is not registered.
    """
    name = name or DEFAULT_STANDARD
    cls = STANDARDS.get(name)
    if cls is None:
        raise ValueError(
            f"Unknown e-invoice standard '{name}'. "
            f"Available: {', '.join(STANDARDS.keys())}"
        )
    return cls()
