"""Shared test data."""
import os
from datetime import datetime, timezone
from io import BytesIO

import reportlab
from PIL import Image

from facturation.assets import FontSet
from facturation.models import EmitterConfig, InvoiceForm, InvoiceLine

FIXED_NOW = datetime(2024, 1, 31, 12, 0, 0, tzinfo=timezone.utc)

REPORTLAB_FONTS = os.path.join(os.path.dirname(reportlab.__file__), "fonts")


def vera_fonts() -> FontSet:
    """Bitstream Vera fonts bundled with reportlab."""
    return FontSet.load(REPORTLAB_FONTS, regular="Vera.ttf", bold="VeraBd.ttf")


def png_logo(width=200, height=100) -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), (30, 60, 120)).save(buf, format="PNG")
    return buf.getvalue()


def make_emitter(**overrides) -> EmitterConfig:
    data = dict(
        siret="12345678901234",
        siren="123456789",
        name="Test Company",
        address="123 Test Street, 75001 Paris",
        bic="BNPAFRPP",
        num_tva="FR12345678901",
    )
    data.update(overrides)
    return EmitterConfig(**data)


def make_invoice(lines=None, **overrides) -> InvoiceForm:
    if lines is None:
        lines = [
            InvoiceLine(description="Software development", quantity=10, unit_price_ht=150.0, vat_rate=20.0),
            InvoiceLine(description="Monthly maintenance", quantity=1, unit_price_ht=500.0, vat_rate=20.0),
        ]
    data = dict(
        invoice_number="FA-2024-001",
        issue_date="2024-01-15",
        due_date="2024-02-28",
        type_code=380,
        currency_code="EUR",
        recipient_name="Client Test SARL",
        recipient_siret="98765432109876",
        recipient_address="456 Client Avenue, 69001 Lyon",
        recipient_country_code="FR",
        recipient_vat_number="FR98765432109",
        payment_terms="Paiement à 30 jours",
        lines=lines,
    )
    data.update(overrides)
    return InvoiceForm(**data)
