"""
PDF generator for the visual part of a Factur-X invoice.

Layout, top to bottom:
- optional centred logo
- emitter block (name, address, SIRET, VAT number)
- document title, number and dates
- recipient block
- line table (description, quantity, unit price, VAT rate, line total),
  discounts as indented sub-lines
- VAT breakdown per rate, totals, payment terms

Only valid lines are drawn, exactly as in the XML. Long invoices flow on
to further pages; the table header row is repeated after a break.
"""
from __future__ import annotations

import logging
from datetime import datetime
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.platypus import Paragraph, Spacer, Table, TableStyle

from facturation.assets import FontSet
from facturation.errors import ValidationError
from facturation.formatting import (
    fmt_amount, fmt_percent, format_date_display, truncate,
)
from facturation.generators.einvoice.pdfa import check_pdfa_structure
from facturation.generators.einvoice.xmp import XmpMetadata
from facturation.generators.pdf_base import (
    CLR_BLACK, CLR_GREY_LIGHT, CLR_TABLE_HEADER_BG, MARGIN_LEFT, MARGIN_RIGHT, PAGE_W,
    HLine, Logo, base_styles, build_base_doc, draw_footer, prepare_baseline,
)
from facturation.models import EmitterConfig, InvoiceForm, InvoiceTotals
from facturation.tax import vat_breakdown

logger = logging.getLogger(__name__)

FOOTER_CAPTION = "Facture conforme Factur-X - XML embarqué"

# Line table columns (left edge x positions, points)
COL_DESC = MARGIN_LEFT
COL_QTY = 280
COL_PRICE = 340
COL_VAT = 410
COL_TOTAL = 480
COL_WIDTHS = [
    COL_QTY - COL_DESC,
    COL_PRICE - COL_QTY,
    COL_VAT - COL_PRICE,
    COL_TOTAL - COL_VAT,
    PAGE_W - MARGIN_RIGHT - COL_TOTAL,
]

DESC_LIMIT, DESC_KEEP = 40, 37
DISCOUNT_DESC_LIMIT, DISCOUNT_DESC_KEEP = 25, 22


def metadata_for(invoice: InvoiceForm, emitter: EmitterConfig) -> XmpMetadata:
    """Document title/author/subject shared by the PDF info and the XMP packet."""
    label = invoice.type_code.label
    return XmpMetadata(
        title=f"{label} {invoice.invoice_number}",
        author=emitter.name,
        subject=f"{label} Factur-X pour {invoice.recipient_name}",
    )


def _p(text: str, style) -> Paragraph:
    return Paragraph(escape(text), style)


def _emitter_block(emitter: EmitterConfig, styles) -> list:
    story = [
        _p(emitter.name, styles["name"]),
        _p(emitter.address, styles["base"]),
        _p(f"SIRET : {emitter.siret}", styles["small"]),
    ]
    if emitter.num_tva:
        story.append(_p(f"N° TVA : {emitter.num_tva}", styles["small"]))
    story.append(Spacer(1, 20))
    return story


def _title_block(invoice: InvoiceForm, styles, cw: float, font: str) -> list:
    rows = [[_p(f"N° {invoice.invoice_number}", styles["header"]),
             _p(f"Date : {format_date_display(invoice.issue_date)}", styles["base"])]]
    if invoice.due_date:
        rows.append(["", _p(f"Échéance : {format_date_display(invoice.due_date)}", styles["base"])])

    table = Table(rows, colWidths=[cw - 120, 120], hAlign="LEFT")
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, -1), font),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ("RIGHTPADDING", (0, 0), (-1, -1), 0),
        ("TOPPADDING", (0, 0), (-1, -1), 0),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 0),
        ("VALIGN", (0, 0), (-1, -1), "BOTTOM"),
    ]))
    return [_p(invoice.type_code.title, styles["title"]), table, Spacer(1, 20)]


def _recipient_block(invoice: InvoiceForm, styles) -> list:
    story = [_p("CLIENT", styles["header"]), _p(invoice.recipient_name, styles["base"])]
    if invoice.recipient_address:
        story.append(_p(invoice.recipient_address, styles["base"]))
    story.append(_p(f"SIRET : {invoice.recipient_siret}", styles["small"]))
    if invoice.recipient_vat_number:
        story.append(_p(f"N° TVA : {invoice.recipient_vat_number}", styles["small"]))
    story.append(_p(f"Pays : {invoice.recipient_country_code}", styles["small"]))
    story.append(Spacer(1, 30))
    return story


def _lines_table(invoice: InvoiceForm, styles, font: str) -> Table:
    currency = invoice.currency_code
    header_row = [_p(label, styles["table_header"])
                  for label in ("Description", "Qté", "PU HT", "TVA", "Total HT")]
    table_data = [header_row]
    commands = [
        ("FONTNAME", (0, 0), (-1, -1), font),
        ("BACKGROUND", (0, 0), (-1, 0), CLR_TABLE_HEADER_BG),
        ("LINEBELOW", (0, 0), (-1, 0), 0.8, CLR_BLACK),
        ("TOPPADDING", (0, 0), (-1, -1), 2),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
        ("LEFTPADDING", (0, 0), (-1, -1), 2),
        ("RIGHTPADDING", (0, 0), (-1, -1), 2),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]

    skipped = 0
    for line in invoice.lines:
        if not line.is_valid():
            skipped += 1
            continue

        row = len(table_data)
        table_data.append([
            _p(truncate(line.description, DESC_LIMIT, DESC_KEEP), styles["table_cell"]),
            _p(f"{line.quantity:.2f}", styles["table_cell"]),
            _p(fmt_amount(line.unit_price_ht), styles["table_cell_right"]),
            _p(f"{line.vat_rate:.1f}%", styles["table_cell_right"]),
            _p(fmt_amount(line.total_ht_value()), styles["table_cell_right"]),
        ])

        discount = line.discount_amount or 0.0
        if discount > 0:
            short = truncate(line.description, DISCOUNT_DESC_LIMIT, DISCOUNT_DESC_KEEP)
            table_data.append([
                _p(f"- Remise sur {short} : -{fmt_amount(discount)} {currency}",
                   styles["table_cell_indent"]),
                "", "", "", "",
            ])
            # the sub-line stays on the page of its line
            commands.append(("SPAN", (0, row + 1), (-1, row + 1)))
            commands.append(("NOSPLIT", (0, row), (-1, row + 1)))
        commands.append(("LINEBELOW", (0, len(table_data) - 1), (-1, len(table_data) - 1),
                         0.3, CLR_GREY_LIGHT))

    if skipped:
        logger.warning("Invoice %s: %d invalid line(s) not rendered", invoice.invoice_number, skipped)

    table = Table(table_data, colWidths=COL_WIDTHS, hAlign="LEFT", repeatRows=1)
    table.setStyle(TableStyle(commands))
    return table


def _vat_breakdown_block(invoice: InvoiceForm, styles) -> list:
    breakdown = vat_breakdown(invoice)
    if not breakdown:
        return []
    currency = invoice.currency_code
    story = [_p("Récapitulatif TVA", styles["small_bold"])]
    for entry in breakdown:
        story.append(_p(
            f"TVA {fmt_percent(entry.rate)} : base {fmt_amount(entry.basis)} {currency}"
            f" - TVA {fmt_amount(entry.tax)} {currency}",
            styles["small_indent"],
        ))
    story.append(Spacer(1, 10))
    return story


def _totals_table(invoice: InvoiceForm, totals: InvoiceTotals, styles, font: str) -> Table:
    currency = invoice.currency_code
    summary_data = [
        [_p("Total HT :", styles["right"]),
         _p(f"{fmt_amount(totals.total_ht)} {currency}", styles["right"])],
        [_p("Total TVA :", styles["right"]),
         _p(f"{fmt_amount(totals.total_vat)} {currency}", styles["right"])],
        [_p("Total TTC :", styles["right_bold"]),
         _p(f"{fmt_amount(totals.total_ttc)} {currency}", styles["right_bold"])],
    ]
    table = Table(summary_data, colWidths=[90, 110], hAlign="RIGHT")
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, -1), font),
        ("TOPPADDING", (0, 0), (-1, -1), 2),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ("RIGHTPADDING", (0, 0), (-1, -1), 0),
        ("LINEABOVE", (0, -1), (-1, -1), 0.8, CLR_BLACK),
    ]))
    return table


def render_invoice_pdf(
    invoice: InvoiceForm,
    emitter: EmitterConfig,
    totals: InvoiceTotals,
    *,
    fonts: FontSet,
    logo: bytes | None = None,
    metadata: XmpMetadata | None = None,
    now: datetime | None = None,
) -> bytes:
    """Build and return the baseline PDF bytes (no attachment yet).

    Raises:
        LoadError: If a font or the logo cannot be decoded.
        ValidationError: If the result fails the PDF/A-3 structure check;
            ``errors`` holds the checker's messages.
    """
    totals = InvoiceTotals(*totals)
    metadata = metadata or metadata_for(invoice, emitter)
    regular, bold = fonts.register()
    styles = base_styles(regular, bold)

    def on_page(canvas, doc):
        if doc.page > 1:
            logger.debug("Invoice %s: page break, now on page %d", invoice.invoice_number, doc.page)
        draw_footer(canvas, doc, font=regular, caption=FOOTER_CAPTION)

    buf = BytesIO()
    doc, cw = build_base_doc(buf, title=metadata.title, author=metadata.author,
                             subject=metadata.subject, regular_font=regular,
                             on_page_callback=on_page)

    story: list = []
    if logo:
        story.append(Logo(logo, width=cw))
    story.extend(_emitter_block(emitter, styles))
    story.extend(_title_block(invoice, styles, cw, regular))
    story.extend(_recipient_block(invoice, styles))
    story.append(_lines_table(invoice, styles, regular))
    story.append(HLine(width=cw))
    story.extend(_vat_breakdown_block(invoice, styles))
    story.append(_totals_table(invoice, totals, styles, regular))

    if invoice.payment_terms:
        story.append(Spacer(1, 30))
        story.append(_p(f"Conditions : {invoice.payment_terms}", styles["small"]))

    doc.build(story)

    pdf = prepare_baseline(buf.getvalue(), title=metadata.title, author=metadata.author,
                           subject=metadata.subject, now=now)
    problems = check_pdfa_structure(pdf)
    if problems:
        raise ValidationError("PDF/A-3 structure check failed", problems)

    logger.info("Rendered invoice %s: %d page(s), %d bytes",
                invoice.invoice_number, doc.page, len(pdf))
    return pdf
