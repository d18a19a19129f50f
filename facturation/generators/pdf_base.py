"""
Shared base utilities for PDF generation (reportlab).

Provides page metrics, paragraph styles bound to the embedded fonts,
helper flowables, the page footer, the document template and the
baseline post-processing that turns the reportlab output into a PDF/A-3
candidate (XMP stream, output intent, document info).
"""
from __future__ import annotations

import logging
from datetime import datetime
from io import BytesIO

from pypdf.generic import DecodedStreamObject, NameObject, create_string_object
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import BaseDocTemplate, Flowable, Frame, PageTemplate

from facturation.errors import LoadError
from facturation.formatting import fmt_pdf_date, utc
from facturation.generators.einvoice.embed import open_pdf, save_pdf
from facturation.generators.einvoice.pdfa import add_srgb_output_intent
from facturation.generators.einvoice.xmp import CREATOR_TOOL, PRODUCER, placeholder_packet

logger = logging.getLogger(__name__)


# ─── Colour palette ──────────────────────────────────────────────
CLR_BLACK = colors.black
CLR_GREY_MID = colors.HexColor("#808080")
CLR_GREY_LIGHT = colors.HexColor("#cccccc")
CLR_GREY_DARK = colors.HexColor("#666666")
CLR_TABLE_HEADER_BG = colors.HexColor("#e8e8e8")

# ─── Page metrics (points) ───────────────────────────────────────
PAGE_W, PAGE_H = A4
MARGIN_LEFT = 20 * mm
MARGIN_RIGHT = 20 * mm
MARGIN_TOP = 20 * mm
MARGIN_BOTTOM = 20 * mm
FOOTER_Y = 10 * mm  # baseline of the footer caption, from the bottom edge

CONTENT_W = PAGE_W - MARGIN_LEFT - MARGIN_RIGHT

FONT_SIZE_TITLE = 18
FONT_SIZE_HEADER = 12
FONT_SIZE_NORMAL = 10
FONT_SIZE_SMALL = 8
LINE_HEIGHT = 14

LOGO_HEIGHT = 20 * mm
LOGO_DPI = 96  # assumed resolution of logo pixels


# ─── Reusable style factory ──────────────────────────────────────
def base_styles(regular: str, bold: str) -> dict[str, ParagraphStyle]:
    """Return the ParagraphStyles of the invoice, all set in the embedded fonts."""
    ss = getSampleStyleSheet()
    base = ParagraphStyle("Base", parent=ss["Normal"], fontName=regular,
                          fontSize=FONT_SIZE_NORMAL, leading=LINE_HEIGHT, spaceAfter=0)
    small = ParagraphStyle("Small", parent=base, fontSize=FONT_SIZE_SMALL, leading=LINE_HEIGHT)
    return {
        "base": base,
        "name": ParagraphStyle("Name", parent=base, fontName=bold,
                               fontSize=FONT_SIZE_TITLE, leading=FONT_SIZE_TITLE + 4),
        "title": ParagraphStyle("DocTitle", parent=base, fontName=bold, fontSize=FONT_SIZE_TITLE,
                                leading=FONT_SIZE_TITLE + 8, alignment=TA_CENTER),
        "header": ParagraphStyle("Header", parent=base, fontName=bold,
                                 fontSize=FONT_SIZE_HEADER, leading=LINE_HEIGHT + 4),
        "small": small,
        "small_bold": ParagraphStyle("SmallBold", parent=small, fontName=bold),
        "small_indent": ParagraphStyle("SmallIndent", parent=small, leftIndent=10),
        "right": ParagraphStyle("Right", parent=base, alignment=TA_RIGHT),
        "right_bold": ParagraphStyle("RightBold", parent=base, fontName=bold,
                                     fontSize=FONT_SIZE_HEADER, leading=LINE_HEIGHT + 4,
                                     alignment=TA_RIGHT),
        "table_header": ParagraphStyle("TH", parent=small, fontName=bold),
        "table_cell": ParagraphStyle("TC", parent=small, leading=10),
        "table_cell_right": ParagraphStyle("TCR", parent=small, leading=10, alignment=TA_RIGHT),
        "table_cell_indent": ParagraphStyle("TCI", parent=small, leading=10, leftIndent=16,
                                            textColor=CLR_GREY_DARK),
    }


# ─── Helper flowables ────────────────────────────────────────────
class HLine(Flowable):
    """A thin horizontal line across the frame."""
    def __init__(self, width: float = CONTENT_W, thickness: float = 0.5,
                 color=CLR_GREY_MID, space_before=8, space_after=20):
        super().__init__()
        self.width = width
        self.thickness = thickness
        self.color = color
        self.space_after = space_after
        self.height = space_before + thickness + space_after

    def draw(self):
        self.canv.saveState()
        self.canv.setStrokeColor(self.color)
        self.canv.setLineWidth(self.thickness)
        self.canv.line(0, self.space_after, self.width, self.space_after)
        self.canv.restoreState()


def logo_size(logo: bytes, target_height: float = LOGO_HEIGHT) -> tuple[ImageReader, float, float]:
    """Open the logo and return ``(image, width, height)`` scaled to ``target_height``.

    The natural size is the pixel size at ``LOGO_DPI``; the aspect ratio is kept.
    """
    try:
        img = ImageReader(BytesIO(logo))
        px_w, px_h = img.getSize()
    except Exception as exc:
        raise LoadError(f"Cannot decode logo image ({len(logo)} bytes): {exc}") from exc
    if not px_w or not px_h:
        raise LoadError("Logo image has no size")
    natural_w = px_w * 72 / LOGO_DPI
    natural_h = px_h * 72 / LOGO_DPI
    ratio = target_height / natural_h
    return img, natural_w * ratio, natural_h * ratio


class Logo(Flowable):
    """The emitter logo, horizontally centred in the frame."""
    def __init__(self, logo: bytes, width: float = CONTENT_W, space_after: float = 10):
        super().__init__()
        self.image, self.draw_w, self.draw_h = logo_size(logo)
        self.width = width
        self.space_after = space_after
        self.height = self.draw_h + space_after

    def draw(self):
        x = (self.width - self.draw_w) / 2
        self.canv.drawImage(self.image, x, self.space_after, self.draw_w, self.draw_h,
                            preserveAspectRatio=True, mask="auto")


# ─── Common page callbacks ───────────────────────────────────────
def draw_footer(canvas, doc, *, font: str, caption: str) -> None:
    """Draw the footer caption and the page number."""
    canvas.saveState()
    canvas.setFont(font, FONT_SIZE_SMALL)
    canvas.setFillColor(CLR_GREY_DARK)
    canvas.drawString(MARGIN_LEFT, FOOTER_Y, caption)
    canvas.drawRightString(PAGE_W - MARGIN_RIGHT, FOOTER_Y, f"Page {canvas.getPageNumber()}")
    canvas.restoreState()


# ─── Document builder helpers ────────────────────────────────────
def build_base_doc(buf: BytesIO, *, title: str, author: str, subject: str,
                   regular_font: str, on_page_callback) -> tuple[BaseDocTemplate, float]:
    """Create a BaseDocTemplate with a single-column frame and the given on_page callback.

    The canvas starts in ``regular_font`` so no standard font is ever
    referenced, and ``invariant`` keeps reportlab's output reproducible.
    Returns (doc, frame_width) so the caller can build the story.
    """
    frame = Frame(
        MARGIN_LEFT, MARGIN_BOTTOM,
        CONTENT_W, PAGE_H - MARGIN_TOP - MARGIN_BOTTOM,
        leftPadding=0, rightPadding=0, topPadding=0, bottomPadding=0,
        id="main",
    )
    doc = BaseDocTemplate(
        buf, pagesize=A4,
        leftMargin=MARGIN_LEFT, rightMargin=MARGIN_RIGHT,
        topMargin=MARGIN_TOP, bottomMargin=MARGIN_BOTTOM,
        title=title, author=author, subject=subject, creator=CREATOR_TOOL,
        invariant=1, initialFontName=regular_font, initialFontSize=FONT_SIZE_NORMAL,
        pageTemplates=[PageTemplate(id="default", frames=[frame], onPage=on_page_callback)],
    )
    return doc, CONTENT_W


def prepare_baseline(pdf_bytes: bytes, *, title: str, author: str, subject: str,
                     now: datetime | None = None, lang: str = "fr") -> bytes:
    """Add what PDF/A-3 needs and reportlab does not write.

    Adds a placeholder XMP ``/Metadata`` stream (replaced later by
    ``inject_xmp``), an sRGB output intent, ``/Lang`` and document info
    entries matching the XMP packet.
    """
    writer = open_pdf(pdf_bytes)
    root = writer._root_object

    stream = DecodedStreamObject()
    stream.set_data(placeholder_packet().encode("utf-8"))
    stream[NameObject("/Type")] = NameObject("/Metadata")
    stream[NameObject("/Subtype")] = NameObject("/XML")
    root[NameObject("/Metadata")] = writer._add_object(stream)
    root[NameObject("/Lang")] = create_string_object(lang)
    add_srgb_output_intent(writer)

    stamp = fmt_pdf_date(utc(now))
    writer.add_metadata({
        "/Title": title,
        "/Author": author,
        "/Subject": subject,
        "/Creator": CREATOR_TOOL,
        "/Producer": PRODUCER,
        "/CreationDate": stamp,
        "/ModDate": stamp,
    })
    return save_pdf(writer)
