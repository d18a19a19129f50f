"""
PDF/A-3 structural helpers.

``check_pdfa_structure`` is a structural check of the requirements this
package can break by itself (embedded fonts, metadata stream, output
intent, file identifier, no JavaScript, no encryption). It is not a full
PDF/A validator.
"""
from __future__ import annotations

import logging
import struct
from functools import lru_cache
from io import BytesIO

from pypdf import PdfReader
from pypdf.errors import PyPdfError
from pypdf.generic import (
    ArrayObject,
    DecodedStreamObject,
    DictionaryObject,
    NameObject,
    NumberObject,
    create_string_object,
)

logger = logging.getLogger(__name__)

FONT_FILE_KEYS = ("/FontFile", "/FontFile2", "/FontFile3")


@lru_cache(maxsize=1)
def srgb_icc_profile() -> bytes:
    """sRGB ICC profile bytes, with a fixed header date for reproducible output."""
    from PIL import ImageCms

    profile = ImageCms.ImageCmsProfile(ImageCms.createProfile("sRGB")).tobytes()
    # Bytes 24-35: creation dateTimeNumber (six big-endian uint16)
    return profile[:24] + struct.pack(">6H", 2000, 1, 1, 0, 0, 0) + profile[36:]


def add_srgb_output_intent(writer) -> None:
    """Attach a GTS_PDFA1 output intent with an sRGB profile to the catalog."""
    icc = DecodedStreamObject()
    icc.set_data(srgb_icc_profile())
    icc[NameObject("/N")] = NumberObject(3)
    icc_ref = writer._add_object(icc)

    intent = DictionaryObject({
        NameObject("/Type"): NameObject("/OutputIntent"),
        NameObject("/S"): NameObject("/GTS_PDFA1"),
        NameObject("/OutputConditionIdentifier"): create_string_object("sRGB"),
        NameObject("/Info"): create_string_object("sRGB IEC61966-2.1"),
        NameObject("/DestOutputProfile"): icc_ref,
    })
    writer._root_object[NameObject("/OutputIntents")] = ArrayObject([writer._add_object(intent)])


def _font_is_embedded(font: DictionaryObject) -> bool:
    subtype = font.get("/Subtype")
    if subtype == "/Type3":
        return True
    if subtype == "/Type0":
        descendants = font.get("/DescendantFonts")
        if not descendants:
            return False
        font = descendants.get_object()[0].get_object()
    descriptor = font.get("/FontDescriptor")
    if descriptor is None:
        return False
    descriptor = descriptor.get_object()
    return any(key in descriptor for key in FONT_FILE_KEYS)


def check_pdfa_structure(pdf_bytes: bytes) -> list[str]:
    """Return every structural PDF/A-3 problem found (empty = OK)."""
    try:
        reader = PdfReader(BytesIO(pdf_bytes))
    except (PyPdfError, ValueError, OSError) as exc:
        return [f"Cannot parse PDF: {exc}"]

    if reader.is_encrypted:
        return ["Document is encrypted"]

    problems = []
    root = reader.trailer.get("/Root")
    if root is None:
        return ["Document has no catalog"]
    root = root.get_object()

    if "/Metadata" not in root:
        problems.append("Catalog has no /Metadata stream")
    if "/OutputIntents" not in root:
        problems.append("Catalog has no /OutputIntents")
    if "/ID" not in reader.trailer:
        problems.append("Trailer has no /ID")

    names = root.get("/Names")
    if names is not None and "/JavaScript" in names.get_object():
        problems.append("Document contains a JavaScript name tree")
    action = root.get("/OpenAction")
    if action is not None:
        action = action.get_object()
    if isinstance(action, DictionaryObject) and action.get("/S") == "/JavaScript":
        problems.append("Document open action is JavaScript")

    seen = set()
    for number, page in enumerate(reader.pages, start=1):
        resources = page.get("/Resources")
        if resources is None:
            continue
        fonts = resources.get_object().get("/Font")
        if fonts is None:
            continue
        for key, ref in fonts.get_object().items():
            font = ref.get_object()
            base = font.get("/BaseFont", key)
            if base in seen:
                continue
            seen.add(base)
            if not _font_is_embedded(font):
                problems.append(f"Font {base} on page {number} is not embedded")

    if problems:
        logger.debug("PDF/A-3 structure check found %d problem(s)", len(problems))
    return problems
