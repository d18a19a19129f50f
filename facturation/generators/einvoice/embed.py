"""
PDF/A-3 container post-processing for Factur-X.

Uses ``pypdf`` to:
- Attach the CII XML as an Associated File (``/AF``) with relationship
  ``/Data``, also listed in the ``/Names/EmbeddedFiles`` name tree
- Replace the content of the catalog's XMP ``/Metadata`` stream in place

Reading the attachment back goes through the ``factur-x`` library, the
same code path Factur-X aware readers use.
"""
from __future__ import annotations

import hashlib
import logging
from datetime import datetime
from io import BytesIO

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from pypdf.generic import (
    ArrayObject,
    ByteStringObject,
    DecodedStreamObject,
    DictionaryObject,
    IndirectObject,
    NameObject,
    NumberObject,
    create_string_object,
)

from facturation.errors import ContainerError
from facturation.formatting import fmt_pdf_date, utc
from facturation.generators.einvoice.base import FACTURX_FILENAME

logger = logging.getLogger(__name__)

XML_DESCRIPTION = "Factur-X XML invoice data"


def open_pdf(pdf_bytes: bytes) -> PdfWriter:
    """Parse ``pdf_bytes`` into a writable document.

    The writer is incremental: existing objects keep their numbers and
    ``save_pdf`` appends only what changed.
    """
    try:
        reader = PdfReader(BytesIO(pdf_bytes))
        if reader.trailer.get("/Root") is None:
            raise ContainerError("PDF has no document catalog")
        writer = PdfWriter(BytesIO(pdf_bytes), incremental=True)
    except (PyPdfError, ValueError, KeyError, OSError) as exc:
        raise ContainerError(f"Cannot parse PDF ({len(pdf_bytes)} bytes): {exc}") from exc
    if not getattr(writer, "_ID", None) and "/ID" in reader.trailer:
        writer._ID = reader.trailer["/ID"].clone(writer)
    return writer


def save_pdf(writer: PdfWriter) -> bytes:
    buf = BytesIO()
    try:
        writer.write(buf)
    except (PyPdfError, ValueError, TypeError, OSError) as exc:
        raise ContainerError(f"Cannot save PDF: {exc}") from exc
    return buf.getvalue()


def _filespec_name(filespec) -> str | None:
    filespec = filespec.get_object()
    name = filespec.get("/UF") or filespec.get("/F")
    return str(name) if name is not None else None


def _register_in_name_tree(root: DictionaryObject, filename: str, filespec_ref: IndirectObject) -> None:
    names = root.get("/Names")
    names = names.get_object() if names is not None else DictionaryObject()
    tree = names.get("/EmbeddedFiles")
    tree = tree.get_object() if tree is not None else DictionaryObject()

    if "/Kids" in tree:
        raise ContainerError("EmbeddedFiles name tree with /Kids is not supported")

    entries = tree.get("/Names")
    entries = list(entries.get_object()) if entries is not None else []
    pairs = [(str(entries[i]), entries[i + 1]) for i in range(0, len(entries) - 1, 2)]
    if any(key == filename for key, _ in pairs):
        raise ContainerError(f"PDF already embeds a file named '{filename}'")
    pairs.append((filename, filespec_ref))
    pairs.sort(key=lambda pair: pair[0])

    flat = ArrayObject()
    for key, value in pairs:
        flat.append(create_string_object(key))
        flat.append(value)
    tree[NameObject("/Names")] = flat
    names[NameObject("/EmbeddedFiles")] = tree
    root[NameObject("/Names")] = names


def embed_xml_in_pdf(
    pdf_bytes: bytes,
    xml: str | bytes,
    *,
    filename: str = FACTURX_FILENAME,
    now: datetime | None = None,
) -> bytes:
    """Attach the e-invoice XML to a PDF as a PDF/A-3 Associated File.

    Args:
        pdf_bytes: The baseline PDF as bytes.
        xml: The e-invoice XML (str is encoded as UTF-8).
        filename: Attachment name, 'factur-x.xml' for Factur-X.
        now: Modification date recorded for the attachment.

    Returns:
        The PDF bytes with the attachment declared in ``/AF`` and
        ``/Names/EmbeddedFiles``.

    Raises:
        ContainerError: If the PDF cannot be parsed or saved, or already
            carries an attachment with the same name.
    """
    xml_bytes = xml.encode("utf-8") if isinstance(xml, str) else xml
    writer = open_pdf(pdf_bytes)
    root = writer._root_object

    af = root.get("/AF")
    af = af.get_object() if af is not None else ArrayObject()
    if any(_filespec_name(entry) == filename for entry in af):
        raise ContainerError(f"PDF already declares '{filename}' in /AF")

    file_stream = DecodedStreamObject()
    file_stream.set_data(xml_bytes)
    file_stream.update({
        NameObject("/Type"): NameObject("/EmbeddedFile"),
        NameObject("/Subtype"): NameObject("/text/xml"),
        NameObject("/Params"): DictionaryObject({
            NameObject("/Size"): NumberObject(len(xml_bytes)),
            NameObject("/ModDate"): create_string_object(fmt_pdf_date(utc(now))),
            NameObject("/CheckSum"): ByteStringObject(hashlib.md5(xml_bytes).digest()),
        }),
    })
    file_stream_ref = writer._add_object(file_stream)

    filespec = DictionaryObject({
        NameObject("/Type"): NameObject("/Filespec"),
        NameObject("/F"): create_string_object(filename),
        NameObject("/UF"): create_string_object(filename),
        NameObject("/Desc"): create_string_object(XML_DESCRIPTION),
        NameObject("/AFRelationship"): NameObject("/Data"),
        NameObject("/EF"): DictionaryObject({
            NameObject("/F"): file_stream_ref,
            NameObject("/UF"): file_stream_ref,
        }),
    })
    filespec_ref = writer._add_object(filespec)

    _register_in_name_tree(root, filename, filespec_ref)
    af.append(filespec_ref)
    root[NameObject("/AF")] = af

    logger.info("Embedding %s (%d bytes) as associated file", filename, len(xml_bytes))
    result = save_pdf(writer)
    logger.info("Embedded XML into PDF (%d bytes)", len(result))
    return result


def inject_xmp(pdf_bytes: bytes, xmp: str | bytes) -> bytes:
    """Replace the catalog's XMP metadata stream, keeping its object number.

    Raises:
        ContainerError: If the catalog has no ``/Metadata`` reference, or the
            PDF cannot be parsed or saved.
    """
    xmp_bytes = xmp.encode("utf-8") if isinstance(xmp, str) else xmp
    writer = open_pdf(pdf_bytes)
    root = writer._root_object

    if "/Metadata" not in root:
        raise ContainerError("PDF catalog has no /Metadata entry")
    ref = root.raw_get("/Metadata")
    if not isinstance(ref, IndirectObject):
        raise ContainerError("PDF catalog /Metadata is not an indirect reference")

    stream = DecodedStreamObject()
    stream.set_data(xmp_bytes)
    stream[NameObject("/Type")] = NameObject("/Metadata")
    stream[NameObject("/Subtype")] = NameObject("/XML")
    stream.indirect_reference = ref
    writer._objects[ref.idnum - 1] = stream

    result = save_pdf(writer)
    logger.info("Injected XMP metadata into object %d (%d bytes)", ref.idnum, len(xmp_bytes))
    return result


def extract_xml(pdf_bytes: bytes) -> tuple[str, bytes]:
    """Read the embedded Factur-X XML back from a PDF.

    Returns:
        ``(filename, xml_bytes)``

    Raises:
        ContainerError: If no Factur-X attachment is found.
    """
    from facturx import get_facturx_xml_from_pdf

    filename, xml_bytes = get_facturx_xml_from_pdf(pdf_bytes, check_xsd=False)
    if not filename or not xml_bytes:
        raise ContainerError("PDF contains no Factur-X XML attachment")
    return filename, xml_bytes
