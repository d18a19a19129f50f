"""
XMP metadata packet for Factur-X PDF/A-3 documents.

The packet carries:
- dc (Dublin Core): title, creator, description
- xmp: creation / modification / metadata dates
- pdf: producer
- pdfaid: PDF/A-3 conformance level B
- pdfaExtension: declaration of the Factur-X ``fx`` schema
- fx: the Factur-X values (file name, document type, version, level)

The extension declaration and the ``fx`` values are both built from
``FX_PROPERTIES`` so the declared names always match the given values.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from lxml import etree

from facturation.errors import ValidationError
from facturation.formatting import fmt_xmp_timestamp, utc
from facturation.models import FieldError

logger = logging.getLogger(__name__)

CREATOR_TOOL = "facturation"
PRODUCER = "facturation (reportlab + pypdf)"
STANDARD_XML_FILENAME = "factur-x.xml"
DOCUMENT_TYPE = "INVOICE"

PACKET_ID = "W5M0MpCehiHzreSzNTczkc9d"

NS = {
    "x": "adobe:ns:meta/",
    "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "dc": "http://purl.org/dc/elements/1.1/",
    "xmp": "http://ns.adobe.com/xap/1.0/",
    "pdf": "http://ns.adobe.com/pdf/1.3/",
    "pdfaid": "http://www.aiim.org/pdfa/ns/id/",
    "pdfaExtension": "http://www.aiim.org/pdfa/ns/extension/",
    "pdfaSchema": "http://www.aiim.org/pdfa/ns/schema#",
    "pdfaProperty": "http://www.aiim.org/pdfa/ns/property#",
    "fx": "urn:factur-x:pdfa:CrossIndustryDocument:invoice:1p0#",
}
XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"

# Factur-X extension schema properties: (name, description)
FX_PROPERTIES = (
    ("DocumentFileName", "Name of the embedded XML invoice file"),
    ("DocumentType", "Invoice type"),
    ("Version", "Version of the Factur-X standard"),
    ("ConformanceLevel", "Conformance level of the Factur-X invoice"),
)


class FacturXProfile(Enum):
    MINIMUM = "minimum"
    BASIC_WL = "basicwl"
    BASIC = "basic"
    EN16931 = "en16931"
    EXTENDED = "extended"

    @property
    def urn(self) -> str:
        """Guideline ID written in the CII document context."""
        return _PROFILE_URNS[self]

    @property
    def xmp_name(self) -> str:
        """Value of ``fx:ConformanceLevel``."""
        return _PROFILE_XMP_NAMES[self]


_PROFILE_URNS = {
    FacturXProfile.MINIMUM: "urn:factur-x.eu:1p0:minimum",
    FacturXProfile.BASIC_WL: "urn:factur-x.eu:1p0:basicwl",
    FacturXProfile.BASIC: "urn:cen.eu:en16931:2017#compliant#urn:factur-x.eu:1p0:basic",
    FacturXProfile.EN16931: "urn:cen.eu:en16931:2017",
    FacturXProfile.EXTENDED: "urn:cen.eu:en16931:2017#conformant#urn:factur-x.eu:1p0:extended",
}

_PROFILE_XMP_NAMES = {
    FacturXProfile.MINIMUM: "MINIMUM",
    FacturXProfile.BASIC_WL: "BASIC WL",
    FacturXProfile.BASIC: "BASIC",
    FacturXProfile.EN16931: "EN 16931",
    FacturXProfile.EXTENDED: "EXTENDED",
}


@dataclass
class XmpMetadata:
    title: str = ""
    author: str = ""
    subject: str = "Facture électronique Factur-X"
    profile: FacturXProfile = FacturXProfile.MINIMUM
    xml_filename: str = STANDARD_XML_FILENAME
    facturx_version: str = "1.0"


@dataclass
class XmpValidationResult:
    is_valid: bool
    errors: list[FieldError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def validate_xmp_metadata(metadata: XmpMetadata) -> XmpValidationResult:
    """Check every field required for PDF/A-3 and Factur-X; collects all problems."""
    errors = []
    warnings = []

    if not metadata.title:
        errors.append(FieldError("title", "The document title is required for PDF/A-3"))
    if not metadata.author:
        errors.append(FieldError("author", "The document author is required for PDF/A-3"))

    if not metadata.xml_filename:
        errors.append(FieldError("xml_filename", "The embedded XML file name is required"))
    elif not metadata.xml_filename.endswith(".xml"):
        errors.append(FieldError("xml_filename", "The embedded XML file must have the .xml extension"))

    if metadata.xml_filename != STANDARD_XML_FILENAME:
        warnings.append(
            f"XML file name '{metadata.xml_filename}' is not the standard '{STANDARD_XML_FILENAME}'"
        )

    if not metadata.facturx_version:
        errors.append(FieldError("facturx_version", "The Factur-X version is required"))

    return XmpValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def _q(tag: str) -> str:
    prefix, local = tag.split(":", 1)
    return f"{{{NS[prefix]}}}{local}"


def _sub(parent: etree._Element, tag: str, text: str | None = None, **attribs) -> etree._Element:
    elem = etree.SubElement(parent, _q(tag))
    if text is not None:
        elem.text = text
    for k, v in attribs.items():
        elem.set(_q(k.replace("__", ":")) if "__" in k else k, v)
    return elem


def _description(rdf: etree._Element, *prefixes: str) -> etree._Element:
    desc = etree.SubElement(
        rdf, _q("rdf:Description"), nsmap={p: NS[p] for p in prefixes}
    )
    desc.set(_q("rdf:about"), "")
    return desc


def _lang_alt(parent: etree._Element, tag: str, text: str) -> None:
    alt = _sub(_sub(parent, tag), "rdf:Alt")
    li = _sub(alt, "rdf:li", text)
    li.set(XML_LANG, "x-default")


def generate_xmp_metadata(metadata: XmpMetadata, now: datetime | None = None) -> str:
    """Render the XMP packet.

    Raises:
        ValidationError: listing every invalid field.
    """
    result = validate_xmp_metadata(metadata)
    if not result.is_valid:
        raise ValidationError("XMP validation failed", result.errors)
    for warning in result.warnings:
        logger.warning("XMP metadata: %s", warning)

    timestamp = fmt_xmp_timestamp(utc(now))

    root = etree.Element(_q("x:xmpmeta"), nsmap={"x": NS["x"]})
    rdf = etree.SubElement(root, _q("rdf:RDF"), nsmap={"rdf": NS["rdf"]})

    # Dublin Core
    dc = _description(rdf, "dc")
    _sub(dc, "dc:format", "application/pdf")
    _lang_alt(dc, "dc:title", metadata.title)
    _sub(_sub(_sub(dc, "dc:creator"), "rdf:Seq"), "rdf:li", metadata.author)
    _lang_alt(dc, "dc:description", metadata.subject)

    # XMP Basic
    basic = _description(rdf, "xmp")
    _sub(basic, "xmp:CreatorTool", CREATOR_TOOL)
    _sub(basic, "xmp:CreateDate", timestamp)
    _sub(basic, "xmp:ModifyDate", timestamp)
    _sub(basic, "xmp:MetadataDate", timestamp)

    # PDF properties
    pdf = _description(rdf, "pdf")
    _sub(pdf, "pdf:Producer", PRODUCER)

    # PDF/A identification
    pdfaid = _description(rdf, "pdfaid")
    _sub(pdfaid, "pdfaid:part", "3")
    _sub(pdfaid, "pdfaid:conformance", "B")

    # PDF/A extension schema declaring the fx namespace
    ext = _description(rdf, "pdfaExtension", "pdfaSchema", "pdfaProperty")
    bag = _sub(_sub(ext, "pdfaExtension:schemas"), "rdf:Bag")
    schema = _sub(bag, "rdf:li", rdf__parseType="Resource")
    _sub(schema, "pdfaSchema:schema", "Factur-X PDFA Extension Schema")
    _sub(schema, "pdfaSchema:namespaceURI", NS["fx"])
    _sub(schema, "pdfaSchema:prefix", "fx")
    seq = _sub(_sub(schema, "pdfaSchema:property"), "rdf:Seq")
    for name, description in FX_PROPERTIES:
        prop = _sub(seq, "rdf:li", rdf__parseType="Resource")
        _sub(prop, "pdfaProperty:name", name)
        _sub(prop, "pdfaProperty:valueType", "Text")
        _sub(prop, "pdfaProperty:category", "external")
        _sub(prop, "pdfaProperty:description", description)

    # Factur-X values
    values = {
        "DocumentFileName": metadata.xml_filename,
        "DocumentType": DOCUMENT_TYPE,
        "Version": metadata.facturx_version,
        "ConformanceLevel": metadata.profile.xmp_name,
    }
    fx = _description(rdf, "fx")
    for name, _ in FX_PROPERTIES:
        _sub(fx, f"fx:{name}", values[name])

    body = etree.tostring(root, pretty_print=True, encoding="unicode")
    return (
        f'<?xpacket begin="\ufeff" id="{PACKET_ID}"?>\n'
        f"{body}"
        '<?xpacket end="w"?>'
    )


def placeholder_packet() -> str:
    """Minimal empty XMP packet, replaced by ``inject_xmp`` later on."""
    root = etree.Element(_q("x:xmpmeta"), nsmap={"x": NS["x"]})
    etree.SubElement(root, _q("rdf:RDF"), nsmap={"rdf": NS["rdf"]})
    body = etree.tostring(root, encoding="unicode")
    return f'<?xpacket begin="\ufeff" id="{PACKET_ID}"?>\n{body}\n<?xpacket end="w"?>'
