"""Unit tests for the XMP metadata packet"""
import unittest

from lxml import etree

from facturation.errors import ValidationError
from facturation.generators.einvoice.xmp import (
    NS, FacturXProfile, XmpMetadata, generate_xmp_metadata, validate_xmp_metadata,
)

from tests.fixtures import FIXED_NOW


def metadata(**overrides):
    data = dict(title="Facture FA-2024-001", author="Test Company",
                subject="Facture Factur-X pour Client Test SARL")
    data.update(overrides)
    return XmpMetadata(**data)


def parse(packet):
    return etree.fromstring(packet.encode("utf-8"))


class TestValidation(unittest.TestCase):

    def test_valid(self):
        result = validate_xmp_metadata(metadata())
        self.assertTrue(result.is_valid)
        self.assertEqual(result.errors, [])
        self.assertEqual(result.warnings, [])

    def test_all_errors_collected(self):
        result = validate_xmp_metadata(metadata(title="", author="", facturx_version=""))
        self.assertFalse(result.is_valid)
        self.assertEqual([e.field for e in result.errors], ["title", "author", "facturx_version"])

    def test_non_standard_filename_warns(self):
        result = validate_xmp_metadata(metadata(xml_filename="invoice.xml"))
        self.assertTrue(result.is_valid)
        self.assertEqual(len(result.warnings), 1)
        self.assertIn("invoice.xml", result.warnings[0])

    def test_wrong_extension_is_error(self):
        result = validate_xmp_metadata(metadata(xml_filename="factur-x.txt"))
        self.assertFalse(result.is_valid)
        self.assertEqual(result.errors[0].field, "xml_filename")


class TestPacket(unittest.TestCase):

    def test_missing_title_raises(self):
        with self.assertRaises(ValidationError) as ctx:
            generate_xmp_metadata(metadata(title=""), now=FIXED_NOW)
        self.assertEqual([e.field for e in ctx.exception.errors], ["title"])

    def test_packet_wrapper(self):
        packet = generate_xmp_metadata(metadata(), now=FIXED_NOW)
        self.assertTrue(packet.startswith('<?xpacket begin="\ufeff" id="W5M0MpCehiHzreSzNTczkc9d"?>'))
        self.assertTrue(packet.endswith('<?xpacket end="w"?>'))

    def test_pdfa_identification(self):
        root = parse(generate_xmp_metadata(metadata(), now=FIXED_NOW))
        self.assertEqual(root.findtext(".//pdfaid:part", namespaces=NS), "3")
        self.assertEqual(root.findtext(".//pdfaid:conformance", namespaces=NS), "B")

    def test_dublin_core(self):
        root = parse(generate_xmp_metadata(metadata(), now=FIXED_NOW))
        self.assertEqual(root.findtext(".//dc:title/rdf:Alt/rdf:li", namespaces=NS), "Facture FA-2024-001")
        self.assertEqual(root.findtext(".//dc:creator/rdf:Seq/rdf:li", namespaces=NS), "Test Company")
        self.assertEqual(root.findtext(".//dc:description/rdf:Alt/rdf:li", namespaces=NS),
                         "Facture Factur-X pour Client Test SARL")

    def test_fixed_timestamps(self):
        root = parse(generate_xmp_metadata(metadata(), now=FIXED_NOW))
        for tag in ("xmp:CreateDate", "xmp:ModifyDate", "xmp:MetadataDate"):
            self.assertEqual(root.findtext(f".//{tag}", namespaces=NS), "2024-01-31T12:00:00+00:00")

    def test_fx_values_match_declared_properties(self):
        root = parse(generate_xmp_metadata(metadata(), now=FIXED_NOW))
        declared = [e.text for e in root.iterfind(".//pdfaProperty:name", namespaces=NS)]
        self.assertEqual(declared, ["DocumentFileName", "DocumentType", "Version", "ConformanceLevel"])
        self.assertEqual(root.findtext(".//pdfaSchema:namespaceURI", namespaces=NS), NS["fx"])
        self.assertEqual(root.findtext(".//pdfaSchema:prefix", namespaces=NS), "fx")

        values = {etree.QName(e).localname: e.text
                  for e in root.iterfind(".//rdf:Description/*", namespaces=NS)
                  if etree.QName(e).namespace == NS["fx"]}
        self.assertEqual(values, {
            "DocumentFileName": "factur-x.xml",
            "DocumentType": "INVOICE",
            "Version": "1.0",
            "ConformanceLevel": "MINIMUM",
        })

    def test_property_descriptions(self):
        root = parse(generate_xmp_metadata(metadata(), now=FIXED_NOW))
        descriptions = {}
        for prop in root.iterfind(".//pdfaSchema:property/rdf:Seq/rdf:li", namespaces=NS):
            name = prop.findtext("pdfaProperty:name", namespaces=NS)
            descriptions[name] = prop.findtext("pdfaProperty:description", namespaces=NS)
        self.assertEqual(descriptions["DocumentType"], "Invoice type")
        self.assertEqual(descriptions["DocumentFileName"], "Name of the embedded XML invoice file")

    def test_profile_level(self):
        root = parse(generate_xmp_metadata(metadata(profile=FacturXProfile.BASIC_WL), now=FIXED_NOW))
        self.assertEqual(root.findtext(".//fx:ConformanceLevel", namespaces=NS), "BASIC WL")

    def test_deterministic(self):
        self.assertEqual(generate_xmp_metadata(metadata(), now=FIXED_NOW),
                         generate_xmp_metadata(metadata(), now=FIXED_NOW))


if __name__ == "__main__":
    unittest.main()
