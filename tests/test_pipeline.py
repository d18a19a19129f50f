"""End-to-end tests for Factur-X generation"""
import os
import tempfile
import unittest
from io import BytesIO

from lxml import etree
from pypdf import PdfReader

from facturation import ValidationError, generate_facturx_pdf, save_result
from facturation.generators.einvoice import extract_xml
from facturation.generators.einvoice.cii import NS as CII_NS
from facturation.generators.einvoice.pdfa import check_pdfa_structure
from facturation.generators.einvoice.xmp import NS as XMP_NS
from facturation.models import InvoiceLine

from tests.fixtures import FIXED_NOW, make_emitter, make_invoice, png_logo, vera_fonts


def generate(invoice=None, emitter=None, **kwargs):
    return generate_facturx_pdf(invoice or make_invoice(), emitter or make_emitter(),
                                vera_fonts(), now=FIXED_NOW, **kwargs)


class TestGenerateFacturX(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.result = generate(logo=png_logo())
        cls.root = PdfReader(BytesIO(cls.result.pdf)).trailer["/Root"].get_object()

    def test_totals(self):
        self.assertAlmostEqual(self.result.totals.total_ht, 2000.0, delta=1e-9)
        self.assertAlmostEqual(self.result.totals.total_vat, 400.0, delta=1e-9)
        self.assertAlmostEqual(self.result.totals.total_ttc, 2400.0, delta=1e-9)
        self.assertEqual(self.result.warnings, [])

    def test_embedded_xml_matches(self):
        filename, xml_bytes = extract_xml(self.result.pdf)
        self.assertEqual(filename, "factur-x.xml")
        self.assertEqual(xml_bytes.decode("utf-8"), self.result.xml)
        root = etree.fromstring(xml_bytes)
        self.assertEqual(root.findtext(".//ram:GrandTotalAmount", namespaces=CII_NS), "2400.00")

    def test_single_associated_file(self):
        af = self.root["/AF"]
        self.assertEqual(len(af), 1)
        self.assertEqual(af[0].get_object()["/UF"], "factur-x.xml")

    def test_xmp_declares_facturx(self):
        packet = self.root["/Metadata"].get_object().get_data()
        xmp = etree.fromstring(packet)
        self.assertEqual(xmp.findtext(".//pdfaid:part", namespaces=XMP_NS), "3")
        self.assertEqual(xmp.findtext(".//pdfaid:conformance", namespaces=XMP_NS), "B")
        self.assertEqual(xmp.findtext(".//fx:DocumentFileName", namespaces=XMP_NS), "factur-x.xml")
        self.assertEqual(xmp.findtext(".//fx:ConformanceLevel", namespaces=XMP_NS), "MINIMUM")
        self.assertEqual(xmp.findtext(".//dc:title/rdf:Alt/rdf:li", namespaces=XMP_NS),
                         "Facture FA-2024-001")

    def test_structure(self):
        self.assertEqual(check_pdfa_structure(self.result.pdf), [])

    def test_idempotent(self):
        again = generate(logo=png_logo())
        self.assertEqual(again.xml, self.result.xml)
        self.assertEqual(again.pdf, self.result.pdf)


class TestInvalidInput(unittest.TestCase):

    def test_invalid_line_rejected(self):
        invoice = make_invoice(lines=[InvoiceLine("Valid", 1, 100.0), InvoiceLine("Broken", 0, 100.0)])
        with self.assertRaises(ValidationError) as ctx:
            generate(invoice)
        self.assertEqual([e.field for e in ctx.exception.errors], ["lines[1][quantity]"])

    def test_all_errors_reported(self):
        invoice = make_invoice(invoice_number="", recipient_siret="1")
        with self.assertRaises(ValidationError) as ctx:
            generate(invoice, make_emitter(name=""))
        fields = {e.field for e in ctx.exception.errors}
        self.assertEqual(fields, {"invoice_number", "recipient_siret", "emitter.name"})

    def test_skip_invalid_lines(self):
        invoice = make_invoice(lines=[InvoiceLine("Valid", 2, 100.0), InvoiceLine("Broken", 0, 100.0)])
        result = generate(invoice, skip_invalid_lines=True)
        self.assertEqual(len(result.warnings), 1)
        self.assertIn("[1]", result.warnings[0])
        self.assertAlmostEqual(result.totals.total_ttc, 240.0, delta=1e-9)

    def test_skip_invalid_lines_needs_one_valid_line(self):
        invoice = make_invoice(lines=[InvoiceLine("Broken", 0, 100.0)])
        with self.assertRaises(ValidationError) as ctx:
            generate(invoice, skip_invalid_lines=True)
        self.assertEqual([e.field for e in ctx.exception.errors], ["lines"])

    def test_skip_invalid_lines_keeps_errors_of_billed_lines(self):
        invoice = make_invoice(lines=[
            InvoiceLine("Valid", 1, 100.0, 20.0),
            InvoiceLine("Rate too high", 1, 100.0, 150.0),
            InvoiceLine("Negative discount", 1, 100.0, 20.0,
                        discount_value=-50.0, discount_type="amount"),
        ])
        with self.assertRaises(ValidationError) as ctx:
            generate(invoice, skip_invalid_lines=True)
        fields = {e.field for e in ctx.exception.errors}
        self.assertEqual(fields, {"lines[1][vat_rate]", "lines[2][discount_value]"})

    def test_skip_invalid_lines_mixed(self):
        invoice = make_invoice(lines=[
            InvoiceLine("Valid", 1, 100.0, 20.0),
            InvoiceLine("Broken", 0, 100.0, 20.0),
            InvoiceLine("Rate too high", 1, 100.0, 150.0),
        ])
        with self.assertRaises(ValidationError) as ctx:
            generate(invoice, skip_invalid_lines=True)
        self.assertEqual([e.field for e in ctx.exception.errors], ["lines[2][vat_rate]"])


class TestSaveResult(unittest.TestCase):

    def test_writes_both_files(self):
        result = generate()
        with tempfile.TemporaryDirectory() as tmp:
            emitter = make_emitter(pdf_storage=os.path.join(tmp, "pdf"),
                                   xml_storage=os.path.join(tmp, "xml"))
            written = save_result(result, emitter, "FA/2024 001")
            self.assertEqual(os.path.basename(written["pdf"]), "FA_2024_001.pdf")
            with open(written["pdf"], "rb") as f:
                self.assertEqual(f.read(), result.pdf)
            with open(written["xml"], "rb") as f:
                self.assertEqual(f.read().decode("utf-8"), result.xml)

    def test_no_storage_configured(self):
        self.assertEqual(save_result(generate(), make_emitter(), "FA-1"), {})


if __name__ == "__main__":
    unittest.main()
