"""Unit tests for the Factur-X MINIMUM CII serializer"""
import unittest

from lxml import etree

from facturation.errors import DateFormatError
from facturation.generators.einvoice import get_standard
from facturation.generators.einvoice.cii import NS, MinimumCIIStandard, generate
from facturation.models import InvoiceLine
from facturation.tax import compute_totals

from tests.fixtures import make_emitter, make_invoice


def render(invoice, emitter=None):
    totals = compute_totals(invoice)
    xml = generate(invoice, emitter or make_emitter(), totals)
    return xml, etree.fromstring(xml.encode("utf-8"))


class TestMinimumCII(unittest.TestCase):

    def test_header_fields(self):
        xml, root = render(make_invoice())
        self.assertTrue(xml.startswith("<?xml"))
        self.assertEqual(
            root.findtext(".//ram:GuidelineSpecifiedDocumentContextParameter/ram:ID", namespaces=NS),
            "urn:factur-x.eu:1p0:minimum",
        )
        self.assertEqual(root.findtext("rsm:ExchangedDocument/ram:ID", namespaces=NS), "FA-2024-001")
        self.assertEqual(root.findtext("rsm:ExchangedDocument/ram:TypeCode", namespaces=NS), "380")

        issue = root.find("rsm:ExchangedDocument/ram:IssueDateTime/udt:DateTimeString", namespaces=NS)
        self.assertEqual(issue.text, "20240115")
        self.assertEqual(issue.get("format"), "102")

    def test_parties(self):
        _, root = render(make_invoice())
        seller = root.find(".//ram:SellerTradeParty", namespaces=NS)
        buyer = root.find(".//ram:BuyerTradeParty", namespaces=NS)
        self.assertEqual(seller.findtext("ram:Name", namespaces=NS), "Test Company")
        legal = seller.find("ram:SpecifiedLegalOrganization/ram:ID", namespaces=NS)
        self.assertEqual(legal.text, "12345678901234")
        self.assertEqual(legal.get("schemeID"), "0002")
        self.assertEqual(buyer.findtext("ram:PostalTradeAddress/ram:CountryID", namespaces=NS), "FR")
        vat = buyer.find("ram:SpecifiedTaxRegistration/ram:ID", namespaces=NS)
        self.assertEqual(vat.text, "FR98765432109")
        self.assertEqual(vat.get("schemeID"), "VA")

    def test_single_tax_block_and_summation(self):
        _, root = render(make_invoice())
        taxes = root.findall(".//ram:ApplicableTradeTax", namespaces=NS)
        self.assertEqual(len(taxes), 1)
        self.assertEqual(taxes[0].findtext("ram:RateApplicablePercent", namespaces=NS), "20.00")
        self.assertEqual(taxes[0].findtext("ram:BasisAmount", namespaces=NS), "2000.00")
        self.assertEqual(taxes[0].findtext("ram:CalculatedAmount", namespaces=NS), "400.00")
        self.assertEqual(taxes[0].findtext("ram:CategoryCode", namespaces=NS), "S")

        summary = root.find(".//ram:SpecifiedTradeSettlementHeaderMonetarySummation", namespaces=NS)
        self.assertEqual(summary.findtext("ram:TaxBasisTotalAmount", namespaces=NS), "2000.00")
        tax_total = summary.find("ram:TaxTotalAmount", namespaces=NS)
        self.assertEqual(tax_total.text, "400.00")
        self.assertEqual(tax_total.get("currencyID"), "EUR")
        self.assertEqual(summary.findtext("ram:GrandTotalAmount", namespaces=NS), "2400.00")
        self.assertEqual(summary.findtext("ram:DuePayableAmount", namespaces=NS), "2400.00")

    def test_due_date(self):
        _, root = render(make_invoice())
        self.assertEqual(
            root.findtext(".//ram:SpecifiedTradePaymentTerms/ram:DueDateDateTime/udt:DateTimeString",
                          namespaces=NS),
            "20240228",
        )

    def test_optional_blocks_absent(self):
        xml, root = render(make_invoice(due_date=None, recipient_vat_number=None))
        self.assertIsNone(root.find(".//ram:SpecifiedTradePaymentTerms", namespaces=NS))
        self.assertIsNone(root.find(".//ram:BuyerReference", namespaces=NS))
        self.assertIsNone(root.find(".//ram:BuyerOrderReferencedDocument", namespaces=NS))
        self.assertIsNone(root.find(".//ram:BuyerTradeParty/ram:SpecifiedTaxRegistration", namespaces=NS))
        self.assertNotIn("IncludedSupplyChainTradeLineItem", xml)

    def test_references_present(self):
        _, root = render(make_invoice(buyer_reference="SERVICE-42", purchase_order_reference="PO-7"))
        agreement = root.find(".//ram:ApplicableHeaderTradeAgreement", namespaces=NS)
        self.assertEqual(agreement[0].tag, f"{{{NS['ram']}}}BuyerReference")
        self.assertEqual(agreement.findtext("ram:BuyerReference", namespaces=NS), "SERVICE-42")
        self.assertEqual(
            agreement.findtext("ram:BuyerOrderReferencedDocument/ram:IssuerAssignedID", namespaces=NS),
            "PO-7",
        )

    def test_special_characters_escaped(self):
        xml, root = render(make_invoice(recipient_name="A & B <C>"))
        self.assertIn("A &amp; B &lt;C&gt;", xml)
        self.assertEqual(root.findtext(".//ram:BuyerTradeParty/ram:Name", namespaces=NS), "A & B <C>")

    def test_quotes_and_apostrophes_escaped(self):
        xml, root = render(make_invoice(recipient_name='O\'Brien "Ltd"'))
        self.assertIn("O&apos;Brien &quot;Ltd&quot;", xml)
        self.assertTrue(xml.startswith("<?xml version='1.0' encoding='UTF-8'?>"))
        self.assertEqual(root.findtext(".//ram:BuyerTradeParty/ram:Name", namespaces=NS),
                         'O\'Brien "Ltd"')

    def test_invalid_lines_excluded(self):
        invoice = make_invoice(lines=[
            InvoiceLine("Kept", 1, 100.0, 20.0),
            InvoiceLine("Dropped", 0, 999.0, 10.0),
        ])
        _, root = render(invoice)
        taxes = root.findall(".//ram:ApplicableTradeTax", namespaces=NS)
        self.assertEqual([t.findtext("ram:RateApplicablePercent", namespaces=NS) for t in taxes], ["20.00"])
        self.assertEqual(root.findtext(".//ram:GrandTotalAmount", namespaces=NS), "120.00")

    def test_one_tax_block_per_rate(self):
        invoice = make_invoice(lines=[
            InvoiceLine("A", 1, 100.0, 20.0),
            InvoiceLine("B", 2, 10.0, 5.5),
        ])
        _, root = render(invoice)
        rates = [t.findtext("ram:RateApplicablePercent", namespaces=NS)
                 for t in root.findall(".//ram:ApplicableTradeTax", namespaces=NS)]
        self.assertEqual(rates, ["5.50", "20.00"])

    def test_credit_note_type_code(self):
        _, root = render(make_invoice(type_code=381))
        self.assertEqual(root.findtext("rsm:ExchangedDocument/ram:TypeCode", namespaces=NS), "381")

    def test_bad_issue_date(self):
        invoice = make_invoice(issue_date="15/01/2024")
        with self.assertRaises(DateFormatError) as ctx:
            render(invoice)
        self.assertEqual(ctx.exception.field, "issue_date")

    def test_bad_due_date(self):
        with self.assertRaises(DateFormatError):
            render(make_invoice(due_date="2024-2-28"))


class TestStandardRegistry(unittest.TestCase):

    def test_default_standard(self):
        std = get_standard()
        self.assertIsInstance(std, MinimumCIIStandard)
        self.assertEqual(std.xml_filename, "factur-x.xml")
        self.assertEqual(std.profile_name, "MINIMUM")

    def test_unknown_standard(self):
        with self.assertRaises(ValueError):
            get_standard("xrechnung")

    def test_validate_data_prefixes_emitter_errors(self):
        errors = get_standard().validate_data(make_invoice(), make_emitter(siret="42"))
        self.assertEqual([e.field for e in errors], ["emitter.siret"])


if __name__ == "__main__":
    unittest.main()
