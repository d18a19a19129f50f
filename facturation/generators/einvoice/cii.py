"""
Factur-X MINIMUM profile, UN/CEFACT Cross Industry Invoice (CII) syntax.

The document carries the header data only (no line items), one
``ApplicableTradeTax`` block per VAT rate found on the valid lines, and the
monetary summation repeating the computed totals.

References:
- Factur-X: https://fnfe-mpe.org/factur-x/
- CII D16B schema: UN/CEFACT CrossIndustryInvoice
"""
from __future__ import annotations

import logging
import re

from lxml import etree

from facturation.errors import FormatError
from facturation.formatting import fmt_amount, format_date_for_facturx
from facturation.generators.einvoice.base import EInvoiceStandard
from facturation.generators.einvoice.xmp import FacturXProfile
from facturation.models import EmitterConfig, InvoiceForm, InvoiceTotals
from facturation.tax import vat_breakdown

logger = logging.getLogger(__name__)

# ── XML Namespaces (CII D16B) ───────────────────────────────────
NS = {
    "rsm": "urn:un:unece:uncefact:data:standard:CrossIndustryInvoice:100",
    "ram": "urn:un:unece:uncefact:data:standard:ReusableAggregateBusinessInformationEntity:100",
    "udt": "urn:un:unece:uncefact:data:standard:UnqualifiedDataType:100",
    "qdt": "urn:un:unece:uncefact:data:standard:QualifiedDataType:100",
}

SCHEME_SIRET = "0002"
SCHEME_VAT = "VA"

# text content between tags; lxml already escapes < and > there
_TEXT = re.compile(r">([^<]+)<")


def _escape_quotes(xml: str) -> str:
    """Escape double quotes and apostrophes in text nodes."""
    return _TEXT.sub(
        lambda m: ">" + m.group(1).replace('"', "&quot;").replace("'", "&apos;") + "<", xml
    )


def _el(parent: etree._Element, tag: str, text: str | None = None, **attribs) -> etree._Element:
    """Create a sub-element with optional text and attributes.

    Text is escaped by lxml on serialization; strings that cannot appear in
    XML at all (control characters) raise ``FormatError``.
    """
    ns_prefix, local = tag.split(":", 1) if ":" in tag else ("ram", tag)
    elem = etree.SubElement(parent, f"{{{NS[ns_prefix]}}}{local}")
    try:
        if text is not None:
            elem.text = str(text)
        for k, v in attribs.items():
            elem.set(k, str(v))
    except ValueError as exc:
        raise FormatError(f"Value for {local} cannot be written to XML: {exc}", local) from exc
    return elem


def _present(value: str | None) -> bool:
    return bool(value and value.strip())


class MinimumCIIStandard(EInvoiceStandard):
    """Factur-X 1.0 – MINIMUM profile."""

    @property
    def standard_name(self) -> str:
        return "Factur-X MINIMUM"

    @property
    def profile(self) -> FacturXProfile:
        return FacturXProfile.MINIMUM

    # ── Public API ──────────────────────────────────────────────
    def generate_xml(self, invoice: InvoiceForm, emitter: EmitterConfig,
                     totals: InvoiceTotals) -> str:
        root = self._build_root(invoice, emitter, InvoiceTotals(*totals))
        xml = _escape_quotes(etree.tostring(
            root, pretty_print=True, xml_declaration=True, encoding="UTF-8"
        ).decode("utf-8"))
        logger.info("Generated CII XML for invoice %s (%d bytes)", invoice.invoice_number, len(xml))
        return xml

    # ── XML tree builders ───────────────────────────────────────
    def _build_root(self, inv: InvoiceForm, emitter: EmitterConfig,
                    totals: InvoiceTotals) -> etree._Element:
        # Dates are checked first so a bad date never yields a partial tree.
        issue_date = format_date_for_facturx(inv.issue_date, "issue_date")
        due_date = None
        if _present(inv.due_date):
            due_date = format_date_for_facturx(inv.due_date, "due_date")

        root = etree.Element(f"{{{NS['rsm']}}}CrossIndustryInvoice", nsmap=dict(NS))
        self._add_context(root)
        self._add_document(root, inv, issue_date)

        txn = _el(root, "rsm:SupplyChainTradeTransaction")
        self._add_agreement(txn, inv, emitter)
        _el(txn, "ram:ApplicableHeaderTradeDelivery")
        self._add_settlement(txn, inv, totals, due_date)
        return root

    def _add_context(self, root: etree._Element) -> None:
        ctx = _el(root, "rsm:ExchangedDocumentContext")
        param = _el(ctx, "ram:GuidelineSpecifiedDocumentContextParameter")
        _el(param, "ram:ID", self.profile.urn)

    def _add_document(self, root: etree._Element, inv: InvoiceForm, issue_date: str) -> None:
        doc = _el(root, "rsm:ExchangedDocument")
        _el(doc, "ram:ID", inv.invoice_number)
        _el(doc, "ram:TypeCode", int(inv.type_code))
        dt = _el(doc, "ram:IssueDateTime")
        _el(dt, "udt:DateTimeString", issue_date, format="102")

    def _add_party(self, agreement: etree._Element, tag: str, *, name: str, siret: str,
                   address: str, country: str, vat_number: str | None) -> None:
        party = _el(agreement, tag)
        _el(party, "ram:Name", name)
        legal = _el(party, "ram:SpecifiedLegalOrganization")
        _el(legal, "ram:ID", siret, schemeID=SCHEME_SIRET)
        addr = _el(party, "ram:PostalTradeAddress")
        _el(addr, "ram:LineOne", address)
        _el(addr, "ram:CountryID", country)
        if _present(vat_number):
            tax_reg = _el(party, "ram:SpecifiedTaxRegistration")
            _el(tax_reg, "ram:ID", vat_number, schemeID=SCHEME_VAT)

    def _add_agreement(self, txn: etree._Element, inv: InvoiceForm, emitter: EmitterConfig) -> None:
        agreement = _el(txn, "ram:ApplicableHeaderTradeAgreement")

        if _present(inv.buyer_reference):
            _el(agreement, "ram:BuyerReference", inv.buyer_reference)

        self._add_party(agreement, "ram:SellerTradeParty",
                        name=emitter.name, siret=emitter.siret, address=emitter.address,
                        country=emitter.country_code, vat_number=emitter.num_tva)
        self._add_party(agreement, "ram:BuyerTradeParty",
                        name=inv.recipient_name, siret=inv.recipient_siret,
                        address=inv.recipient_address, country=inv.recipient_country_code,
                        vat_number=inv.recipient_vat_number)

        if _present(inv.purchase_order_reference):
            order = _el(agreement, "ram:BuyerOrderReferencedDocument")
            _el(order, "ram:IssuerAssignedID", inv.purchase_order_reference)

    def _add_settlement(self, txn: etree._Element, inv: InvoiceForm,
                        totals: InvoiceTotals, due_date: str | None) -> None:
        settlement = _el(txn, "ram:ApplicableHeaderTradeSettlement")
        _el(settlement, "ram:InvoiceCurrencyCode", inv.currency_code)

        for entry in vat_breakdown(inv):
            tax = _el(settlement, "ram:ApplicableTradeTax")
            _el(tax, "ram:CalculatedAmount", fmt_amount(entry.tax))
            _el(tax, "ram:TypeCode", "VAT")
            _el(tax, "ram:BasisAmount", fmt_amount(entry.basis))
            _el(tax, "ram:CategoryCode", "S")  # Standard
            _el(tax, "ram:RateApplicablePercent", fmt_amount(entry.rate))

        if due_date:
            terms = _el(settlement, "ram:SpecifiedTradePaymentTerms")
            due_dt = _el(terms, "ram:DueDateDateTime")
            _el(due_dt, "udt:DateTimeString", due_date, format="102")

        summary = _el(settlement, "ram:SpecifiedTradeSettlementHeaderMonetarySummation")
        _el(summary, "ram:LineTotalAmount", fmt_amount(totals.total_ht))
        _el(summary, "ram:TaxBasisTotalAmount", fmt_amount(totals.total_ht))
        _el(summary, "ram:TaxTotalAmount", fmt_amount(totals.total_vat), currencyID=inv.currency_code)
        _el(summary, "ram:GrandTotalAmount", fmt_amount(totals.total_ttc))
        _el(summary, "ram:DuePayableAmount", fmt_amount(totals.total_ttc))


def generate(invoice: InvoiceForm, emitter: EmitterConfig, totals: InvoiceTotals) -> str:
    """Render ``invoice`` as a Factur-X MINIMUM CII document."""
    return MinimumCIIStandard().generate_xml(invoice, emitter, totals)
