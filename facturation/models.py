"""
Invoice data model.

``EmitterConfig`` is loaded once and shared read-only; ``InvoiceForm`` and
its ``InvoiceLine`` objects are built by the caller for one generation and
receive their computed totals from ``facturation.tax``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import NamedTuple

from facturation.errors import FormatError


@dataclass(frozen=True)
class FieldError:
    """A validation problem attached to one input field."""
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class InvoiceTypeCode(IntEnum):
    """Document types (UNTDID 1001) accepted for an invoice."""
    INVOICE = 380
    CREDIT_NOTE = 381
    CORRECTED_INVOICE = 384
    PREPAYMENT_INVOICE = 389

    @property
    def label(self) -> str:
        return _TYPE_LABELS[self]

    @property
    def title(self) -> str:
        """Heading printed on the PDF."""
        return self.label.upper()

    @classmethod
    def from_code(cls, code) -> "InvoiceTypeCode":
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            accepted = ", ".join(f"{c.value} ({c.label})" for c in cls)
            raise FormatError(
                f"Invalid document type {code!r}. Accepted values: {accepted}", "type_code"
            ) from None


_TYPE_LABELS = {
    InvoiceTypeCode.INVOICE: "Facture",
    InvoiceTypeCode.CREDIT_NOTE: "Avoir",
    InvoiceTypeCode.CORRECTED_INVOICE: "Facture rectificative",
    InvoiceTypeCode.PREPAYMENT_INVOICE: "Facture d'acompte",
}


class DiscountType(str, Enum):
    PERCENT = "percent"   # percentage of the gross line amount
    AMOUNT = "amount"     # absolute amount

    @classmethod
    def parse(cls, value) -> "DiscountType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise FormatError(
                f"Invalid discount type {value!r}. Accepted values: percent, amount", "discount_type"
            ) from None


class InvoiceTotals(NamedTuple):
    """Aggregate amounts over the valid lines of an invoice."""
    total_ht: float
    total_vat: float
    total_ttc: float


@dataclass(frozen=True)
class EmitterConfig:
    """Identity of the invoice issuer."""
    siret: str
    name: str
    address: str
    siren: str | None = None
    bic: str | None = None
    num_tva: str | None = None
    logo: str | None = None
    xml_storage: str | None = None
    pdf_storage: str | None = None
    country_code: str = "FR"

    @classmethod
    def from_mapping(cls, data: dict) -> "EmitterConfig":
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})

    def validate(self) -> list[FieldError]:
        errors = []
        if not self.name.strip():
            errors.append(FieldError("name", "The emitter name is required"))
        if not self.address.strip():
            errors.append(FieldError("address", "The emitter address is required"))
        if not is_valid_siret(self.siret):
            errors.append(FieldError("siret", "The SIRET must contain 14 digits"))
        if self.siren and len(_digits(self.siren)) != 9:
            errors.append(FieldError("siren", "The SIREN must contain 9 digits"))
        if self.num_tva and not is_valid_vat_number(self.num_tva):
            errors.append(FieldError("num_tva", "Invalid VAT number format (e.g. FR12345678901)"))
        return errors


@dataclass
class InvoiceLine:
    description: str
    quantity: float
    unit_price_ht: float
    vat_rate: float = 20.0
    discount_value: float | None = None
    discount_type: DiscountType | None = None

    # Filled in by facturation.tax
    discount_amount: float | None = None
    total_ht: float | None = None
    total_vat: float | None = None
    total_ttc: float | None = None

    def __post_init__(self):
        if self.discount_type is not None and self.discount_type != "":
            self.discount_type = DiscountType.parse(self.discount_type)
        else:
            self.discount_type = None

    def is_valid(self) -> bool:
        """A line is rendered and counted only when this holds."""
        return (
            bool(self.description.strip())
            and self.quantity > 0
            and self.unit_price_ht > 0
            and self.vat_rate >= 0
        )

    def compute_totals(self) -> tuple[float, float, float, float]:
        from facturation.tax import compute_line_totals
        return compute_line_totals(self)

    def total_ht_value(self) -> float:
        return self.total_ht or 0.0

    def total_vat_value(self) -> float:
        return self.total_vat or 0.0

    def total_ttc_value(self) -> float:
        return self.total_ttc or 0.0

    def validate(self, index: int) -> list[FieldError]:
        errors = []

        def add(name, message):
            errors.append(FieldError(f"lines[{index}][{name}]", message))

        if not self.description.strip():
            add("description", "The description is required")
        if self.quantity <= 0:
            add("quantity", "The quantity must be greater than 0")
        if self.unit_price_ht <= 0:
            add("unit_price_ht", "The unit price excl. tax must be greater than 0")
        if self.vat_rate < 0:
            add("vat_rate", "The VAT rate cannot be negative")
        elif self.vat_rate > 100:
            add("vat_rate", "The VAT rate cannot exceed 100%")
        if self.discount_value is not None and self.discount_value < 0:
            add("discount_value", "The discount cannot be negative")
        return errors

    def __str__(self) -> str:
        return (f"{self.quantity} x {self.unit_price_ht} HT @{self.vat_rate}% "
                f"= {self.total_ttc_value()} TTC")


@dataclass
class InvoiceForm:
    """The invoice being generated."""
    invoice_number: str
    issue_date: str
    recipient_name: str
    recipient_siret: str
    recipient_address: str
    recipient_country_code: str
    type_code: InvoiceTypeCode = InvoiceTypeCode.INVOICE
    currency_code: str = "EUR"
    due_date: str | None = None
    payment_terms: str | None = None
    buyer_reference: str | None = None
    purchase_order_reference: str | None = None
    recipient_vat_number: str | None = None
    lines: list[InvoiceLine] = field(default_factory=list)

    def __post_init__(self):
        self.type_code = InvoiceTypeCode.from_code(self.type_code)

    @property
    def valid_lines(self) -> list[InvoiceLine]:
        return [line for line in self.lines if line.is_valid()]

    def compute_totals(self) -> InvoiceTotals:
        from facturation.tax import compute_totals
        return compute_totals(self)

    def validate(self) -> list[FieldError]:
        """Check every field and return all problems found."""
        errors = []

        if not self.invoice_number.strip():
            errors.append(FieldError("invoice_number", "The invoice number is required"))

        if not self.issue_date.strip():
            errors.append(FieldError("issue_date", "The issue date is required"))
        elif not is_valid_date(self.issue_date):
            errors.append(FieldError("issue_date", "Invalid date format (expected YYYY-MM-DD)"))

        if not self.currency_code.strip():
            errors.append(FieldError("currency_code", "The currency code is required"))
        elif not is_valid_currency_code(self.currency_code):
            errors.append(FieldError("currency_code", "Invalid currency code (ISO 4217, e.g. EUR)"))

        if self.due_date and self.due_date.strip() and not is_valid_date(self.due_date):
            errors.append(FieldError("due_date", "Invalid due date format (expected YYYY-MM-DD)"))

        if not self.recipient_name.strip():
            errors.append(FieldError("recipient_name", "The recipient name is required"))

        if not self.recipient_siret.strip():
            errors.append(FieldError("recipient_siret", "The recipient SIRET is required"))
        elif not is_valid_siret(self.recipient_siret):
            errors.append(FieldError("recipient_siret", "The SIRET must contain 14 digits"))

        if not self.recipient_country_code.strip():
            errors.append(FieldError("recipient_country_code", "The recipient country code is required"))
        elif not is_valid_country_code(self.recipient_country_code):
            errors.append(FieldError("recipient_country_code",
                                     "Invalid country code (ISO 3166-1 alpha-2, e.g. FR)"))

        if self.recipient_vat_number and self.recipient_vat_number.strip() \
                and not is_valid_vat_number(self.recipient_vat_number):
            errors.append(FieldError("recipient_vat_number", "Invalid VAT number format (e.g. FR12345678901)"))

        if not self.lines:
            errors.append(FieldError("lines", "The invoice must contain at least one line"))
        for index, line in enumerate(self.lines):
            errors.extend(line.validate(index))

        return errors


# ─── Field format checks ─────────────────────────────────────────
def _digits(value: str) -> str:
    return "".join(c for c in value if c.isdigit())


def is_valid_siret(value: str) -> bool:
    return len(_digits(value or "")) == 14


def is_valid_date(value: str) -> bool:
    if len(value) != 10:
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def is_valid_currency_code(value: str) -> bool:
    value = value.strip()
    return len(value) == 3 and value.isascii() and value.isalpha() and value.isupper()


def is_valid_country_code(value: str) -> bool:
    value = value.strip()
    return len(value) == 2 and value.isascii() and value.isalpha() and value.isupper()


def is_valid_vat_number(value: str) -> bool:
    cleaned = "".join(c for c in value if c.isalnum())
    return (
        4 <= len(cleaned) <= 15
        and cleaned[:2].isascii()
        and cleaned[:2].isalpha()
        and cleaned[:2].isupper()
    )
