from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tradedocs.errors import UnsupportedDocumentKind
from tradedocs.money import exact_arithmetic, round2


class DocumentKind(str, Enum):
    QUOTE = "quote"
    INVOICE = "invoice"
    PURCHASE_ORDER = "po"
    VARIATION = "variation"

    @classmethod
    def parse(cls, value) -> "DocumentKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            raise UnsupportedDocumentKind(value) from None

    @property
    def display_title(self) -> str:
        return _KIND_TITLES[self]

    @property
    def path_prefix(self) -> str:
        return _KIND_PATH_PREFIXES[self]

    @property
    def number_prefix(self) -> str:
        return _KIND_NUMBER_PREFIXES[self]


_KIND_TITLES = {
    DocumentKind.QUOTE: "Quote",
    DocumentKind.INVOICE: "Invoice",
    DocumentKind.PURCHASE_ORDER: "Purchase Order",
    DocumentKind.VARIATION: "Variation",
}

_KIND_PATH_PREFIXES = {
    DocumentKind.QUOTE: "quotes",
    DocumentKind.INVOICE: "invoices",
    DocumentKind.PURCHASE_ORDER: "pos",
    DocumentKind.VARIATION: "variations",
}

_KIND_NUMBER_PREFIXES = {
    DocumentKind.QUOTE: "Q-",
    DocumentKind.INVOICE: "INV-",
    DocumentKind.PURCHASE_ORDER: "PO-",
    DocumentKind.VARIATION: "VAR-",
}


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    PAID = "paid"


class LineItem(BaseModel):
    """A priced row as it is saved on a document."""

    description: str = Field(min_length=1)
    quantity: Decimal = Field(gt=0)
    unit_rate: Decimal = Field(ge=0)
    unit: Optional[str] = None
    sort_order: Optional[int] = None

    @field_validator("description", mode="before")
    @classmethod
    def _strip_description(cls, value):
        return value.strip() if isinstance(value, str) else value

    @property
    def amount(self) -> Decimal:
        with exact_arithmetic():
            return round2(self.quantity * self.unit_rate)


class Totals(BaseModel):
    model_config = ConfigDict(frozen=True)

    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal

    def as_dict(self) -> dict[str, float]:
        return {
            "subtotal": float(self.subtotal),
            "tax_amount": float(self.tax_amount),
            "total": float(self.total),
        }


class RenderItem(BaseModel):
    # Export-time view of a line item; every field may be missing.
    description: Optional[str] = None
    quantity: Optional[Decimal] = None
    unit_rate: Optional[Decimal] = None
    amount: Optional[Decimal] = None


class RenderableDocument(BaseModel):
    kind: str
    reference_number: Optional[str] = None
    date: Optional[str] = None
    counterpart_name: Optional[str] = None
    project_name: Optional[str] = None
    items: List[RenderItem] = Field(default_factory=list)
