from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

from sqlmodel import Session, col, select

from tradedocs.calculations import coerce_decimal, compute_line_amount, compute_totals, default_tax_rate
from tradedocs.context import BusinessContext
from tradedocs.data import Document, DocumentItem
from tradedocs.errors import DocumentError, DocumentNotFound
from tradedocs.models import (
    DocumentKind,
    DocumentStatus,
    LineItem,
    RenderableDocument,
    RenderItem,
    Totals,
)

logger = logging.getLogger(__name__)


@dataclass
class DocumentWithItems:
    document: Document
    items: list[DocumentItem]
    totals: Totals

    @property
    def kind(self) -> DocumentKind:
        return DocumentKind.parse(self.document.type)


def document_number_for(kind: DocumentKind | str, now: datetime | None = None) -> str:
    kind = DocumentKind.parse(kind)
    stamp = int((now or datetime.now(timezone.utc)).timestamp() * 1000)
    return f"{kind.number_prefix}{stamp}"


def _item_rows(items: Iterable[DocumentItem]) -> list[dict[str, Any]]:
    return [{"qty": it.qty, "rate": it.rate} for it in items]


def _as_line_items(items: Iterable[Any]) -> list[LineItem]:
    return [it if isinstance(it, LineItem) else LineItem.model_validate(it) for it in items]


def _stored_totals_drifted(document: Document, totals: Totals) -> bool:
    stored = (
        Decimal(str(document.subtotal)),
        Decimal(str(document.gst)),
        Decimal(str(document.total)),
    )
    return stored != (totals.subtotal, totals.tax_amount, totals.total)


def _apply_totals(document: Document, totals: Totals) -> None:
    values = totals.as_dict()
    document.subtotal = values["subtotal"]
    document.gst = values["tax_amount"]
    document.total = values["total"]


def create_document_with_items(
    session: Session,
    context: BusinessContext,
    *,
    kind: DocumentKind | str,
    items: Iterable[Any],
    job_id: str | None = None,
    client_id: str | None = None,
    notes: str | None = None,
    issue_date: str | None = None,
    due_date: str | None = None,
    tax_rate: Any = None,
    client_name: str | None = None,
    project_name: str | None = None,
    now: datetime | None = None,
) -> DocumentWithItems:
    kind = DocumentKind.parse(kind)
    line_items = _as_line_items(items)
    rate = default_tax_rate() if tax_rate is None else coerce_decimal(tax_rate)
    totals = compute_totals(line_items, rate)

    document = Document(
        business_id=context.business_id,
        job_id=job_id,
        client_id=client_id,
        type=kind.value,
        status=DocumentStatus.DRAFT.value,
        number=document_number_for(kind, now),
        issue_date=issue_date or date.today().isoformat(),
        due_date=due_date,
        tax_rate=float(rate),
        notes=(notes or "").strip() or None,
        client_name=client_name,
        project_name=project_name,
    )
    _apply_totals(document, totals)
    session.add(document)

    rows: list[DocumentItem] = []
    for index, item in enumerate(line_items):
        row = DocumentItem(
            document_id=document.id,
            description=item.description,
            qty=float(item.quantity),
            unit=item.unit,
            rate=float(item.unit_rate),
            amount=float(item.amount),
            sort_order=item.sort_order if item.sort_order is not None else index + 1,
        )
        session.add(row)
        rows.append(row)

    session.commit()
    session.refresh(document)
    for row in rows:
        session.refresh(row)

    logger.info(
        "Created %s %s for business %s (%d items, total %s)",
        kind.value,
        document.number,
        context.business_id,
        len(rows),
        totals.total,
    )
    return DocumentWithItems(document=document, items=rows, totals=totals)


def get_document_with_items(
    session: Session,
    context: BusinessContext,
    document_id: str,
    kind: DocumentKind | str | None = None,
) -> DocumentWithItems:
    stmt = select(Document).where(
        Document.id == document_id,
        Document.business_id == context.business_id,
    )
    if kind is not None:
        stmt = stmt.where(Document.type == DocumentKind.parse(kind).value)
    document = session.exec(stmt).first()
    if document is None:
        raise DocumentNotFound(f"Document {document_id} not found")

    items = list(
        session.exec(
            select(DocumentItem)
            .where(DocumentItem.document_id == document.id)
            .order_by(DocumentItem.sort_order, DocumentItem.created_at)
        ).all()
    )
    totals = compute_totals(_item_rows(items), document.tax_rate)
    if _stored_totals_drifted(document, totals):
        logger.warning(
            "Stored totals for %s differ from line items (stored total %s, computed %s)",
            document.number,
            document.total,
            totals.total,
        )
    return DocumentWithItems(document=document, items=items, totals=totals)


def list_documents(session: Session, context: BusinessContext, kind: DocumentKind | str) -> list[Document]:
    kind = DocumentKind.parse(kind)
    return list(
        session.exec(
            select(Document)
            .where(Document.business_id == context.business_id, Document.type == kind.value)
            .order_by(Document.created_at.desc())
        ).all()
    )


def totals_for_documents(session: Session, documents: Iterable[Document]) -> dict[str, Totals]:
    """Recompute totals for several documents with one item query."""
    documents = list(documents)
    items_by_document: dict[str, list[DocumentItem]] = {doc.id: [] for doc in documents}
    if items_by_document:
        rows = session.exec(
            select(DocumentItem).where(col(DocumentItem.document_id).in_(list(items_by_document)))
        ).all()
        for row in rows:
            items_by_document[row.document_id].append(row)
    return {
        doc.id: compute_totals(_item_rows(items_by_document[doc.id]), doc.tax_rate)
        for doc in documents
    }


def list_documents_by_job(
    session: Session,
    context: BusinessContext,
    job_id: str,
    kind: DocumentKind | str,
) -> list[Document]:
    kind = DocumentKind.parse(kind)
    return list(
        session.exec(
            select(Document)
            .where(
                Document.business_id == context.business_id,
                Document.job_id == job_id,
                Document.type == kind.value,
            )
            .order_by(Document.created_at.desc())
        ).all()
    )


def convert_quote_to_invoice(
    session: Session,
    context: BusinessContext,
    quote_id: str,
    now: datetime | None = None,
) -> DocumentWithItems:
    quote = get_document_with_items(session, context, quote_id, DocumentKind.QUOTE)
    source = quote.document
    if not source.job_id:
        raise DocumentError("Quote is missing a job.")

    suffix = f"Converted from {source.number}" if source.number else "Converted from quote"
    notes = f"{source.notes}\n{suffix}" if source.notes else suffix

    invoice = Document(
        business_id=source.business_id,
        job_id=source.job_id,
        client_id=source.client_id,
        type=DocumentKind.INVOICE.value,
        status=DocumentStatus.DRAFT.value,
        number=document_number_for(DocumentKind.INVOICE, now),
        issue_date=(now or datetime.now(timezone.utc)).date().isoformat(),
        due_date=None,
        tax_rate=source.tax_rate,
        notes=notes,
        client_name=source.client_name,
        project_name=source.project_name,
    )
    # Totals come from the copied items, never from the quote's stored columns.
    _apply_totals(invoice, quote.totals)
    session.add(invoice)

    rows: list[DocumentItem] = []
    for index, item in enumerate(quote.items):
        row = DocumentItem(
            document_id=invoice.id,
            description=item.description,
            qty=item.qty,
            unit=item.unit,
            rate=item.rate,
            amount=float(compute_line_amount(item.qty, item.rate)),
            sort_order=item.sort_order if item.sort_order is not None else index + 1,
        )
        session.add(row)
        rows.append(row)

    session.commit()
    session.refresh(invoice)
    for row in rows:
        session.refresh(row)

    logger.info("Converted quote %s to invoice %s", source.number, invoice.number)
    return DocumentWithItems(document=invoice, items=rows, totals=quote.totals)


def to_renderable(record: DocumentWithItems) -> RenderableDocument:
    doc = record.document
    return RenderableDocument(
        kind=doc.type,
        reference_number=doc.number,
        date=doc.issue_date,
        counterpart_name=doc.client_name,
        project_name=doc.project_name,
        items=[
            RenderItem(
                description=it.description,
                quantity=Decimal(str(it.qty)),
                unit_rate=Decimal(str(it.rate)),
                amount=compute_line_amount(it.qty, it.rate),
            )
            for it in record.items
        ],
    )
