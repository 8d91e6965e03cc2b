# =========================
# TRADEDOCS/MAIN.PY
# =========================

import re
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Response
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tradedocs.context import BusinessContext
from tradedocs.data import get_session, init_db
from tradedocs.env import load_env
from tradedocs.errors import (
    DocumentError,
    DocumentNotFound,
    ExportFailure,
    RenderFailure,
    UnsupportedDocumentKind,
)
from tradedocs.logging_setup import setup_logging
from tradedocs.models import DocumentKind
from tradedocs.services.blob_storage import BlobStorage, LocalStorage, blob_storage
from tradedocs.services.documents import (
    DocumentWithItems,
    convert_quote_to_invoice,
    create_document_with_items,
    get_document_with_items,
    list_documents,
    to_renderable,
    totals_for_documents,
)
from tradedocs.services.exports import export_document_pdf

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE)

load_env()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    setup_logging()
    init_db()
    yield


app = FastAPI(title="tradedocs", lifespan=lifespan)


# --- dependencies ---
def get_db():
    with get_session() as session:
        yield session


def get_storage() -> BlobStorage:
    return blob_storage()


def business_context(x_business_id: Optional[str] = Header(default=None)) -> BusinessContext:
    if not (x_business_id or "").strip():
        raise HTTPException(status_code=400, detail="Missing X-Business-Id header")
    return BusinessContext(business_id=x_business_id.strip())


# --- payloads ---
class ExportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document_id: str = Field(default="", alias="documentId")
    type: str = ""


class LineItemPayload(BaseModel):
    description: str
    qty: Decimal
    rate: Decimal
    unit: Optional[str] = None
    sort_order: Optional[int] = None


class CreateDocumentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str
    job_id: Optional[str] = Field(default=None, alias="jobId")
    client_id: Optional[str] = Field(default=None, alias="clientId")
    notes: Optional[str] = None
    issue_date: Optional[str] = Field(default=None, alias="issueDate")
    due_date: Optional[str] = Field(default=None, alias="dueDate")
    client_name: Optional[str] = Field(default=None, alias="clientName")
    project_name: Optional[str] = Field(default=None, alias="projectName")
    items: List[LineItemPayload] = Field(default_factory=list)


def _serialize(record: DocumentWithItems) -> dict:
    doc = record.document
    return {
        "id": doc.id,
        "type": doc.type,
        "status": doc.status,
        "number": doc.number,
        "issueDate": doc.issue_date,
        "dueDate": doc.due_date,
        "notes": doc.notes,
        "subtotal": float(record.totals.subtotal),
        "gst": float(record.totals.tax_amount),
        "total": float(record.totals.total),
        "items": [
            {
                "id": it.id,
                "description": it.description,
                "qty": it.qty,
                "unit": it.unit,
                "rate": it.rate,
                "amount": it.amount,
                "sortOrder": it.sort_order,
            }
            for it in record.items
        ],
    }


# --- routes ---
@app.post("/api/documents/export")
def export_document(
    payload: ExportRequest,
    context: BusinessContext = Depends(business_context),
    session=Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
):
    if not _UUID_RE.match(payload.document_id or ""):
        raise HTTPException(status_code=400, detail="Invalid documentId")
    try:
        kind = DocumentKind.parse(payload.type)
    except UnsupportedDocumentKind:
        raise HTTPException(status_code=400, detail="Invalid document type")

    try:
        record = get_document_with_items(session, context, payload.document_id, kind)
    except DocumentNotFound:
        raise HTTPException(status_code=404, detail="Document not found")

    try:
        result = export_document_pdf(
            to_renderable(record),
            document_id=record.document.id,
            storage=storage,
        )
    except RenderFailure as exc:
        raise HTTPException(status_code=500, detail=f"Failed to render PDF: {exc}")
    except ExportFailure as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return result.as_response()


@app.get("/files/{key:path}")
def download_file(key: str, expires: int = 0, sig: str = "", storage: BlobStorage = Depends(get_storage)):
    if not isinstance(storage, LocalStorage):
        raise HTTPException(status_code=404, detail="Not found")
    if not storage.verify_signature(key, expires, sig):
        raise HTTPException(status_code=403, detail="Invalid or expired link")
    if not storage.exists(key):
        raise HTTPException(status_code=404, detail="Not found")
    return Response(content=storage.get_bytes(key), media_type="application/pdf")


@app.post("/api/documents", status_code=201)
def create_document(
    payload: CreateDocumentRequest,
    context: BusinessContext = Depends(business_context),
    session=Depends(get_db),
):
    try:
        record = create_document_with_items(
            session,
            context,
            kind=payload.type,
            items=[
                {
                    "description": it.description,
                    "quantity": it.qty,
                    "unit_rate": it.rate,
                    "unit": it.unit,
                    "sort_order": it.sort_order,
                }
                for it in payload.items
            ],
            job_id=payload.job_id,
            client_id=payload.client_id,
            notes=payload.notes,
            issue_date=payload.issue_date,
            due_date=payload.due_date,
            client_name=payload.client_name,
            project_name=payload.project_name,
        )
    except UnsupportedDocumentKind:
        raise HTTPException(status_code=400, detail="Invalid document type")
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid line items: {exc.error_count()} error(s)")
    return _serialize(record)


@app.get("/api/documents/{kind}")
def list_documents_route(
    kind: str,
    context: BusinessContext = Depends(business_context),
    session=Depends(get_db),
):
    try:
        documents = list_documents(session, context, kind)
    except UnsupportedDocumentKind:
        raise HTTPException(status_code=400, detail="Invalid document type")
    totals = totals_for_documents(session, documents)
    return [
        {
            "id": doc.id,
            "jobId": doc.job_id,
            "status": doc.status,
            "number": doc.number,
            "issueDate": doc.issue_date,
            "subtotal": float(totals[doc.id].subtotal),
            "gst": float(totals[doc.id].tax_amount),
            "total": float(totals[doc.id].total),
            "createdAt": doc.created_at.isoformat() if doc.created_at else None,
        }
        for doc in documents
    ]


@app.post("/api/documents/{quote_id}/convert")
def convert_quote(
    quote_id: str,
    context: BusinessContext = Depends(business_context),
    session=Depends(get_db),
):
    try:
        record = convert_quote_to_invoice(session, context, quote_id)
    except DocumentNotFound:
        raise HTTPException(status_code=404, detail="Quote not found")
    except DocumentError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"invoiceId": record.document.id}
