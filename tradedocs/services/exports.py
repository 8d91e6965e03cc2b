from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from tradedocs.errors import ExportFailure
from tradedocs.models import DocumentKind
from tradedocs.renderer import PDFDocumentRenderer
from tradedocs.renderer_interface import DocumentRenderer
from tradedocs.services.blob_storage import BlobStorage, blob_storage, build_export_key

logger = logging.getLogger(__name__)

SIGNED_URL_TTL_SECONDS = 60 * 60


@dataclass(frozen=True)
class ExportResult:
    path: str
    signed_url: str
    size_bytes: int

    def as_response(self) -> dict[str, Any]:
        return {"path": self.path, "signedUrl": self.signed_url, "sizeBytes": self.size_bytes}


def _kind_of(document: Any) -> Any:
    if isinstance(document, dict):
        return document.get("kind") or document.get("type")
    return getattr(document, "kind", None) or getattr(document, "type", None)


def export_document_pdf(
    document: Any,
    items: Iterable[Any] | None = None,
    *,
    document_id: str,
    storage: BlobStorage | None = None,
    renderer: DocumentRenderer | None = None,
    expires_in: int = SIGNED_URL_TTL_SECONDS,
) -> ExportResult:
    """Render, upload (overwriting any earlier export) and sign a link to the PDF."""
    renderer = renderer or PDFDocumentRenderer()
    pdf_bytes = renderer.render(document, items)

    kind = DocumentKind.parse(_kind_of(document))
    key = build_export_key(kind, document_id)
    storage = storage or blob_storage()
    try:
        storage.put_bytes(key, pdf_bytes, "application/pdf")
    except Exception as exc:
        logger.error("Upload of %s failed: %s", key, exc)
        raise ExportFailure("Failed to upload PDF") from exc
    try:
        url = storage.signed_url(key, expires_in)
    except Exception as exc:
        logger.error("Signing %s failed: %s", key, exc)
        raise ExportFailure("Failed to create signed URL") from exc

    logger.info("Exported %s (%d bytes)", key, len(pdf_bytes))
    return ExportResult(path=key, signed_url=url, size_bytes=len(pdf_bytes))
