from __future__ import annotations

import base64
from typing import Any, Iterable

from tradedocs.renderer_interface import DocumentRenderer
from tradedocs.services.document_pdf import render_document_to_pdf_bytes


class PDFDocumentRenderer(DocumentRenderer):
    content_type = "application/pdf"

    def render(self, document: Any, items: Iterable[Any] | None = None) -> bytes:
        return render_document_to_pdf_bytes(document, items)


def render_document_pdf_base64(document: Any, items: Iterable[Any] | None = None) -> str:
    return base64.b64encode(render_document_to_pdf_bytes(document, items)).decode("ascii")
