from __future__ import annotations

import pytest

from tradedocs.errors import ExportFailure, UnsupportedDocumentKind
from tradedocs.models import RenderableDocument
from tradedocs.services.blob_storage import LocalStorage
from tradedocs.services.exports import export_document_pdf


def _quote() -> RenderableDocument:
    return RenderableDocument(
        kind="quote",
        reference_number="Q-1700000000000",
        date="2024-02-02",
        counterpart_name="Tui Electrical",
        project_name="Switchboard upgrade",
        items=[{"description": "Switchboard", "quantity": 1, "unit_rate": 1450}],
    )


def test_export_uploads_and_signs(local_storage: LocalStorage) -> None:
    result = export_document_pdf(_quote(), document_id="doc-42", storage=local_storage)

    assert result.path == "quotes/doc-42.pdf"
    assert result.size_bytes == len(local_storage.get_bytes(result.path))
    assert "/files/quotes/doc-42.pdf?" in result.signed_url
    assert result.as_response() == {
        "path": "quotes/doc-42.pdf",
        "signedUrl": result.signed_url,
        "sizeBytes": result.size_bytes,
    }


def test_export_unsupported_kind_stores_nothing(local_storage: LocalStorage) -> None:
    with pytest.raises(UnsupportedDocumentKind):
        export_document_pdf({"kind": "receipt"}, document_id="doc-1", storage=local_storage)


class _BrokenStorage(LocalStorage):
    def put_bytes(self, key: str, data: bytes, mime: str) -> None:
        raise OSError("disk full")


def test_upload_error_becomes_export_failure(tmp_path) -> None:
    storage = _BrokenStorage(root=str(tmp_path))
    with pytest.raises(ExportFailure) as excinfo:
        export_document_pdf(_quote(), document_id="doc-1", storage=storage)
    assert isinstance(excinfo.value.__cause__, OSError)
