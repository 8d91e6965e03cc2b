from __future__ import annotations


class DocumentError(Exception):
    """Base error for document creation, rendering and export."""


class UnsupportedDocumentKind(DocumentError, ValueError):
    def __init__(self, kind: object) -> None:
        self.kind = kind
        super().__init__(f"Unsupported document kind: {kind!r}")


class RenderFailure(DocumentError):
    """Raised when the PDF drawing layer cannot finish a document."""


class DocumentNotFound(DocumentError, LookupError):
    pass


class ExportFailure(DocumentError):
    """Raised when a rendered PDF cannot be stored or linked."""
