from __future__ import annotations

from typing import Any, Iterable, Protocol


class DocumentRenderer(Protocol):
    def render(self, document: Any, items: Iterable[Any] | None = None) -> bytes:
        ...
