import os
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlmodel import Field, Session, SQLModel, create_engine

from tradedocs.models import DocumentStatus

_DEFAULT_DATABASE_URL = "sqlite:///./data/tradedocs.db"


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- DB models ---
class Document(SQLModel, table=True):
    id: str = Field(default_factory=_new_id, primary_key=True)
    business_id: str = Field(index=True)
    job_id: Optional[str] = Field(default=None, index=True)
    client_id: Optional[str] = None
    type: str = Field(index=True)
    status: str = DocumentStatus.DRAFT.value
    number: str = ""
    issue_date: Optional[str] = None
    due_date: Optional[str] = None
    # Display copies of the totals; always recomputed from items on read.
    subtotal: float = 0.0
    gst: float = 0.0
    total: float = 0.0
    tax_rate: float = 0.15
    notes: Optional[str] = None
    client_name: Optional[str] = None
    project_name: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None


class DocumentItem(SQLModel, table=True):
    __tablename__ = "document_items"

    id: str = Field(default_factory=_new_id, primary_key=True)
    document_id: str = Field(foreign_key="document.id", index=True)
    description: str
    qty: float
    unit: Optional[str] = None
    rate: float
    amount: float
    sort_order: int = 0
    created_at: datetime = Field(default_factory=_utcnow)


def database_url() -> str:
    return (os.getenv("TRADEDOCS_DATABASE_URL") or _DEFAULT_DATABASE_URL).strip()


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {}


engine = create_engine(database_url(), **_engine_kwargs(database_url()))


def init_db() -> None:
    url = str(engine.url)
    if url.startswith("sqlite:///") and engine.url.database not in (None, "", ":memory:"):
        Path(engine.url.database).parent.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(engine)


@contextmanager
def get_session():
    with Session(engine) as session:
        yield session
