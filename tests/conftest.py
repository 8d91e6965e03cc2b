from __future__ import annotations

from pathlib import Path
import sys

import pytest
from sqlmodel import Session, SQLModel, create_engine

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tradedocs import data as data_module  # noqa: E402
from tradedocs.context import BusinessContext  # noqa: E402
from tradedocs.services.blob_storage import LocalStorage  # noqa: E402


@pytest.fixture()
def engine(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    engine = create_engine(
        f"sqlite:///{tmp_path}/test.db",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(data_module, "engine", engine)
    return engine


@pytest.fixture()
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def context() -> BusinessContext:
    return BusinessContext(business_id="biz-1")


@pytest.fixture()
def local_storage(tmp_path: Path) -> LocalStorage:
    return LocalStorage(root=str(tmp_path / "storage"), secret="test-secret")
