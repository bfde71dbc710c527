from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image as PilImage
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from postimages.config import config
from postimages.database import get_db
from postimages.images import EditorHandle, PillowImageCodec
from postimages.main import app
from postimages.models import Base
from postimages.repository import StoredImage


class CountingCodec(PillowImageCodec):
    """Pillow codec that records how it was used."""

    def __init__(self) -> None:
        super().__init__()
        self.opens = 0
        self.qualities: list[int] = []
        self._lock = threading.Lock()

    def open(self, path: Path) -> EditorHandle:
        with self._lock:
            self.opens += 1
        return super().open(path)

    def set_quality(self, handle: EditorHandle, quality: int) -> None:
        self.qualities.append(quality)
        super().set_quality(handle, quality)


class FakeRepository:
    """In-memory content repository."""

    def __init__(self, items: dict[int, StoredImage] | None = None) -> None:
        self.items = dict(items or {})

    async def resolve_item(self, item_id: int) -> StoredImage | None:
        return self.items.get(item_id)


def write_image(
    path: Path,
    size: tuple[int, int],
    *,
    color: tuple[int, ...] = (200, 80, 40),
    mode: str = "RGB",
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    PilImage.new(mode, size, color).save(path)
    return path


@pytest.fixture
def make_image(tmp_path: Path) -> Callable[..., Path]:
    def _make(
        relative: str = "uploads/photo.jpg", size: tuple[int, int] = (2000, 1000)
    ) -> Path:
        return write_image(tmp_path / relative, size)

    return _make


@pytest.fixture
def counting_codec() -> CountingCodec:
    return CountingCodec()


@pytest.fixture
def media_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    root = tmp_path / "media"
    root.mkdir()
    monkeypatch.setattr(config, "MEDIA_ROOT", root)
    monkeypatch.setattr(config, "MEDIA_URL", "/media")
    monkeypatch.setattr(config, "DOCUMENT_ROOT", tmp_path / "public")
    monkeypatch.setattr(config, "SITE_URL", "http://example.test")
    return root


@pytest.fixture
async def session_factory(media_root: Path) -> async_sessionmaker[AsyncSession]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def test_client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncClient:
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
