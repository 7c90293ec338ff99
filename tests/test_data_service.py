"""
Data Service Tests

Runs the real queries against a throwaway SQLite database.
Run with: pytest tests/test_data_service.py -v
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from services import data_service
from services.db import init_db

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def record(n: int, status: str = "valid") -> dict:
    fields = {
        "storage_key": f"key-{n}.jpg",
        "original_name": f"photo-{n}.jpg",
        "mime_type": "image/jpeg",
        "size": 1000 + n,
        "location_uri": f"https://bucket.s3.amazonaws.com/key-{n}.jpg",
        "backend": "primary",
        "status": status,
        "validation_reasons": None if status == "valid" else ["Image is too blurry"],
        "fingerprint": format(n, "064b"),
        "created_at": BASE_TIME + timedelta(minutes=n),
    }
    return fields


@pytest.fixture
def run_db(tmp_path):
    """Run a coroutine ``fn(session)`` against a fresh database."""
    url = f"sqlite+aiosqlite:///{tmp_path}/test.db"

    def run(fn):
        async def _main():
            engine = create_async_engine(url)
            try:
                await init_db(bind=engine)
                async with AsyncSession(engine, expire_on_commit=False) as session:
                    return await fn(session)
            finally:
                await engine.dispose()
        return asyncio.run(_main())

    return run


class TestImageRecords:

    def test_create_and_get(self, run_db):
        async def scenario(session):
            created = await data_service.create_image_record(session, record(1, status="invalid"))
            fetched = await data_service.get_image(session, created.id)
            return created, fetched

        created, fetched = run_db(scenario)

        assert len(created.id) == 36
        assert fetched.id == created.id
        assert fetched.status == "invalid"
        assert fetched.validation_reasons == ["Image is too blurry"]
        assert fetched.created_at is not None

    def test_get_missing(self, run_db):
        async def scenario(session):
            return await data_service.get_image(session, "does-not-exist")

        assert run_db(scenario) is None

    def test_list_newest_first(self, run_db):
        async def scenario(session):
            for n in (2, 1, 3):
                await data_service.create_image_record(session, record(n))
            return await data_service.list_images(session)

        images = run_db(scenario)
        assert [i.storage_key for i in images] == ["key-3.jpg", "key-2.jpg", "key-1.jpg"]

    def test_delete(self, run_db):
        async def scenario(session):
            created = await data_service.create_image_record(session, record(1))
            await data_service.delete_image_record(session, created)
            return await data_service.list_images(session)

        assert run_db(scenario) == []


class TestRecentFingerprints:

    def test_only_valid_images_newest_first(self, run_db):
        async def scenario(session):
            await data_service.create_image_record(session, record(1))
            await data_service.create_image_record(session, record(2, status="invalid"))
            await data_service.create_image_record(session, record(3))
            await data_service.create_image_record(session, {**record(4), "fingerprint": None})
            return await data_service.get_recent_fingerprints(session)

        entries = run_db(scenario)
        assert [e.fingerprint for e in entries] == [format(3, "064b"), format(1, "064b")]

    def test_window_size(self, run_db):
        async def scenario(session):
            for n in range(1, 26):
                await data_service.create_image_record(session, record(n))
            return await data_service.get_recent_fingerprints(session, limit=20)

        entries = run_db(scenario)
        assert len(entries) == 20
        assert entries[0].fingerprint == format(25, "064b")
        assert entries[-1].fingerprint == format(6, "064b")
