"""
Shared pytest fixtures for the local patient store.
"""
from datetime import datetime, timedelta, timezone
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook

from main import app, get_store
from models import PatientDatabase
from seed import build_demo_database
from storage import MemoryBackend, PatientStore


class FakeClock:
    """Deterministic clock: every call advances one minute."""

    def __init__(self, start=datetime(2024, 8, 1, 9, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self):
        value = self.current
        self.current = self.current + timedelta(minutes=1)
        return value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    """Empty in-memory store (nothing saved yet)."""
    return PatientStore(MemoryBackend(), clock=clock)


@pytest.fixture
def demo_db() -> PatientDatabase:
    return build_demo_database()


@pytest.fixture
def seeded_store(store, demo_db):
    """Store holding the demo database."""
    store.save(demo_db)
    return store


@pytest.fixture
def client(store):
    """FastAPI TestClient wired to the fixture store."""
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_workbook(sheets) -> bytes:
    """Build an .xlsx in memory. `sheets` maps sheet name -> list of rows (first row = headers)."""
    workbook = Workbook()
    workbook.remove(workbook.active)
    for name, rows in sheets.items():
        worksheet = workbook.create_sheet(name)
        for row in rows:
            worksheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def workbook_factory():
    return make_workbook
