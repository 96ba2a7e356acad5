import itertools
import os
import tempfile
from pathlib import Path

import pytest

TEST_DB = Path(tempfile.gettempdir()) / f"scholarship_api_test_{os.getpid()}.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB}"
os.environ["ENV"] = "dev"

from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from scholarship_api.database import create_db_and_tables, engine  # noqa: E402
from scholarship_api.main import app, _recovery_limiter  # noqa: E402


@pytest.fixture(autouse=True)
def reset_db():
    """Give every test empty tables and a fresh rate limiter."""
    SQLModel.metadata.drop_all(engine)
    create_db_and_tables()
    _recovery_limiter.reset()
    yield
    app.dependency_overrides.clear()


@pytest.fixture(scope="session", autouse=True)
def remove_db_file():
    yield
    engine.dispose()
    if TEST_DB.exists():
        TEST_DB.unlink()


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


@pytest.fixture
def api():
    return TestClient(app)


@pytest.fixture
def create_advisor(api):
    """Factory registering an advisor through the API and returning its JSON."""
    counter = itertools.count(1)

    def _make(tax_id=None, name=None):
        n = next(counter)
        r = api.post('/v1/advisors', json={
            'name': name or f'Advisor {n}',
            'tax_id': tax_id or f'900.000.000-{n:02d}',
        })
        assert r.status_code == 201, r.text
        return r.json()
    return _make


@pytest.fixture
def student_payload():
    """Factory for valid, unique student registration payloads."""
    counter = itertools.count(1)

    def _make(advisor_id, **overrides):
        n = next(counter)
        payload = {
            'name': f'Student {n}',
            'email': f'student{n}@example.com',
            'tax_id': f'111.000.000-{n:02d}',
            'enrollment_number': f'ENR-{n:04d}',
            'course': 'Software Engineering',
            'password': 'secret123',
            'advisor_id': advisor_id,
            'scholarship': {
                'scholarship_starts_at': '2025-02-01',
                'scholarship_ends_at': '2026-01-31',
            },
        }
        payload.update(overrides)
        return payload
    return _make
