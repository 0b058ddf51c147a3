"""
Root pytest configuration for backend tests.

Provides:
- Shared fixtures (app, client, seeded apps)
"""

import sys
from pathlib import Path

# Add backend directory to Python path so imports like
# `from services.view_query import ...` and `from utils.postcode import ...` work
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

import pytest

from sample_records import CT20_RECORDS, NEIGHBOUR_RECORDS


@pytest.fixture
def app(tmp_path):
    """Create test Flask application on a temporary SQLite file."""
    from app import create_app
    from config import TestingConfig
    from models.database import db

    app = create_app(
        TestingConfig,
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{tmp_path / 'houseprices-test.db'}",
    )
    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def seed(app):
    """Return a function that ingests records into the test database."""
    from services.ingest import ingest_records

    def _seed(records):
        with app.app_context():
            return ingest_records(records)

    return _seed


@pytest.fixture
def ct20_app(app, seed):
    """App holding the two CT20 1LF sales (1995 and 2014)."""
    seed(CT20_RECORDS)
    return app


@pytest.fixture
def neighbourhood_app(app, seed):
    """CT20 sales plus sales in CT2, CT21 and another CT20 postcode."""
    seed(CT20_RECORDS + NEIGHBOUR_RECORDS)
    return app
