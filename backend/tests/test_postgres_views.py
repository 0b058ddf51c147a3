"""
View queries against PostgreSQL.

Key ordering and the district range depend on how the database compares
key_text, so the SQLite suite is not enough on its own.

Run with: TEST_DATABASE_URL=postgresql://... pytest --run-integration
"""

import os

import pytest

from sample_records import CT20_RECORDS, NEIGHBOUR_RECORDS

pytestmark = pytest.mark.integration


@pytest.fixture
def pg_app():
    url = os.environ.get("TEST_DATABASE_URL")
    if not url:
        pytest.skip("TEST_DATABASE_URL not set")

    from app import create_app
    from config import TestingConfig
    from models.database import db
    from services.ingest import ingest_records

    app = create_app(TestingConfig, SQLALCHEMY_DATABASE_URI=url,
                     SQLALCHEMY_ENGINE_OPTIONS={"pool_pre_ping": True})
    with app.app_context():
        db.drop_all()
        db.create_all()
        ingest_records(CT20_RECORDS + NEIGHBOUR_RECORDS)

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def test_district_range_selects_one_district(pg_app):
    from constants import VIEW_BY_DISTRICT_AND_TIME
    from services.view_query import district_range, query_view

    with pg_app.app_context():
        start, end = district_range("CT20")
        rows = query_view(VIEW_BY_DISTRICT_AND_TIME, startkey=start, endkey=end,
                          inclusive_end=False, reduce=False)

    assert sorted(row.id for row in rows) == ["N-CT20-OTHER", "T-1995", "T-2014"]


def test_grouped_district_years(pg_app):
    from constants import VIEW_BY_DISTRICT_AND_TIME
    from services.view_query import district_range, query_view

    with pg_app.app_context():
        start, end = district_range("CT20")
        rows = query_view(VIEW_BY_DISTRICT_AND_TIME, startkey=start, endkey=end,
                          inclusive_end=False, group_level=2)

    assert [row.key for row in rows] == [("CT20", 1995), ("CT20", 2014)]
    assert rows[0].value.count == 2
    assert rows[0].value.sum == 220000
    assert rows[0].value.sumsqr == 100000 ** 2 + 120000 ** 2


def test_report_matches_sqlite_results(pg_app):
    client = pg_app.test_client()

    response = client.get("/postcode/CT201LF")

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["stats"]["growthFactor"] == 200
    assert [p["year"] for p in payload["nationalTrend"]] == [1995, 2014]


def test_grouped_sums_are_exact(pg_app):
    from services.ingest import ingest_records
    from services.stats_reducer import reduce_values
    from services.view_query import query_view
    from sample_records import make_record

    prices = [123456789, 98765431]
    with pg_app.app_context():
        ingest_records([
            make_record(f"BIG-{i}", price, "2001-05-01 00:00", "SW1A 1AA")
            for i, price in enumerate(prices)
        ])
        rows = query_view("bypcdandtime", startkey=["SW1A"], endkey=["SW1A0"],
                          inclusive_end=False, group_level=1)

    assert rows[0].value == reduce_values(prices)
