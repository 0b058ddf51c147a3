"""
Tests for the postcode service: fan-out, derived statistics, caching,
failure and timeout handling.
"""

import threading
import time

import pytest
from sqlalchemy.exc import OperationalError

import services.postcode_service as postcode_service
from services.postcode_service import (
    PostcodeQueryError,
    QueryTimeoutError,
    compute_derived_stats,
    round_half_up,
    sort_by_sale_date,
)
from services.stats_reducer import reduce_values
from services.view_query import ViewRow

from sample_records import make_record


def _service(app):
    return app.extensions["postcode_service"]


# =============================================================================
# Pure helpers
# =============================================================================

class TestRoundHalfUp:

    def test_half_rounds_up(self):
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3

    def test_negative_half_rounds_towards_positive(self):
        assert round_half_up(-2.5) == -2

    def test_regular(self):
        assert round_half_up(199.4) == 199


class TestComputeDerivedStats:

    def test_growth_and_profit(self):
        stats = compute_derived_stats(
            {1995: reduce_values([100000]), 2014: reduce_values([200000])},
            transaction_count=2,
            base_year=1995, latest_year=2014, inflation_rate=0.74,
        )

        assert stats.growth_factor == 200
        assert stats.nominal_profit == 100000
        assert stats.real_terms_profit == 200000 - 174000
        assert stats.transaction_count == 2

    def test_uses_group_averages(self):
        stats = compute_derived_stats(
            {1995: reduce_values([50000, 70000]), 2014: reduce_values([150000, 210000, 240000])},
            transaction_count=0,
            base_year=1995, latest_year=2014, inflation_rate=0.5,
        )

        # averages 60000 -> 200000
        assert stats.growth_factor == 333
        assert stats.nominal_profit == 140000
        assert stats.real_terms_profit == 110000

    def test_configurable_years(self):
        stats = compute_derived_stats(
            {2000: reduce_values([100000]), 2010: reduce_values([150000])},
            transaction_count=1,
            base_year=2000, latest_year=2010, inflation_rate=0.0,
        )
        assert stats.growth_factor == 150
        assert stats.real_terms_profit == 50000

    def test_missing_year_gives_none(self):
        assert compute_derived_stats(
            {1995: reduce_values([100000])},
            transaction_count=1,
            base_year=1995, latest_year=2014, inflation_rate=0.74,
        ) is None


def test_sort_by_sale_date_is_stable_and_puts_bad_dates_last():
    rows = [
        ViewRow(key="X", value=1, id="b", doc={"date": "2001-05-01 00:00"}),
        ViewRow(key="X", value=2, id="bad", doc={"date": "unknown"}),
        ViewRow(key="X", value=3, id="a", doc={"date": "1999-01-01 00:00"}),
        ViewRow(key="X", value=4, id="c", doc={"date": "2001-05-01 00:00"}),
    ]

    assert [r.id for r in sort_by_sale_date(rows)] == ["a", "b", "c", "bad"]


# =============================================================================
# Reports
# =============================================================================

def test_ct20_report(ct20_app):
    report = _service(ct20_app).build_report("CT201LF")

    assert report.postcode == "CT201LF"
    assert report.district == "CT20"
    assert [t["id"] for t in report.transactions] == ["T-1995", "T-2014"]
    assert [(p.year, p.average_price) for p in report.national_trend] == [
        (1995, 100000), (2014, 200000)]
    assert [(p.year, p.max, p.average, p.min, p.national_average)
            for p in report.district_trend] == [
        (1995, 100000, 100000, 100000, 100000),
        (2014, 200000, 200000, 200000, 200000),
    ]
    assert report.stats.growth_factor == 200
    assert report.stats.nominal_profit == 100000
    assert report.stats.real_terms_profit == 26000
    assert report.stats.transaction_count == 2
    assert report.district_summary.count == 2
    assert report.district_summary.average == 150000


def test_transactions_sorted_by_date(app, seed):
    seed([
        make_record("LATE", 300000, "2010-01-01 00:00", "CT20 1LF"),
        make_record("EARLY", 80000, "1996-01-01 00:00", "CT20 1LF"),
        make_record("MIDDLE", 150000, "2003-07-15 00:00", "CT20 1LF"),
    ])

    report = _service(app).build_report("CT201LF")

    assert [t["id"] for t in report.transactions] == ["EARLY", "MIDDLE", "LATE"]


def test_only_matching_postcode_returned(neighbourhood_app):
    report = _service(neighbourhood_app).build_report("CT201LF")

    assert {t["postcode"] for t in report.transactions} == {"CT20 1LF"}
    # The district view still includes the other CT20 postcode
    assert report.district_summary.count == 3


def test_no_stats_without_base_year_in_district(app, seed):
    seed([
        make_record("A", 100000, "1995-01-01 00:00", "CT21 4AB"),
        make_record("B", 200000, "2014-01-01 00:00", "CT20 1LF"),
    ])

    report = _service(app).build_report("CT201LF")

    # 1995 exists nationally but not in CT20
    assert [p.year for p in report.national_trend] == [1995, 2014]
    assert report.stats is None


def test_unknown_postcode_report_is_empty(ct20_app):
    report = _service(ct20_app).build_report("ZZ999ZZ")

    assert report.transactions == []
    assert report.district_trend == []
    assert report.district_summary is None
    assert report.stats is None
    assert len(report.national_trend) == 2


def test_report_serializes_with_camel_case(ct20_app):
    payload = _service(ct20_app).build_report("CT201LF").model_dump(by_alias=True, mode="json")

    assert set(payload) == {"postcode", "district", "transactions", "nationalTrend",
                            "districtTrend", "districtSummary", "stats"}
    assert payload["stats"] == {"growthFactor": 200, "nominalProfit": 100000,
                                "realTermsProfit": 26000, "transactionCount": 2}
    assert payload["nationalTrend"][0] == {"year": 1995, "averagePrice": 100000.0}


# =============================================================================
# National trend cache
# =============================================================================

def test_national_trend_is_cached(ct20_app, monkeypatch):
    service = _service(ct20_app)
    service.build_report("CT201LF")

    calls = []
    real_query_view = postcode_service.query_view

    def counting_query_view(view_name, **kwargs):
        calls.append(view_name)
        return real_query_view(view_name, **kwargs)

    monkeypatch.setattr(postcode_service, "query_view", counting_query_view)
    service.build_report("CT201LF")

    assert "bytime" not in calls
    assert sorted(calls) == ["bypcdandtime", "bypostcode"]
    assert service.national_cache.stats()["hits"] >= 1


def test_ingest_with_cache_invalidates_national_trend(ct20_app):
    from services.ingest import ingest_records

    service = _service(ct20_app)
    before = service.build_report("CT201LF")
    assert [p.year for p in before.national_trend] == [1995, 2014]

    with ct20_app.app_context():
        ingest_records([make_record("NEW", 250000, "2005-05-05 00:00", "M1 1AE")],
                       trend_cache=service.national_cache)

    after = service.build_report("CT201LF")
    assert [p.year for p in after.national_trend] == [1995, 2005, 2014]


# =============================================================================
# Failures
# =============================================================================

def test_sub_query_failure_fails_the_report(ct20_app, monkeypatch):
    def broken_query_view(view_name, **kwargs):
        if view_name == "bypcdandtime":
            raise RuntimeError("store unavailable")
        return []

    monkeypatch.setattr(postcode_service, "query_view", broken_query_view)

    with pytest.raises(PostcodeQueryError) as exc:
        _service(ct20_app).build_report("CT201LF")

    assert "district" in str(exc.value)
    assert isinstance(exc.value.__cause__, RuntimeError)


def test_failed_national_query_is_not_cached(ct20_app, monkeypatch):
    service = _service(ct20_app)
    real_query_view = postcode_service.query_view

    def broken_national(view_name, **kwargs):
        if view_name == "bytime":
            raise RuntimeError("boom")
        return real_query_view(view_name, **kwargs)

    monkeypatch.setattr(postcode_service, "query_view", broken_national)
    with pytest.raises(PostcodeQueryError):
        service.build_report("CT201LF")

    monkeypatch.setattr(postcode_service, "query_view", real_query_view)
    report = service.build_report("CT201LF")
    assert len(report.national_trend) == 2


def test_timeout(ct20_app, monkeypatch):
    release = threading.Event()

    def slow_query_view(view_name, **kwargs):
        release.wait(2)
        return []

    monkeypatch.setattr(postcode_service, "query_view", slow_query_view)
    service = _service(ct20_app)
    monkeypatch.setattr(service, "timeout_seconds", 0.1)

    started = time.perf_counter()
    try:
        with pytest.raises(QueryTimeoutError):
            service.build_report("CT201LF")
    finally:
        release.set()

    assert time.perf_counter() - started < 1.5


def test_transient_store_error_is_retried(ct20_app, monkeypatch):
    real_query_view = postcode_service.query_view
    failures = {"bypostcode": 1}

    def flaky_query_view(view_name, **kwargs):
        if failures.get(view_name):
            failures[view_name] -= 1
            raise OperationalError("SELECT ...", {}, Exception("connection reset"))
        return real_query_view(view_name, **kwargs)

    monkeypatch.setattr(postcode_service, "query_view", flaky_query_view)

    report = _service(ct20_app).build_report("CT201LF")

    assert len(report.transactions) == 2
    assert failures["bypostcode"] == 0


def test_persistent_store_error_gives_up(ct20_app, monkeypatch):
    attempts = []

    def down_query_view(view_name, **kwargs):
        if view_name == "bypostcode":
            attempts.append(1)
            raise OperationalError("SELECT ...", {}, Exception("connection refused"))
        return []

    monkeypatch.setattr(postcode_service, "query_view", down_query_view)
    service = _service(ct20_app)

    with pytest.raises(PostcodeQueryError) as exc:
        service.build_report("CT201LF")

    assert isinstance(exc.value.__cause__, OperationalError)
    assert len(attempts) == service.retry_attempts
