"""
Postcode Service - price history for one postcode

Runs three independent view queries concurrently and folds them into the
PostcodeReport view model:

    1. bypostcode     exact key, raw rows with documents, sorted by sale date
    2. bytime         group_level=1 -> national average per year (cached)
    3. bypcdandtime   district range, group_level=2 -> district stats per year

All three must succeed: the first failure cancels the others and fails the
request, and the whole fan-out is bounded by QUERY_TIMEOUT_SECONDS.

Usage:
    service = PostcodeService.from_app(app)
    report = service.build_report('CT201LF')
"""

import logging
import math
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Optional

from flask import Flask

from constants import (
    GROUP_BY_DISTRICT_YEAR,
    GROUP_BY_YEAR,
    VIEW_BY_DISTRICT_AND_TIME,
    VIEW_BY_POSTCODE,
    VIEW_BY_TIME,
)
from models.database import db
from schemas.postcode_report import (
    DerivedStats,
    DistrictTrendPoint,
    NationalTrendPoint,
    PostcodeReport,
    StatsSummary,
)
from services.index_builder import parse_sale_date
from services.stats_reducer import Stats
from services.trend_cache import TTLCache
from services.view_query import ViewRow, district_range, query_view, total_stats
from utils.postcode import postcode_district
from utils.retry import run_with_retry
from utils.timing import log_timing

logger = logging.getLogger('postcode_service')

NATIONAL_TREND_CACHE_KEY = 'national_trend'


class PostcodeQueryError(RuntimeError):
    """A sub-query of a postcode report failed."""
    pass


class QueryTimeoutError(PostcodeQueryError):
    """The sub-queries did not all finish within the request timeout."""
    pass


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _sale_date_sort_key(row: ViewRow):
    parsed = parse_sale_date((row.doc or {}).get('date'))
    # Unparsable dates go last
    return (0, parsed) if parsed is not None else (1, ())


def sort_by_sale_date(rows: List[ViewRow]) -> List[ViewRow]:
    """Ascending by sale date; equal dates keep their original order."""
    return sorted(rows, key=_sale_date_sort_key)


def compute_derived_stats(district_by_year: Dict[int, Stats],
                          transaction_count: int,
                          *,
                          base_year: int,
                          latest_year: int,
                          inflation_rate: float) -> Optional[DerivedStats]:
    """
    Growth and profit between base_year and latest_year for a district.

    Returns None unless both years have sales.
    """
    base = district_by_year.get(base_year)
    latest = district_by_year.get(latest_year)
    if base is None or latest is None or not base.count or not latest.count:
        return None

    base_avg = base.mean
    latest_avg = latest.mean
    return DerivedStats(
        growth_factor=round_half_up(100 * latest_avg / base_avg),
        nominal_profit=round_half_up(latest_avg - base_avg),
        real_terms_profit=round_half_up(latest_avg - base_avg * (1 + inflation_rate)),
        transaction_count=transaction_count,
    )


class PostcodeService:
    def __init__(
        self,
        app: Flask,
        *,
        national_cache: TTLCache,
        base_year: int = 1995,
        latest_year: int = 2014,
        inflation_rate: float = 0.74,
        timeout_seconds: float = 10,
        retry_attempts: int = 3,
        retry_base_sleep: float = 0.25,
    ):
        self._app = app
        self.national_cache = national_cache
        self.base_year = base_year
        self.latest_year = latest_year
        self.inflation_rate = inflation_rate
        self.timeout_seconds = timeout_seconds
        self.retry_attempts = retry_attempts
        self.retry_base_sleep = retry_base_sleep

    @classmethod
    def from_app(cls, app: Flask) -> 'PostcodeService':
        config = app.config
        return cls(
            app,
            national_cache=TTLCache(ttl=config['NATIONAL_TREND_TTL_SECONDS']),
            base_year=config['BASE_YEAR'],
            latest_year=config['LATEST_YEAR'],
            inflation_rate=config['INFLATION_RATE'],
            timeout_seconds=config['QUERY_TIMEOUT_SECONDS'],
            retry_attempts=config['QUERY_RETRY_ATTEMPTS'],
            retry_base_sleep=config['QUERY_RETRY_BASE_SLEEP'],
        )

    # ------------------------------------------------------------------
    # Sub-queries (each runs in its own app context on a worker thread)
    # ------------------------------------------------------------------

    def _run_query(self, label: str, fn: Callable[[], List[ViewRow]]) -> List[ViewRow]:
        with self._app.app_context():
            return run_with_retry(
                fn,
                attempts=self.retry_attempts,
                base_sleep=self.retry_base_sleep,
                label=label,
                on_retry=db.session.rollback,
            )

    @log_timing('postcode_rows')
    def fetch_postcode_rows(self, postcode: str) -> List[ViewRow]:
        rows = self._run_query('postcode_rows', lambda: query_view(
            VIEW_BY_POSTCODE, key=postcode, reduce=False, include_docs=True))
        return sort_by_sale_date(rows)

    @log_timing('national_trend')
    def fetch_national_trend(self) -> List[ViewRow]:
        return self.national_cache.get_or_load(
            NATIONAL_TREND_CACHE_KEY,
            lambda: self._run_query('national_trend', lambda: query_view(
                VIEW_BY_TIME, group_level=GROUP_BY_YEAR)),
        )

    @log_timing('district_trend')
    def fetch_district_trend(self, district: str) -> List[ViewRow]:
        startkey, endkey = district_range(district)
        return self._run_query('district_trend', lambda: query_view(
            VIEW_BY_DISTRICT_AND_TIME,
            startkey=startkey,
            endkey=endkey,
            inclusive_end=False,
            group_level=GROUP_BY_DISTRICT_YEAR,
        ))

    def _fan_out(self, postcode: str, district: str):
        executor = ThreadPoolExecutor(max_workers=3, thread_name_prefix='postcode-query')
        try:
            futures = {
                'postcode': executor.submit(self.fetch_postcode_rows, postcode),
                'national': executor.submit(self.fetch_national_trend),
                'district': executor.submit(self.fetch_district_trend, district),
            }
            done, pending = wait(futures.values(), timeout=self.timeout_seconds,
                                 return_when=FIRST_EXCEPTION)

            for name, future in futures.items():
                if future in done and future.exception() is not None:
                    for other in pending:
                        other.cancel()
                    raise PostcodeQueryError(
                        f"{name} query failed for {postcode}"
                    ) from future.exception()

            if pending:
                for other in pending:
                    other.cancel()
                raise QueryTimeoutError(
                    f"Queries for {postcode} did not finish within {self.timeout_seconds}s"
                )

            return {name: future.result() for name, future in futures.items()}
        finally:
            # Do not block a failed/timed-out request on stragglers
            executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # View model
    # ------------------------------------------------------------------

    def build_report(self, postcode: str) -> PostcodeReport:
        """
        Build the view model for a canonical postcode.

        Raises:
            PostcodeQueryError: A sub-query failed
            QueryTimeoutError: The sub-queries timed out
        """
        district = postcode_district(postcode)
        results = self._fan_out(postcode, district)

        national_by_year = {row.key[0]: row.value for row in results['national']}
        national_trend = [
            NationalTrendPoint(year=year, average_price=stats.mean)
            for year, stats in sorted(national_by_year.items())
        ]

        district_by_year = {row.key[1]: row.value for row in results['district']}
        district_trend = []
        for year, stats in sorted(district_by_year.items()):
            national = national_by_year.get(year)
            district_trend.append(DistrictTrendPoint(
                year=year,
                max=stats.max,
                average=stats.mean,
                min=stats.min,
                national_average=national.mean if national is not None else None,
            ))

        summary = total_stats(results['district'])
        district_summary = None
        if summary is not None:
            district_summary = StatsSummary(average=summary.mean, **summary.to_dict())

        transactions = [row.doc for row in results['postcode']]
        stats = compute_derived_stats(
            district_by_year,
            len(transactions),
            base_year=self.base_year,
            latest_year=self.latest_year,
            inflation_rate=self.inflation_rate,
        )

        logger.info(f"Report {postcode}: {len(transactions)} sales, "
                    f"{len(district_trend)} district years, stats={'yes' if stats else 'no'}")

        return PostcodeReport(
            postcode=postcode,
            district=district,
            transactions=transactions,
            national_trend=national_trend,
            district_trend=district_trend,
            district_summary=district_summary,
            stats=stats,
        )
