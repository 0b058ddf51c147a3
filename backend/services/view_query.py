"""
View Query - range, exact-key and grouped queries over the persisted views

Keys are compared lexicographically, element by element; a key that is a
prefix of a longer key sorts before it. That makes every prefix a
contiguous range of the (view_name, key_text, key_year, key_month, key_day)
index:

    ["CT20"] <= ["CT20", 1995, 1, 1] < ["CT200"]

Grouped reduction returns one Stats row per prefix (the first group_level
key columns), in key order. Every field is exact: on PostgreSQL the GROUP BY
runs in SQL with sumsqr as NUMERIC; elsewhere (SQLite sums are 64-bit) each
group's values are folded with reduce_values.

Usage:
    from services.view_query import query_view, district_range

    rows = query_view('bypostcode', key='CT201LF', reduce=False, include_docs=True)
    start, end = district_range('CT20')
    rows = query_view('bypcdandtime', startkey=start, endkey=end, group_level=2)
"""

import logging
from dataclasses import dataclass
from itertools import groupby
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import Numeric, and_, cast, func, or_, true

from constants import DISTRICT_RANGE_SENTINEL
from models.database import db
from models.index_entry import IndexEntry
from models.transaction import Transaction
from services.index_builder import ViewDefinition, ViewQueryError, get_view
from services.stats_reducer import Stats, reduce_values, rereduce

logger = logging.getLogger('view_query')

# Rows streamed per fetch when groups are folded in Python
REDUCE_FETCH_SIZE = 5000


@dataclass(frozen=True)
class ViewRow:
    key: Any
    value: Any
    id: Optional[str] = None
    doc: Optional[Dict[str, Any]] = None


# ============================================================================
# KEY COMPARISON
# ============================================================================

def _as_parts(view: ViewDefinition, key: Any, field: str) -> Tuple[Any, ...]:
    if view.scalar_key and not isinstance(key, (list, tuple)):
        parts = (key,)
    elif isinstance(key, (list, tuple)):
        parts = tuple(key)
    else:
        raise ViewQueryError(f"{field} for view {view.name!r} must be a list, got {key!r}")
    if len(parts) > len(view.key_columns):
        raise ViewQueryError(
            f"{field} has {len(parts)} components; view {view.name!r} keys have "
            f"{len(view.key_columns)}"
        )
    return parts


def _columns(view: ViewDefinition):
    return [getattr(IndexEntry, name) for name in view.key_columns]


def _lex_less(columns, values, or_equal: bool):
    """(c1..ck) < (v1..vk), or <= when or_equal."""
    clauses = []
    for i, value in enumerate(values):
        prefix_equal = [columns[j] == values[j] for j in range(i)]
        clauses.append(and_(*prefix_equal, columns[i] < value))
    if or_equal:
        clauses.append(and_(*[c == v for c, v in zip(columns, values)]))
    return or_(*clauses)


def _lex_greater_or_equal(columns, values):
    clauses = []
    for i, value in enumerate(values):
        prefix_equal = [columns[j] == values[j] for j in range(i)]
        clauses.append(and_(*prefix_equal, columns[i] > value))
    clauses.append(and_(*[c == v for c, v in zip(columns, values)]))
    return or_(*clauses)


def _range_conditions(view: ViewDefinition, key, startkey, endkey, inclusive_end: bool):
    columns = _columns(view)
    conditions = [IndexEntry.view_name == view.name]

    if key is not None:
        parts = _as_parts(view, key, 'key')
        if len(parts) != len(columns):
            raise ViewQueryError(f"key must have {len(columns)} components for view {view.name!r}")
        conditions.extend(c == v for c, v in zip(columns, parts))
        return conditions

    if startkey is not None:
        parts = _as_parts(view, startkey, 'startkey')
        if parts:
            # A longer key with an equal prefix sorts after the prefix itself
            conditions.append(_lex_greater_or_equal(columns[:len(parts)], parts))

    if endkey is not None:
        parts = _as_parts(view, endkey, 'endkey')
        if parts:
            # Keys longer than a prefix endkey sort after it, so only a
            # full-length equal key can match an inclusive end
            full_length = len(parts) == len(columns)
            conditions.append(_lex_less(columns[:len(parts)], parts,
                                        or_equal=inclusive_end and full_length))
    return conditions


# ============================================================================
# QUERIES
# ============================================================================

def query_view(
    view_name: str,
    *,
    key: Any = None,
    startkey: Any = None,
    endkey: Any = None,
    inclusive_end: bool = True,
    reduce: bool = True,
    group_level: Optional[int] = None,
    include_docs: bool = False,
) -> List[ViewRow]:
    """
    Query a view.

    Args:
        view_name: One of the registered views
        key: Exact key (full length); excludes startkey/endkey
        startkey: Inclusive lower bound (may be a key prefix)
        endkey: Upper bound (may be a key prefix)
        inclusive_end: Whether endkey itself is included
        reduce: Aggregate values with the Stats reducer
        group_level: Group by this many leading key components (reduce only);
            None or 0 reduces the whole range to one row
        include_docs: Attach the source transaction to each row (reduce=False)

    Returns:
        ViewRow list in key order. Raw rows carry the price as value and the
        document id; reduced rows carry Stats.

    Raises:
        ViewQueryError: Unknown view or malformed query
    """
    view = get_view(view_name)
    if key is not None and (startkey is not None or endkey is not None):
        raise ViewQueryError("key cannot be combined with startkey/endkey")
    if reduce and include_docs:
        raise ViewQueryError("include_docs is only valid with reduce=False")
    if group_level is not None and group_level < 0:
        raise ViewQueryError(f"group_level must be >= 0, got {group_level}")

    conditions = _range_conditions(view, key, startkey, endkey, inclusive_end)

    if not reduce:
        return _query_entries(view, conditions, include_docs)
    return _query_grouped(view, conditions, group_level or 0)


def _query_entries(view: ViewDefinition, conditions, include_docs: bool) -> List[ViewRow]:
    columns = _columns(view)
    if include_docs:
        query = db.session.query(IndexEntry, Transaction).join(
            Transaction, Transaction.id == IndexEntry.doc_id)
    else:
        query = db.session.query(IndexEntry)
    query = query.filter(*conditions).order_by(*columns, IndexEntry.doc_id, IndexEntry.id)

    rows = []
    for result in query.all():
        entry, txn = (result if include_docs else (result, None))
        rows.append(ViewRow(
            key=view.key_from_columns(getattr(entry, name) for name in view.key_columns),
            value=entry.value,
            id=entry.doc_id,
            doc=txn.to_dict() if txn is not None else None,
        ))
    return rows


def _group_key(view: ViewDefinition, prefix: Tuple[Any, ...]) -> Any:
    if not prefix:
        return None
    return prefix[0] if view.scalar_key else prefix


def _sums_are_exact() -> bool:
    """Whether SQL SUM over NUMERIC is arbitrary precision on this database."""
    return db.session.get_bind().dialect.name == 'postgresql'


def _query_grouped(view: ViewDefinition, conditions, group_level: int) -> List[ViewRow]:
    group_columns = _columns(view)[:group_level]
    if _sums_are_exact():
        return _query_grouped_sql(view, conditions, group_columns)
    return _query_grouped_folded(view, conditions, group_columns)


def _query_grouped_sql(view: ViewDefinition, conditions, group_columns) -> List[ViewRow]:
    value = cast(IndexEntry.value, Numeric)
    aggregates = [
        func.sum(value).label('sum'),
        func.count(IndexEntry.value).label('count'),
        func.min(IndexEntry.value).label('min'),
        func.max(IndexEntry.value).label('max'),
        func.sum(value * value).label('sumsqr'),
    ]

    query = db.session.query(*group_columns, *aggregates).filter(and_(true(), *conditions))
    if group_columns:
        query = query.group_by(*group_columns).order_by(*group_columns)

    rows = []
    for result in query.all():
        count = int(result.count or 0)
        if not count:
            continue
        stats = Stats(
            sum=int(result.sum),
            count=count,
            min=int(result.min),
            max=int(result.max),
            sumsqr=int(result.sumsqr),
        )
        prefix = tuple(result)[:len(group_columns)]
        rows.append(ViewRow(key=_group_key(view, prefix), value=stats))
    return rows


def _query_grouped_folded(view: ViewDefinition, conditions, group_columns) -> List[ViewRow]:
    width = len(group_columns)
    query = db.session.query(*group_columns, IndexEntry.value).filter(and_(true(), *conditions))
    if group_columns:
        query = query.order_by(*group_columns)

    rows = []
    results = query.yield_per(REDUCE_FETCH_SIZE)
    for prefix, group in groupby(results, key=lambda result: tuple(result)[:width]):
        stats = reduce_values(result[-1] for result in group)
        if stats is not None:
            rows.append(ViewRow(key=_group_key(view, prefix), value=stats))
    return rows


def district_range(district: str) -> Tuple[List[str], List[str]]:
    """
    (startkey, endkey) covering every bypcdandtime entry of one district.

    Use with inclusive_end=False: [district] <= key < [district + "0"].
    """
    return [district], [district + DISTRICT_RANGE_SENTINEL]


def total_stats(rows: Sequence[ViewRow]) -> Optional[Stats]:
    """Rereduce grouped rows into one Stats (None if all groups are empty)."""
    return rereduce(row.value for row in rows)
