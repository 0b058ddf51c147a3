"""
Index Builder - view definitions and their persisted index entries

Each view pairs a pure map function (document -> [(key, price)]) with the
key columns of the index_entries table it fills:

    bypostcode     "CT201LF"                  -> price
    bytime         (1995, 1, 1)               -> price
    bypcdandtime   ("CT20", 1995, 1, 1)       -> price

Documents missing a field a view needs are skipped by that view (not an
error). Unparsable sale dates are logged as data-quality defects and the
record is left out of the time-based views.

Usage:
    from services.index_builder import index_transactions, rebuild_indexes

    index_transactions(new_rows)       # incremental, on ingest
    counts = rebuild_indexes()         # full recompute, idempotent
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from constants import (
    ALL_VIEWS,
    DATE_COMPONENT_SEPARATOR,
    DATE_TIME_SEPARATOR,
    VIEW_BY_DISTRICT_AND_TIME,
    VIEW_BY_POSTCODE,
    VIEW_BY_TIME,
)
from models.database import db
from models.index_entry import IndexEntry
from models.transaction import Transaction
from utils.postcode import district_for_record

logger = logging.getLogger('index_builder')


class ViewQueryError(ValueError):
    """Raised for an unknown view or a malformed view query."""
    pass


Key = Any
Emission = Tuple[Key, int]

# Rows fetched per batch during a full rebuild
REBUILD_BATCH_SIZE = 5000


# ============================================================================
# FIELD PARSING
# ============================================================================

def parse_sale_date(raw: Any) -> Optional[Tuple[int, int, int]]:
    """
    Parse "YYYY-MM-DD[ HH:MM]" into (year, month, day).

    Requires exactly three all-digit components. Returns None for anything
    else; the caller decides whether that is a defect worth logging.
    """
    if raw is None:
        return None
    date_part = DATE_TIME_SEPARATOR.split(str(raw).strip(), maxsplit=1)[0]
    tokens = date_part.split(DATE_COMPONENT_SEPARATOR)
    if len(tokens) != 3 or not all(t.isdigit() for t in tokens):
        return None
    year, month, day = (int(t, 10) for t in tokens)
    return year, month, day


def _price(doc: Dict[str, Any]) -> Optional[int]:
    price = doc.get('price')
    if price is None or price == '' or isinstance(price, bool):
        return None
    try:
        price = int(price)
    except (TypeError, ValueError):
        return None
    return price if price > 0 else None


def _sale_date(doc: Dict[str, Any]) -> Optional[Tuple[int, int, int]]:
    raw = doc.get('date')
    if raw is None or raw == '':
        return None
    parsed = parse_sale_date(raw)
    if parsed is None:
        logger.warning(f"Malformed sale date {raw!r} on transaction {doc.get('id')}; "
                       "excluded from time-based views")
    return parsed


# ============================================================================
# MAP FUNCTIONS
# ============================================================================

def map_by_postcode(doc: Dict[str, Any]) -> List[Emission]:
    postcode = doc.get('postcode')
    price = _price(doc)
    if not postcode or price is None:
        return []
    key = ''.join(str(postcode).split()).upper()
    if not key:
        return []
    return [(key, price)]


def map_by_time(doc: Dict[str, Any]) -> List[Emission]:
    price = _price(doc)
    if price is None:
        return []
    ymd = _sale_date(doc)
    if ymd is None:
        return []
    return [(ymd, price)]


def map_by_district_and_time(doc: Dict[str, Any]) -> List[Emission]:
    price = _price(doc)
    if price is None:
        return []
    district = district_for_record(doc.get('postcode'))
    if district is None:
        logger.debug(f"Transaction {doc.get('id')} has no usable postcode; "
                     "skipped by district view")
        return []
    ymd = _sale_date(doc)
    if ymd is None:
        return []
    return [((district,) + ymd, price)]


@dataclass(frozen=True)
class ViewDefinition:
    name: str
    key_columns: Tuple[str, ...]
    map_fn: Callable[[Dict[str, Any]], List[Emission]]

    @property
    def scalar_key(self) -> bool:
        return len(self.key_columns) == 1

    def key_to_columns(self, key: Key) -> Dict[str, Any]:
        parts = (key,) if self.scalar_key else tuple(key)
        return dict(zip(self.key_columns, parts))

    def key_from_columns(self, values: Iterable[Any]) -> Key:
        values = tuple(values)
        return values[0] if self.scalar_key else values


VIEWS: Dict[str, ViewDefinition] = {
    VIEW_BY_POSTCODE: ViewDefinition(
        VIEW_BY_POSTCODE, ('key_text',), map_by_postcode),
    VIEW_BY_TIME: ViewDefinition(
        VIEW_BY_TIME, ('key_year', 'key_month', 'key_day'), map_by_time),
    VIEW_BY_DISTRICT_AND_TIME: ViewDefinition(
        VIEW_BY_DISTRICT_AND_TIME, ('key_text', 'key_year', 'key_month', 'key_day'),
        map_by_district_and_time),
}


def get_view(view_name: str) -> ViewDefinition:
    """
    Look up a registered view.

    Raises:
        ViewQueryError: Unknown view name
    """
    view = VIEWS.get(view_name)
    if view is None:
        raise ViewQueryError(f"Unknown view: {view_name!r}. Valid: {sorted(VIEWS)}")
    return view


def entries_for_document(doc: Dict[str, Any],
                         view_names: Optional[Iterable[str]] = None
                         ) -> List[Tuple[str, Key, int]]:
    """All (view_name, key, value) emissions for one document."""
    names = list(view_names) if view_names is not None else ALL_VIEWS
    emitted = []
    for name in names:
        for key, value in get_view(name).map_fn(doc):
            emitted.append((name, key, value))
    return emitted


# ============================================================================
# PERSISTENCE
# ============================================================================

def _entry_rows(doc: Dict[str, Any], view_names: Iterable[str]) -> List[Dict[str, Any]]:
    rows = []
    for name, key, value in entries_for_document(doc, view_names):
        row = {'view_name': name, 'doc_id': doc['id'], 'value': value}
        row.update(get_view(name).key_to_columns(key))
        rows.append(row)
    return rows


def index_transactions(transactions: Iterable[Transaction],
                       view_names: Optional[Iterable[str]] = None) -> int:
    """
    Incrementally (re)index the given transactions.

    Existing entries for these documents are removed first, so indexing a
    document twice never duplicates its entries. Does not commit.

    Returns:
        Number of index entries written
    """
    names = list(view_names) if view_names is not None else ALL_VIEWS
    docs = [t.to_dict() for t in transactions]
    if not docs:
        return 0

    doc_ids = [d['id'] for d in docs]
    db.session.query(IndexEntry).filter(
        IndexEntry.view_name.in_(names),
        IndexEntry.doc_id.in_(doc_ids),
    ).delete(synchronize_session=False)

    rows = []
    for doc in docs:
        rows.extend(_entry_rows(doc, names))
    if rows:
        db.session.bulk_insert_mappings(IndexEntry, rows)

    logger.debug(f"Indexed {len(docs)} transactions -> {len(rows)} entries")
    return len(rows)


def rebuild_indexes(view_names: Optional[Iterable[str]] = None) -> Dict[str, int]:
    """
    Drop and recompute the named views (all by default) from the record store.

    Re-running over an unchanged store produces identical entries.

    Returns:
        Entry count per rebuilt view
    """
    names = list(view_names) if view_names is not None else list(ALL_VIEWS)
    for name in names:
        get_view(name)

    db.session.query(IndexEntry).filter(
        IndexEntry.view_name.in_(names)
    ).delete(synchronize_session=False)

    counts = {name: 0 for name in names}
    query = db.session.query(Transaction).order_by(Transaction.id)
    offset = 0
    while True:
        batch = query.offset(offset).limit(REBUILD_BATCH_SIZE).all()
        if not batch:
            break
        rows = []
        for txn in batch:
            rows.extend(_entry_rows(txn.to_dict(), names))
        for row in rows:
            counts[row['view_name']] += 1
        if rows:
            db.session.bulk_insert_mappings(IndexEntry, rows)
        offset += len(batch)

    db.session.commit()
    logger.info(f"Rebuilt views {names}: {counts}")
    return counts
