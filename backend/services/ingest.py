"""
Ingest Service - store price-paid records and maintain the views

Records arrive as already-parsed mappings (file parsing is the caller's
job). Each record is validated with TransactionRecord, stored once, and
indexed incrementally in the same transaction.

Transactions are immutable: a record whose id is already stored is skipped,
not updated.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from models.database import db
from models.transaction import Transaction
from schemas.transaction_record import TransactionRecord
from services.index_builder import index_transactions
from services.trend_cache import TTLCache

logger = logging.getLogger('ingest')


@dataclass
class IngestResult:
    inserted: int = 0
    duplicates: int = 0
    rejected: int = 0
    index_entries: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'inserted': self.inserted,
            'duplicates': self.duplicates,
            'rejected': self.rejected,
            'index_entries': self.index_entries,
            'errors': self.errors,
        }


def ingest_records(records: Iterable[Mapping[str, Any]],
                   *,
                   trend_cache: Optional[TTLCache] = None) -> IngestResult:
    """
    Validate, store and index a batch of records.

    Args:
        records: Mappings with at least an 'id'
        trend_cache: Invalidated after a batch that inserted rows

    Returns:
        IngestResult with per-outcome counts
    """
    result = IngestResult()
    validated: Dict[str, TransactionRecord] = {}

    for position, raw in enumerate(records):
        if not isinstance(raw, Mapping):
            result.rejected += 1
            result.errors.append({'position': position, 'id': None,
                                  'errors': [{'type': 'not_an_object',
                                              'msg': f'Expected an object, got {type(raw).__name__}'}]})
            logger.warning(f"Rejected record at position {position}: "
                           f"expected an object, got {type(raw).__name__}")
            continue
        try:
            record = TransactionRecord.model_validate(dict(raw))
        except ValidationError as e:
            result.rejected += 1
            result.errors.append({'position': position, 'id': raw.get('id'),
                                  'errors': e.errors(include_url=False)})
            logger.warning(f"Rejected record at position {position} "
                           f"(id={raw.get('id')!r}): {e.error_count()} validation errors")
            continue
        if record.id in validated:
            result.duplicates += 1
            continue
        validated[record.id] = record

    if validated:
        existing = {
            row.id for row in db.session.query(Transaction.id).filter(
                Transaction.id.in_(list(validated))
            )
        }
    else:
        existing = set()

    new_rows = []
    for record_id, record in validated.items():
        if record_id in existing:
            result.duplicates += 1
            continue
        new_rows.append(Transaction(**record.model_dump()))

    try:
        db.session.add_all(new_rows)
        db.session.flush()
        result.index_entries = index_transactions(new_rows)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    result.inserted = len(new_rows)
    if result.duplicates:
        logger.info(f"Skipped {result.duplicates} already-stored transactions")
    logger.info(f"Ingested {result.inserted} transactions "
                f"({result.index_entries} index entries, {result.rejected} rejected)")

    if new_rows and trend_cache is not None:
        trend_cache.invalidate()

    return result
