"""
IndexEntry Model - persisted view rows (key, value) emitted by the map functions

Key layout per view (unused key columns stay NULL):
  View            key_text     key_year  key_month  key_day
  ───────────────────────────────────────────────────────────
  bypostcode      "CT201LF"    -         -          -
  bytime          -            1995      1          1
  bypcdandtime    "CT20"       1995      1          1

The composite index on (view_name, key_text, key_year, key_month, key_day)
keeps every view's keys in sorted order, so prefix and range queries are
contiguous B-tree scans.
"""
from models.database import db


class IndexEntry(db.Model):
    __tablename__ = 'index_entries'
    __table_args__ = (
        db.Index('ix_index_entries_view_key',
                 'view_name', 'key_text', 'key_year', 'key_month', 'key_day'),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    view_name = db.Column(db.String(32), nullable=False)
    doc_id = db.Column(db.String(64), db.ForeignKey('transactions.id'),
                       index=True, nullable=False)

    key_text = db.Column(db.String(16))
    key_year = db.Column(db.Integer)
    key_month = db.Column(db.Integer)
    key_day = db.Column(db.Integer)

    value = db.Column(db.BigInteger, nullable=False)

    def __repr__(self):
        return f'<IndexEntry {self.view_name} {self.doc_id} {self.value}>'
