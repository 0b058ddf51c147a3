"""
Models package - SQLAlchemy models
"""
from models.database import db
from models.transaction import Transaction
from models.index_entry import IndexEntry

__all__ = [
    'db',
    'Transaction',
    'IndexEntry',
]
