"""
Health endpoint - store and cache status
"""

import logging

from flask import Blueprint, current_app, jsonify
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from models.database import db
from models.index_entry import IndexEntry
from models.transaction import Transaction

logger = logging.getLogger(__name__)

health_bp = Blueprint('health', __name__)


@health_bp.route("/health", methods=["GET"])
def health():
    service = current_app.extensions['postcode_service']
    try:
        transactions = db.session.query(func.count(Transaction.id)).scalar()
        entries = dict(
            db.session.query(IndexEntry.view_name, func.count(IndexEntry.id))
            .group_by(IndexEntry.view_name)
            .all()
        )
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return jsonify({"status": "unavailable", "error": "Database unavailable"}), 503

    return jsonify({
        "status": "ok",
        "transactions": transactions,
        "indexEntries": entries,
        "nationalTrendCache": service.national_cache.stats(),
    })
