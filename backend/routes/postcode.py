"""
Postcode Routes

- GET /                     landing document
- GET /postcode/<postcode>  price history view model for one postcode

Postcodes are canonicalized before any query runs:
  - not a UK postcode      -> 302 to /
  - valid, not canonical   -> 302 to /postcode/<CANONICAL>
"""

from flask import Blueprint, current_app, jsonify, redirect, url_for

from utils.postcode import PostcodeValidationError, canonicalize_postcode

postcode_bp = Blueprint('postcode', __name__)


def get_postcode_service():
    return current_app.extensions['postcode_service']


@postcode_bp.route("/", methods=["GET"])
def index():
    return jsonify({
        "service": "UK house price trends",
        "lookup": url_for('postcode.postcode_report', postcode='CT201LF'),
        "description": "GET /postcode/<postcode> for sales, national and district trends",
    })


@postcode_bp.route("/postcode/<postcode>", methods=["GET"])
def postcode_report(postcode):
    try:
        canonical = canonicalize_postcode(postcode)
    except PostcodeValidationError:
        return redirect(url_for('postcode.index'))

    if canonical != postcode:
        return redirect(url_for('postcode.postcode_report', postcode=canonical))

    report = get_postcode_service().build_report(canonical)
    return jsonify(report.model_dump(by_alias=True, mode='json'))
