"""
Transaction Model - one row per HM Land Registry price-paid record

Price Paid Column Mapping:
  PPD Column              → DB Column           Notes
  ─────────────────────────────────────────────────────────────
  Transaction unique id   → id                  Primary key
  Price                   → price               Whole pounds, may be missing
  Date of Transfer        → date                Raw string, "YYYY-MM-DD HH:MM"
  Postcode                → postcode            As received, e.g. "CT20 1LF"
  Property Type           → property_type       D, S, T, F, O
  Old/New                 → new_build           Y or N
  Duration                → tenure              F (freehold) or L (leasehold)
  PAON / SAON             → paon / saon         Address components
  Street                  → street
  Locality                → locality
  Town/City               → town_city
  District                → district            Local authority, not postcode district
  County                  → county
  PPD Category Type       → ppd_category        A or B
  Record Status           → record_status       A, C or D

Rows are immutable once ingested. The view indexes read them through
to_dict(), which is the "document" handed to each map function.
"""
from models.database import db
from datetime import datetime


class Transaction(db.Model):
    __tablename__ = 'transactions'

    # === Primary Key ===
    id = db.Column(db.String(64), primary_key=True)

    # === Fields used by the views (nullable: incomplete records are kept) ===
    price = db.Column(db.Integer)
    date = db.Column(db.String(32))
    postcode = db.Column(db.String(16))

    # === Descriptive fields carried through unchanged ===
    property_type = db.Column(db.String(1))
    new_build = db.Column(db.String(1))
    tenure = db.Column(db.String(1))
    paon = db.Column(db.Text)
    saon = db.Column(db.Text)
    street = db.Column(db.Text)
    locality = db.Column(db.Text)
    town_city = db.Column(db.Text)
    district = db.Column(db.Text)
    county = db.Column(db.Text)
    ppd_category = db.Column(db.String(1))
    record_status = db.Column(db.String(1))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        """Convert to a plain document for the map functions and JSON output"""
        return {
            'id': self.id,
            'price': self.price,
            'date': self.date,
            'postcode': self.postcode,
            'property_type': self.property_type,
            'new_build': self.new_build,
            'tenure': self.tenure,
            'paon': self.paon,
            'saon': self.saon,
            'street': self.street,
            'locality': self.locality,
            'town_city': self.town_city,
            'district': self.district,
            'county': self.county,
            'ppd_category': self.ppd_category,
            'record_status': self.record_status,
        }

    def __repr__(self):
        return f'<Transaction {self.id} {self.postcode} {self.price}>'
