"""
Pydantic model for incoming price-paid records.

Validates one already-parsed record at the ingest boundary. Fields the
views need (price, date, postcode) are optional: an incomplete record is
stored and simply left out of the views that need the missing field.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TransactionRecord(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        extra='ignore',
    )

    id: str = Field(min_length=1, max_length=64, description="Transaction unique id")
    price: Optional[int] = Field(default=None, gt=0, description="Price in whole pounds")
    date: Optional[str] = Field(default=None, max_length=32, description="Date of transfer")
    postcode: Optional[str] = Field(default=None, max_length=16)

    property_type: Optional[str] = Field(default=None, max_length=1)
    new_build: Optional[str] = Field(default=None, max_length=1)
    tenure: Optional[str] = Field(default=None, max_length=1)
    paon: Optional[str] = None
    saon: Optional[str] = None
    street: Optional[str] = None
    locality: Optional[str] = None
    town_city: Optional[str] = None
    district: Optional[str] = None
    county: Optional[str] = None
    ppd_category: Optional[str] = Field(default=None, max_length=1)
    record_status: Optional[str] = Field(default=None, max_length=1)

    @field_validator('price', 'date', 'postcode', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if isinstance(v, str) and v.strip() == '':
            return None
        return v
