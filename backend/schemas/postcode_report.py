"""
Pydantic models for the /postcode/<postcode> view model.

Serialized with model_dump(by_alias=True), which gives the camelCase keys
the page consumes (averagePrice, nationalAverage, growthFactor, ...).
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ReportModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class NationalTrendPoint(ReportModel):
    year: int
    average_price: Optional[float] = None


class DistrictTrendPoint(ReportModel):
    year: int
    max: Optional[int] = None
    average: Optional[float] = None
    min: Optional[int] = None
    national_average: Optional[float] = None


class StatsSummary(ReportModel):
    count: int
    sum: int
    min: int
    max: int
    sumsqr: int
    average: Optional[float] = None


class DerivedStats(ReportModel):
    growth_factor: int
    nominal_profit: int
    real_terms_profit: int
    transaction_count: int


class PostcodeReport(ReportModel):
    postcode: str
    district: str
    transactions: List[Dict[str, Any]]
    national_trend: List[NationalTrendPoint]
    district_trend: List[DistrictTrendPoint]
    district_summary: Optional[StatsSummary] = None
    stats: Optional[DerivedStats] = None
