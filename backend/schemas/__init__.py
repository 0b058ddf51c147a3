# Boundary schemas (ingest input, postcode view model)
from .transaction_record import TransactionRecord
from .postcode_report import (
    DerivedStats,
    DistrictTrendPoint,
    NationalTrendPoint,
    PostcodeReport,
    StatsSummary,
)

__all__ = [
    'TransactionRecord',
    'DerivedStats',
    'DistrictTrendPoint',
    'NationalTrendPoint',
    'PostcodeReport',
    'StatsSummary',
]
