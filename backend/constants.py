"""
Centralized Constants - SINGLE SOURCE OF TRUTH

Postcode grammar, view names and index key layout shared by the index
builder, the view query layer and the postcode service.

DO NOT duplicate these definitions in other files.
"""

import re

# =============================================================================
# POSTCODES
# =============================================================================

# Normalized (uppercase, alphanumeric only) UK postcode grammar
POSTCODE_PATTERN = re.compile(r'^[A-Z]+[0-9]+[A-Z]?[0-9][A-Z][A-Z]$')

# Characters removed during normalization
POSTCODE_STRIP_PATTERN = re.compile(r'[^A-Z0-9]')

# Sector digit + unit letters that follow the district
POSTCODE_INWARD_LENGTH = 3

# Lowest character that can follow a district inside a valid key.
# [district] <= key < [district + sentinel] selects exactly one district.
DISTRICT_RANGE_SENTINEL = '0'

# =============================================================================
# VIEWS
# =============================================================================

VIEW_BY_POSTCODE = 'bypostcode'
VIEW_BY_TIME = 'bytime'
VIEW_BY_DISTRICT_AND_TIME = 'bypcdandtime'

ALL_VIEWS = [VIEW_BY_POSTCODE, VIEW_BY_TIME, VIEW_BY_DISTRICT_AND_TIME]

# Group levels used by the postcode page
GROUP_BY_YEAR = 1
GROUP_BY_DISTRICT_YEAR = 2

# =============================================================================
# SALE DATES
# =============================================================================

# "1995-01-01 00:00" or "1995-01-01T00:00"
DATE_TIME_SEPARATOR = re.compile(r'[ T]')
DATE_COMPONENT_SEPARATOR = '-'
