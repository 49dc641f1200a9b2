"""
Model & Service Configuration
=============================
Central constants shared by the price model loader, the predictor,
the monitoring subsystem and the HTTP service.
"""

from pathlib import Path

# -- Paths -----------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"
LOG_DIR = PROJECT_ROOT / "logs"

MODEL_PATH = ARTIFACTS_DIR / "model.json"

# -- Listing Types ---------------------------------------------------------
SALE = "Sale"
RENT = "Rent"
BOTH = "Both"

SUMMARY_LISTING_TYPES = [SALE, RENT, BOTH]

# -- Predictor -------------------------------------------------------------
# A location/listing-type bucket backed by at least this many listings
# upgrades an in-model prediction from "medium" to "high" confidence.
ENOUGH_DATA_MIN_COUNT = 10

COMPARABLES_LIMIT = 5

CURRENCY = "KES"

# -- HTTP boundary ---------------------------------------------------------
MAX_BEDROOMS = 20

# -- Data Store ------------------------------------------------------------
APPLICATION_NAME = "nairobi-property-intel"
SUMMARY_ROW_LIMIT = 200
DEFAULT_PAGE_SIZE = 20
DEFAULT_TREND_DAYS = 30
DEFAULT_ACTIVE_SOURCES = 4

# -- Monitoring ------------------------------------------------------------
MONITOR_MAX_HISTORY = 10_000

# -- Affordability ---------------------------------------------------------
# Share of gross monthly income that may go to rent or a mortgage payment.
HOUSING_INCOME_SHARE = 0.30
# Average Kenyan mortgage rate, compounded monthly.
MORTGAGE_ANNUAL_RATE = 0.13
# Locations priced up to this multiple of the budget count as a stretch.
STRETCH_FACTOR = 1.2
