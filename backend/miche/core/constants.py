"""Application-wide constants for the Miche Mobile booking backend."""

from __future__ import annotations

BRAND_NAME = "Miche Mobile"

# Service duration constraints
MIN_SERVICE_DURATION = 15  # minutes
MAX_SERVICE_DURATION = 480  # minutes (8 hours)
DEFAULT_SERVICE_DURATION = 60  # minutes

# Text constraints
MAX_REASON_LENGTH = 255
MAX_LOCATION_LENGTH = 500

# Minor units per major currency unit (cents per dollar)
MINOR_UNITS_PER_MAJOR = 100

# Query limits
EXPIRY_SWEEP_BATCH_SIZE = 200

# API metadata
API_VERSION = "1.0.0"
API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = "Booking, availability and payment backend for mobile service professionals"
