"""
Application-wide constants.
Centralizes magic numbers and store defaults.
"""

# Slot grid
SLOT_STEP_MINUTES = 30  # Granularity of bookable start times
MIN_LEAD_MINUTES = 30  # Same-day slots must start at least this far from now

# Salon defaults applied when the store returns null
DEFAULT_OPENING_TIME = "09:00"
DEFAULT_CLOSING_TIME = "19:00"
DEFAULT_WORKING_DAYS = [1, 2, 3, 4, 5, 6]  # Monday..Saturday (0 = Sunday)

# Validation limits
MAX_NOTES_LENGTH = 1000
MAX_CLIENT_NAME_LENGTH = 120
MAX_COUPON_CODE_LENGTH = 40

# Cache
CACHE_TTL_MINUTES = 5

# Reminder scan
APPOINTMENTS_PAGE_SIZE = 200
