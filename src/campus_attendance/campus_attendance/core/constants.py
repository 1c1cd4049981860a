"""Constants and defaults.

Note: The default promotion policy lives in ``promotion.policy`` as a single
named constant; do not repeat its values elsewhere.
"""

DEFAULT_BATCH_WORKERS = 4
DEFAULT_PROCESSED_BY = "Admin"
DEFAULT_HISTORY_LIMIT = 50
