"""
Application-wide constants.

Defines shared constants used across the application to avoid magic strings
and ensure consistency.
"""

MILLIS_PER_DAY = 24 * 60 * 60 * 1000
"""Milliseconds in one day; job run timestamps are stored as ms epoch values."""

LOOKBACK_START_SENTINEL = 2 ** 31 - 1
"""
Start index returned by compute_lookback when no timestamp is older than the
start cutoff.

Callers treat an unmodified start index as "no boundary found within range".
"""

ANY_COMPONENT = ""
"""Component filter that matches bugs in every component."""

# Bug sync log statuses
SYNC_STATUS_SUCCESS = "success"
SYNC_STATUS_FAILED = "failed"

INFREQUENT_JOB_RUN_FACTOR = (3, 2)
"""
Numerator and denominator applied to the number of days of data.

A job with more runs than days * 3 // 2 is reported as a regular job; the
rest are reported as infrequent jobs.
"""
