"""Application-wide constants for the tutoring platform."""

from __future__ import annotations

BRAND_NAME = "Tutorly"

# Lesson duration constraints
MIN_SESSION_DURATION = 15  # minutes
MAX_SESSION_DURATION = 240  # minutes (4 hours)

# Text constraints
MAX_SUBJECT_LENGTH = 255
MAX_REASON_LENGTH = 1000

# Automatic lesson completion defaults (overridable via settings)
DEFAULT_COMPLETION_INTERVAL_SECONDS = 300
DEFAULT_COMPLETION_GRACE_MINUTES = 5
