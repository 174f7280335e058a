"""Protocol constants shared across the engine.

Several constants can be overridden via environment variables so that a
study can adjust quality thresholds without code changes.
"""

import os

# Fixed duration of Life A (years in the described health state).
TTO_DURATION_YEARS = 10.0

# Slider granularity for both the standard and the lead-time slider.
TTO_SLIDER_STEP = 0.5

# Lower bound of any TTO value; lead-time values are clamped to it.
TTO_MIN_VALUE = -1.0

# Responses confirmed faster than this are flagged ``too_fast``.
TOO_FAST_SECONDS = int(os.getenv("TOO_FAST_SECONDS", "10"))

# This many TTO rows sharing one final_value flag the session.
INVARIANT_RESPONSE_THRESHOLD = int(os.getenv("INVARIANT_RESPONSE_THRESHOLD", "3"))

# Respondent code: trimmed, 1-50 chars of letters, digits, hyphen, underscore.
RESPONDENT_CODE_PATTERN = r"^[A-Za-z0-9\-_]+$"
RESPONDENT_CODE_MAX_LENGTH = 50

# Interview languages offered to respondents.
SUPPORTED_LANGUAGES: dict[str, str] = {
    "en": "English",
    "es": "Español",
    "zh": "中文",
    "id": "Bahasa Indonesia",
    "ms": "Bahasa Melayu",
}

# Human-readable step names for API responses and logging.
STEP_LABELS: dict[str, str] = {
    "consent": "Consent",
    "warmup": "EQ-5D-5L Warm-up",
    "practice": "Practice Task",
    "tto": "Time Trade-Off",
    "feedback": "Feedback",
    "dce": "Discrete Choice",
    "demographics": "Demographics",
    "complete": "Complete",
}

# Review columns only an administrator may write.
ADMIN_AUTHORITY_FIELDS: frozenset[str] = frozenset(
    {"quality_status", "quality_reviewed_by", "quality_reviewed_at", "quality_notes"}
)
