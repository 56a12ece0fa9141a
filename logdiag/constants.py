"""Constants shared with log processing back-ends.

The values below form the contract with the log analysis system that reads
the diagnostic payload, so they must stay byte-for-byte stable.
"""

from __future__ import annotations

LIBRARY_NAME_PREFIX = "nodejs"
DEFAULT_LIBRARY_VERSION = "unknown"

DIAGNOSTIC_INFO_KEY = "logging.googleapis.com/diagnostic"
INSTRUMENTATION_SOURCE_KEY = "instrumentation_source"

# Names and versions longer than this are cut and suffixed with ``*``.
MAX_DIAGNOSTIC_VALUE_LENGTH = 14
MAX_INSTRUMENTATION_COUNT = 3

TRUNCATION_MARKER = "*"

__all__ = [
    "DEFAULT_LIBRARY_VERSION",
    "DIAGNOSTIC_INFO_KEY",
    "INSTRUMENTATION_SOURCE_KEY",
    "LIBRARY_NAME_PREFIX",
    "MAX_DIAGNOSTIC_VALUE_LENGTH",
    "MAX_INSTRUMENTATION_COUNT",
    "TRUNCATION_MARKER",
]
