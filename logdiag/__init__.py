"""Instrumentation source annotation for structured log entries."""

from .annotator import (
    InstrumentationAnnotator,
    annotate,
    create_diagnostic_entry,
    create_self_record,
    populate_instrumentation_info,
    truncate_value,
)
from .config import (
    AnnotatorConfig,
    InstrumentationState,
    get_instrumentation_state,
    reset_instrumentation_state,
    set_instrumentation_status,
    set_skip_instrumentation_check,
)
from .constants import (
    DEFAULT_LIBRARY_VERSION,
    DIAGNOSTIC_INFO_KEY,
    INSTRUMENTATION_SOURCE_KEY,
    LIBRARY_NAME_PREFIX,
    MAX_DIAGNOSTIC_VALUE_LENGTH,
    MAX_INSTRUMENTATION_COUNT,
)
from .models import InstrumentationRecord, LogEntry

__all__ = [
    "AnnotatorConfig",
    "DEFAULT_LIBRARY_VERSION",
    "DIAGNOSTIC_INFO_KEY",
    "INSTRUMENTATION_SOURCE_KEY",
    "InstrumentationAnnotator",
    "InstrumentationRecord",
    "InstrumentationState",
    "LIBRARY_NAME_PREFIX",
    "LogEntry",
    "MAX_DIAGNOSTIC_VALUE_LENGTH",
    "MAX_INSTRUMENTATION_COUNT",
    "annotate",
    "create_diagnostic_entry",
    "create_self_record",
    "get_instrumentation_state",
    "populate_instrumentation_info",
    "reset_instrumentation_state",
    "set_instrumentation_status",
    "set_skip_instrumentation_check",
    "truncate_value",
]
