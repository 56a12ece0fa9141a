"""Configuration and process-wide state for instrumentation annotation.

:class:`AnnotatorConfig` is the serialisable view of the settings, usually
loaded from environment variables.  :class:`InstrumentationState` holds the
mutable flags consulted on every annotation.  A module level default state
backs :func:`set_instrumentation_status` and friends; annotators built with
an explicit state do not share it.

Examples
--------
>>> config = AnnotatorConfig.from_env({"LOGDIAG_INSTRUMENTATION_ENABLED": "off"})
>>> config.enabled
False
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .constants import DEFAULT_LIBRARY_VERSION

ENV_ENABLED = "LOGDIAG_INSTRUMENTATION_ENABLED"
ENV_SKIP_CHECK = "LOGDIAG_SKIP_INSTRUMENTATION_CHECK"
ENV_LIBRARY_VERSION = "LOGDIAG_LIBRARY_VERSION"


@dataclass(slots=True)
class AnnotatorConfig:
    """Settings controlling whether and how entries are annotated."""

    enabled: bool = True
    skip_instrumentation_check: bool = False
    library_version: str = DEFAULT_LIBRARY_VERSION

    @staticmethod
    def _parse_bool(value: str | None, default: bool) -> bool:
        if value is None:
            return default
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
        return default

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AnnotatorConfig":
        """Create a configuration instance from environment variables."""

        mapping = env if env is not None else os.environ
        version = (mapping.get(ENV_LIBRARY_VERSION) or "").strip()
        return cls(
            enabled=cls._parse_bool(mapping.get(ENV_ENABLED), True),
            skip_instrumentation_check=cls._parse_bool(mapping.get(ENV_SKIP_CHECK), False),
            library_version=version or DEFAULT_LIBRARY_VERSION,
        )

    def into_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "skip_instrumentation_check": self.skip_instrumentation_check,
            "library_version": self.library_version,
        }


@dataclass
class InstrumentationState:
    """Mutable flags read by the annotator on every call.

    ``skip_instrumentation_check`` is the signal raised by an enclosing,
    already instrumented context so that nested clients do not annotate a
    second time.  ``diagnostic_written`` records whether the stand-alone
    diagnostic entry has been emitted by
    :func:`logdiag.annotator.populate_instrumentation_info`.
    """

    enabled: bool = True
    skip_instrumentation_check: bool = False
    diagnostic_written: bool = False

    @classmethod
    def from_config(cls, config: AnnotatorConfig) -> "InstrumentationState":
        return cls(
            enabled=config.enabled,
            skip_instrumentation_check=config.skip_instrumentation_check,
        )

    @property
    def active(self) -> bool:
        return self.enabled and not self.skip_instrumentation_check

    def reset(self, config: Optional[AnnotatorConfig] = None) -> None:
        """Restore the flags from ``config``, or the built-in defaults."""

        config = config or AnnotatorConfig()
        self.enabled = config.enabled
        self.skip_instrumentation_check = config.skip_instrumentation_check
        self.diagnostic_written = False


# Seeded from the environment so that an enclosing process can export the
# skip signal before this one starts.
_DEFAULT_STATE = InstrumentationState.from_config(AnnotatorConfig.from_env())


def get_instrumentation_state() -> InstrumentationState:
    """Return the process-wide state shared by annotators without their own."""

    return _DEFAULT_STATE


def set_instrumentation_status(enabled: bool) -> None:
    """Enable or disable annotation for every subsequent call."""

    _DEFAULT_STATE.enabled = bool(enabled)


def set_skip_instrumentation_check(skip: bool) -> None:
    """Raise or clear the signal suppressing annotation in nested contexts."""

    _DEFAULT_STATE.skip_instrumentation_check = bool(skip)


def reset_instrumentation_state() -> None:
    """Re-seed the process-wide state from the environment (used by tests)."""

    _DEFAULT_STATE.reset(AnnotatorConfig.from_env())


__all__ = [
    "AnnotatorConfig",
    "ENV_ENABLED",
    "ENV_LIBRARY_VERSION",
    "ENV_SKIP_CHECK",
    "InstrumentationState",
    "get_instrumentation_state",
    "reset_instrumentation_state",
    "set_instrumentation_status",
    "set_skip_instrumentation_check",
]
