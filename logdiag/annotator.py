"""Annotate log entries with the instrumentation libraries that produced them.

Each annotated entry carries, under
``payload[DIAGNOSTIC_INFO_KEY][INSTRUMENTATION_SOURCE_KEY]``, an ordered list
of at most :data:`~logdiag.constants.MAX_INSTRUMENTATION_COUNT` ``{name,
version}`` mappings.  Records already present keep their order; the record
describing this library is appended last unless a record with the same name is
already there.

Examples
--------
>>> from logdiag.config import InstrumentationState
>>> from logdiag.models import LogEntry
>>> annotator = InstrumentationAnnotator(state=InstrumentationState())
>>> entry, annotated = annotator.annotate(LogEntry())
>>> annotated, entry.payload[DIAGNOSTIC_INFO_KEY][INSTRUMENTATION_SOURCE_KEY]
(True, [{'name': 'nodejs', 'version': 'unknown'}])
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, MutableMapping, Optional, Tuple

from .config import AnnotatorConfig, InstrumentationState, get_instrumentation_state
from .constants import (
    DIAGNOSTIC_INFO_KEY,
    INSTRUMENTATION_SOURCE_KEY,
    LIBRARY_NAME_PREFIX,
    MAX_DIAGNOSTIC_VALUE_LENGTH,
    MAX_INSTRUMENTATION_COUNT,
    TRUNCATION_MARKER,
)
from .models import InstrumentationRecord, LogEntry

LOGGER = logging.getLogger(__name__)


def truncate_value(value: str, max_length: int = MAX_DIAGNOSTIC_VALUE_LENGTH) -> str:
    """Cut ``value`` to ``max_length`` characters and mark the cut with ``*``."""

    if len(value) > max_length:
        return value[:max_length] + TRUNCATION_MARKER
    return value


def _ensure_mapping(container: MutableMapping[str, Any], key: str) -> MutableMapping[str, Any]:
    value = container.get(key)
    if isinstance(value, MutableMapping):
        return value
    normalized: MutableMapping[str, Any] = dict(value) if isinstance(value, Mapping) else {}
    container[key] = normalized
    return normalized


def _entry_payload(entry: Any) -> MutableMapping[str, Any]:
    payload = getattr(entry, "payload", None)
    if isinstance(payload, MutableMapping):
        return payload
    if payload is not None and not isinstance(payload, Mapping):
        LOGGER.debug("Replacing non-structured payload of type %s", type(payload).__name__)
    normalized: MutableMapping[str, Any] = dict(payload) if isinstance(payload, Mapping) else {}
    entry.payload = normalized
    return normalized


def _has_instrumentation_source(entry: Any) -> bool:
    payload = getattr(entry, "payload", None)
    if not isinstance(payload, MutableMapping):
        return False
    diagnostic = payload.get(DIAGNOSTIC_INFO_KEY)
    if not isinstance(diagnostic, MutableMapping):
        return False
    return INSTRUMENTATION_SOURCE_KEY in diagnostic


class InstrumentationAnnotator:
    """Insert or update the instrumentation source list of log entries.

    Parameters
    ----------
    config:
        Settings for this annotator, read from the environment when omitted.
        When given without ``state`` a private :class:`InstrumentationState`
        is derived from it.
    state:
        Flags consulted on every call.  Defaults to the process-wide state
        toggled by :func:`logdiag.config.set_instrumentation_status`.
    """

    def __init__(
        self,
        config: Optional[AnnotatorConfig] = None,
        state: Optional[InstrumentationState] = None,
    ) -> None:
        self._config = config or AnnotatorConfig.from_env()
        if state is None:
            state = (
                InstrumentationState.from_config(config)
                if config is not None
                else get_instrumentation_state()
            )
        self._state = state

    @property
    def config(self) -> AnnotatorConfig:
        return self._config

    @property
    def state(self) -> InstrumentationState:
        return self._state

    def create_self_record(
        self, name: Optional[str] = None, version: Optional[str] = None
    ) -> InstrumentationRecord:
        """Build the record describing this library.

        A missing name, or one that does not start with
        :data:`~logdiag.constants.LIBRARY_NAME_PREFIX`, is replaced by the
        prefix.  A missing version falls back to the configured library
        version.  Both values are truncated.
        """

        if not name or not name.startswith(LIBRARY_NAME_PREFIX):
            name = LIBRARY_NAME_PREFIX
        if version is None:
            version = self._config.library_version
        return InstrumentationRecord(name=truncate_value(name), version=truncate_value(version))

    def annotate(self, entry: Any) -> Tuple[Any, bool]:
        """Add this library to the instrumentation source list of ``entry``.

        The entry is mutated in place and returned together with a flag that
        is ``True`` whenever annotation ran, even when the list did not change.
        """

        if not self._state.active:
            LOGGER.debug("Instrumentation annotation disabled; entry left untouched")
            return entry, False

        payload = _entry_payload(entry)
        diagnostic = _ensure_mapping(payload, DIAGNOSTIC_INFO_KEY)
        sources = diagnostic.get(INSTRUMENTATION_SOURCE_KEY)
        merged = self._merge_sources(
            sources if isinstance(sources, list) else [], self.create_self_record()
        )
        if isinstance(sources, list):
            sources[:] = merged
        else:
            diagnostic[INSTRUMENTATION_SOURCE_KEY] = merged
        return entry, True

    def create_diagnostic_entry(
        self, name: Optional[str] = None, version: Optional[str] = None
    ) -> LogEntry:
        """Return a stand-alone INFO entry announcing this library."""

        record = self.create_self_record(name, version)
        return LogEntry(
            severity="INFO",
            payload={DIAGNOSTIC_INFO_KEY: {INSTRUMENTATION_SOURCE_KEY: [record.to_dict()]}},
        )

    def populate_instrumentation_info(self, entries: Any) -> Tuple[List[Any], bool]:
        """Annotate a batch of entries about to be written.

        Entries that already carry an instrumentation source list are updated
        in place.  When none does, a diagnostic entry is appended to the batch,
        at most once per state.  The flag reports whether any instrumentation
        info was added by this call.
        """

        batch: List[Any] = [entries] if hasattr(entries, "payload") else list(entries or ())
        if not self._state.active:
            return batch, False

        added = False
        for entry in batch:
            if _has_instrumentation_source(entry):
                self.annotate(entry)
                added = True
        if not added and not self._state.diagnostic_written:
            batch.append(self.create_diagnostic_entry())
            added = True
        self._state.diagnostic_written = True
        return batch, added

    def _merge_sources(
        self, existing: Iterable[Any], self_record: InstrumentationRecord
    ) -> List[dict]:
        records: List[InstrumentationRecord] = []
        seen = set()
        for raw in existing:
            record = InstrumentationRecord.from_mapping(raw)
            if record is None or not record.name.startswith(LIBRARY_NAME_PREFIX):
                LOGGER.debug("Dropping invalid instrumentation record %r", raw)
                continue
            record = InstrumentationRecord(
                name=truncate_value(record.name), version=truncate_value(record.version)
            )
            if record.name in seen:
                continue
            seen.add(record.name)
            records.append(record)

        self_names = {LIBRARY_NAME_PREFIX, self_record.name}
        position = next(
            (index for index, record in enumerate(records) if record.name in self_names),
            None,
        )
        if position is None:
            records = records[: MAX_INSTRUMENTATION_COUNT - 1] + [self_record]
        elif position >= MAX_INSTRUMENTATION_COUNT:
            records = records[: MAX_INSTRUMENTATION_COUNT - 1] + [records[position]]
        else:
            records = records[:MAX_INSTRUMENTATION_COUNT]
        discarded = len(seen) + (1 if position is None else 0) - len(records)
        if discarded > 0:
            LOGGER.debug(
                "Discarded %d instrumentation records over the limit of %d",
                discarded,
                MAX_INSTRUMENTATION_COUNT,
            )
        return [record.to_dict() for record in records]


def create_self_record(
    name: Optional[str] = None, version: Optional[str] = None
) -> InstrumentationRecord:
    """Module level shortcut using the process-wide state."""

    return InstrumentationAnnotator().create_self_record(name, version)


def annotate(entry: Any) -> Tuple[Any, bool]:
    """Module level shortcut using the process-wide state."""

    return InstrumentationAnnotator().annotate(entry)


def create_diagnostic_entry(name: Optional[str] = None, version: Optional[str] = None) -> LogEntry:
    return InstrumentationAnnotator().create_diagnostic_entry(name, version)


def populate_instrumentation_info(entries: Any) -> Tuple[List[Any], bool]:
    return InstrumentationAnnotator().populate_instrumentation_info(entries)


__all__ = [
    "InstrumentationAnnotator",
    "annotate",
    "create_diagnostic_entry",
    "create_self_record",
    "populate_instrumentation_info",
    "truncate_value",
]
