"""Carry instrumentation annotations through stdlib logging into OpenTelemetry."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from opentelemetry.exporter.otlp.proto.http import Compression
from opentelemetry.exporter.otlp.proto.http._log_exporter import (
    OTLPLogExporter as HTTPOtLPLogExporter,
)
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler, LogRecordProcessor
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor, LogExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource

from .annotator import InstrumentationAnnotator
from .models import LogEntry

# Attribute set by callers through ``extra={"payload": {...}}``.
PAYLOAD_RECORD_FIELD = "payload"

_STRUCTURED_MARKER = "_logdiag_structured"
_OWN_LOGGER_PREFIX = __name__.split(".")[0]


class InstrumentationLogFilter(logging.Filter):
    """Turn log records into structured bodies carrying instrumentation info."""

    def __init__(
        self,
        annotator: Optional[InstrumentationAnnotator] = None,
        resource: Optional[Resource] = None,
    ) -> None:
        super().__init__()
        self._annotator = annotator or InstrumentationAnnotator()
        self._resource_attributes: Dict[str, object] = (
            dict(resource.attributes) if resource is not None else {}
        )

    @property
    def annotator(self) -> InstrumentationAnnotator:
        return self._annotator

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if getattr(record, _STRUCTURED_MARKER, False):
            return True
        # Our own debug output must not be annotated again while it is emitted.
        if record.name == _OWN_LOGGER_PREFIX or record.name.startswith(_OWN_LOGGER_PREFIX + "."):
            return True

        formatted_message = record.getMessage()
        payload = record.__dict__.pop(PAYLOAD_RECORD_FIELD, None)

        entry = LogEntry(
            severity=record.levelname,
            payload=dict(payload) if isinstance(payload, Mapping) else None,
            log_name=record.name,
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc),
        )
        self._annotator.annotate(entry)

        structured_body: Dict[str, Any] = {}
        if isinstance(entry.payload, Mapping):
            structured_body.update(entry.payload)
        structured_body.update(
            {
                "timestamp": entry.timestamp.isoformat(),
                "severity_text": record.levelname,
                "logger_name": record.name,
                "message": formatted_message,
            }
        )
        if self._resource_attributes:
            structured_body["resource"] = dict(self._resource_attributes)

        record.msg = structured_body
        record.args = None
        record.message = formatted_message
        record.__dict__[_STRUCTURED_MARKER] = True

        service_name = self._resource_attributes.get(SERVICE_NAME)
        if service_name is not None:
            record.__dict__["service.name"] = service_name
        return True


@dataclass
class LoggingSetup:
    """Annotated OpenTelemetry log pipeline returned by :func:`configure_otel_logging`."""

    logger_provider: LoggerProvider
    handler: LoggingHandler
    log_processor: LogRecordProcessor
    log_filter: InstrumentationLogFilter
    resource: Resource
    attached_to_root: bool
    loggers: List[logging.Logger] = field(default_factory=list)

    @property
    def annotator(self) -> InstrumentationAnnotator:
        return self.log_filter.annotator

    def configure_logger(self, logger: logging.Logger) -> logging.Logger:
        """Route *logger* through the annotated handler only."""

        if self.handler not in logger.handlers:
            logger.addHandler(self.handler)
            self.loggers.append(logger)
        logger.setLevel(self.handler.level)
        logger.propagate = False
        return logger

    def force_flush(self) -> None:
        self.logger_provider.force_flush()

    def shutdown(self) -> None:
        for logger in self.loggers:
            logger.removeHandler(self.handler)
        self.loggers.clear()
        if self.attached_to_root:
            logging.getLogger().removeHandler(self.handler)
        self.logger_provider.shutdown()


def create_otlp_log_exporter(
    endpoint: str,
    *,
    headers: Optional[Mapping[str, str]] = None,
    compression: Compression = Compression.Gzip,
) -> LogExporter:
    return HTTPOtLPLogExporter(
        endpoint=endpoint,
        headers=dict(headers) if headers else None,
        compression=compression,
    )


def configure_otel_logging(
    *,
    service_name: str,
    endpoint: Optional[str] = None,
    resource_attributes: Optional[Mapping[str, object]] = None,
    log_exporter: Optional[LogExporter] = None,
    log_processor: Optional[LogRecordProcessor] = None,
    annotator: Optional[InstrumentationAnnotator] = None,
    log_level: int = logging.INFO,
    attach_to_root: bool = True,
) -> LoggingSetup:
    """Configure an OpenTelemetry log pipeline whose records are annotated.

    Either ``endpoint``, ``log_exporter`` or ``log_processor`` must be given.
    """

    if endpoint is None and log_exporter is None and log_processor is None:
        raise ValueError("an endpoint, a log exporter or a log processor is required")

    attributes: Dict[str, object] = {SERVICE_NAME: service_name}
    if resource_attributes:
        attributes.update(resource_attributes)

    resource = Resource.create(attributes)

    logger_provider = LoggerProvider(resource=resource)

    processor = log_processor
    if processor is None:
        exporter = log_exporter or create_otlp_log_exporter(endpoint)  # type: ignore[arg-type]
        processor = BatchLogRecordProcessor(exporter)
    logger_provider.add_log_record_processor(processor)

    log_filter = InstrumentationLogFilter(annotator, resource)
    handler = LoggingHandler(level=log_level, logger_provider=logger_provider)
    handler.addFilter(log_filter)

    if attach_to_root:
        root_logger = logging.getLogger()
        if handler not in root_logger.handlers:
            root_logger.addHandler(handler)
        if root_logger.level > log_level:
            root_logger.setLevel(log_level)

    return LoggingSetup(
        logger_provider=logger_provider,
        handler=handler,
        log_processor=processor,
        log_filter=log_filter,
        resource=resource,
        attached_to_root=attach_to_root,
    )


__all__ = [
    "InstrumentationLogFilter",
    "LoggingSetup",
    "PAYLOAD_RECORD_FIELD",
    "configure_otel_logging",
    "create_otlp_log_exporter",
]
