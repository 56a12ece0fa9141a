import logging

import pytest
from opentelemetry.sdk._logs.export import InMemoryLogExporter, SimpleLogRecordProcessor

from logdiag import (
    DIAGNOSTIC_INFO_KEY,
    INSTRUMENTATION_SOURCE_KEY,
    LIBRARY_NAME_PREFIX,
    InstrumentationAnnotator,
    reset_instrumentation_state,
)
from logdiag.config import ENV_SKIP_CHECK
from logdiag.logging_integration import (
    InstrumentationLogFilter,
    configure_otel_logging,
    create_otlp_log_exporter,
)


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture()
def capture():
    handler = _ListHandler()
    logger = logging.getLogger("logdiag-test.capture")
    logger.handlers = []
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    logger.addHandler(handler)
    yield logger, handler
    logger.removeHandler(handler)


def test_filter_builds_annotated_structured_body(capture, state):
    logger, handler = capture
    handler.addFilter(InstrumentationLogFilter(InstrumentationAnnotator(state=state)))

    logger.info("hello %s", "world", extra={"payload": {"order_id": 42}})

    body = handler.records[0].msg
    assert body["message"] == "hello world"
    assert body["severity_text"] == "INFO"
    assert body["logger_name"] == "logdiag-test.capture"
    assert body["order_id"] == 42
    assert body[DIAGNOSTIC_INFO_KEY][INSTRUMENTATION_SOURCE_KEY] == [
        {"name": LIBRARY_NAME_PREFIX, "version": "unknown"}
    ]
    assert not hasattr(handler.records[0], "payload")


def test_filter_respects_disabled_state(capture, state):
    logger, handler = capture
    state.enabled = False
    handler.addFilter(InstrumentationLogFilter(InstrumentationAnnotator(state=state)))

    logger.warning("quiet")

    body = handler.records[0].msg
    assert body["message"] == "quiet"
    assert DIAGNOSTIC_INFO_KEY not in body


def test_filter_keeps_caller_instrumentation_first(capture, state):
    logger, handler = capture
    handler.addFilter(InstrumentationLogFilter(InstrumentationAnnotator(state=state)))
    payload = {
        DIAGNOSTIC_INFO_KEY: {
            INSTRUMENTATION_SOURCE_KEY: [{"name": "nodejs-winston", "version": "4.2.0"}]
        }
    }

    logger.error("boom", extra={"payload": payload})

    sources = handler.records[0].msg[DIAGNOSTIC_INFO_KEY][INSTRUMENTATION_SOURCE_KEY]
    assert [source["name"] for source in sources] == ["nodejs-winston", LIBRARY_NAME_PREFIX]


def test_exported_records_carry_instrumentation_source(state):
    exporter = InMemoryLogExporter()
    setup = configure_otel_logging(
        service_name="annotated-service",
        log_processor=SimpleLogRecordProcessor(exporter),
        annotator=InstrumentationAnnotator(state=state),
        attach_to_root=False,
    )
    logger = logging.getLogger("logdiag-test.otel")
    logger.handlers = []
    setup.configure_logger(logger)

    logger.info("structured log", extra={"tenant": "acme"})
    setup.force_flush()

    exported = exporter.get_finished_logs()
    assert len(exported) == 1
    log_record = exported[0].log_record

    body = log_record.body
    assert body["message"] == "structured log"
    assert body["resource"]["service.name"] == "annotated-service"
    assert body[DIAGNOSTIC_INFO_KEY][INSTRUMENTATION_SOURCE_KEY][0]["name"] == LIBRARY_NAME_PREFIX
    assert dict(log_record.attributes)["tenant"] == "acme"

    setup.shutdown()


def test_configure_requires_a_destination():
    with pytest.raises(ValueError):
        configure_otel_logging(service_name="svc", attach_to_root=False)


def test_exporter_factory_configures_endpoint():
    exporter = create_otlp_log_exporter("http://collector:4318/v1/logs")

    assert getattr(exporter, "_endpoint") == "http://collector:4318/v1/logs"


def test_shutdown_detaches_handler_from_configured_loggers(state):
    annotator = InstrumentationAnnotator(state=state)
    setup = configure_otel_logging(
        service_name="svc",
        log_exporter=InMemoryLogExporter(),
        annotator=annotator,
        attach_to_root=False,
    )
    logger = logging.getLogger("logdiag-test.shutdown")
    logger.handlers = []
    setup.configure_logger(logger)

    assert setup.annotator is annotator
    assert setup.handler in logger.handlers

    setup.shutdown()

    assert setup.handler not in logger.handlers
    assert setup.loggers == []


def test_default_filter_follows_environment_skip_signal(capture, monkeypatch):
    logger, handler = capture
    monkeypatch.setenv(ENV_SKIP_CHECK, "yes")
    reset_instrumentation_state()
    handler.addFilter(InstrumentationLogFilter())

    logger.info("nested")

    assert DIAGNOSTIC_INFO_KEY not in handler.records[0].msg
