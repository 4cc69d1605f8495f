from __future__ import annotations

import logging

import pytest
from fastapi import FastAPI
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

from crewlink.core.config import Settings
from crewlink.core.telemetry import _build_exporter, setup_api_telemetry, shutdown_api_telemetry


@pytest.fixture
def no_otlp_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", raising=False)
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)


def test_disabled_telemetry_leaves_app_uninstrumented() -> None:
    app = FastAPI()

    runtime = setup_api_telemetry(app, Settings(otel_enabled=False))

    assert runtime.enabled is False
    assert runtime.provider is None
    shutdown_api_telemetry(app, runtime)


def test_exporter_is_skipped_without_endpoint(no_otlp_env) -> None:
    assert _build_exporter(Settings()) is None


def test_exporter_uses_configured_endpoint(no_otlp_env) -> None:
    exporter = _build_exporter(Settings(otel_exporter_otlp_endpoint="http://collector:4318/v1/traces"))

    assert isinstance(exporter, OTLPSpanExporter)


def test_exporter_falls_back_to_standard_env(no_otlp_env, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector:4318")

    assert isinstance(_build_exporter(Settings()), OTLPSpanExporter)


def test_log_records_carry_trace_ids(caplog: pytest.LogCaptureFixture) -> None:
    setup_api_telemetry(FastAPI(), Settings(otel_enabled=False))

    with caplog.at_level(logging.INFO, logger="crewlink.test"):
        logging.getLogger("crewlink.test").info("hello")

    record = caplog.records[-1]
    assert record.trace_id == "0" * 32
    assert record.span_id == "0" * 16
