"""Tests for log formatting and request context."""

import json
import logging

from campus.observability.logging import (
    ConsoleFormatter,
    JsonFormatter,
    LogContext,
    current_context,
    request_id_var,
    tenant_id_var,
)


def make_record(msg: str = "Cleared %s", *args: object, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="campus.cache.manager",
        level=logging.ERROR,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=args,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:
    def test_sets_and_resets(self) -> None:
        with LogContext(tenant_id="T1", route_name="courses.update"):
            assert current_context() == {"tenant_id": "T1", "route_name": "courses.update"}
        assert current_context() == {}

    def test_nested_restores_outer(self) -> None:
        with LogContext(tenant_id="T1"):
            with LogContext(tenant_id="T2"):
                assert tenant_id_var.get() == "T2"
            assert tenant_id_var.get() == "T1"

    def test_unknown_and_none_values_ignored(self) -> None:
        with LogContext(tenant_id=None, colour="blue", request_id=42):
            assert current_context() == {"request_id": "42"}


class TestJsonFormatter:
    def test_message_and_extras(self) -> None:
        record = make_record(
            "Cleared %s", "course 1", domain="cache_invalidation", kind="course", error="boom"
        )
        data = json.loads(JsonFormatter().format(record))

        assert data["message"] == "Cleared course 1"
        assert data["level"] == "ERROR"
        assert data["logger"] == "campus.cache.manager"
        assert data["domain"] == "cache_invalidation"
        assert data["kind"] == "course"
        assert data["error"] == "boom"

    def test_includes_context(self) -> None:
        token = request_id_var.set("req-1")
        try:
            with LogContext(tenant_id="T1"):
                data = json.loads(JsonFormatter().format(make_record()))
        finally:
            request_id_var.reset(token)

        assert data["request_id"] == "req-1"
        assert data["tenant_id"] == "T1"

    def test_unserializable_extra_stringified(self) -> None:
        data = json.loads(JsonFormatter().format(make_record(kinds={"course"})))
        assert data["kinds"] == "{'course'}"

    def test_exception_info(self) -> None:
        try:
            raise ValueError("bad key")
        except ValueError:
            import sys

            record = make_record()
            record.exc_info = sys.exc_info()
        data = json.loads(JsonFormatter().format(record))

        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "bad key"


class TestConsoleFormatter:
    def test_context_suffix(self) -> None:
        with LogContext(tenant_id="T1", route_name="courses.update"):
            line = ConsoleFormatter(use_colors=False).format(make_record("Cleared %s", "x"))

        assert "| ERROR    | campus.cache.manager | Cleared x" in line
        assert line.endswith("| tenant=T1 route=courses.update")

    def test_no_suffix_without_context(self) -> None:
        line = ConsoleFormatter(use_colors=False).format(make_record("plain"))
        assert line.endswith("| plain")
