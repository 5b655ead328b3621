import io
import logging

import pytest

from rmqclient import log
from rmqclient.log import DefaultLogger, Logger


class _Recorder(Logger):
    def __init__(self):
        self.calls = []

    def debug(self, msg, fields):
        self.calls.append(("debug", msg, fields))

    def info(self, msg, fields):
        self.calls.append(("info", msg, fields))

    def warning(self, msg, fields):
        self.calls.append(("warning", msg, fields))

    def error(self, msg, fields):
        self.calls.append(("error", msg, fields))

    def fatal(self, msg, fields):
        self.calls.append(("fatal", msg, fields))

    def level(self, level):
        self.calls.append(("level", level))

    def output_path(self, path):
        self.calls.append(("output_path", path))


@pytest.fixture
def recorder():
    rec = _Recorder()
    log.set_logger(rec)
    yield rec
    log.set_logger(DefaultLogger())


def test_info_writes_message_and_fields():
    stream = io.StringIO()
    lg = DefaultLogger(stream=stream)
    lg.info("hello", {"topic": "t1"})
    out = stream.getvalue()
    assert "hello" in out
    assert "topic=t1" in out
    assert "INFO" in out


def test_fields_are_sorted_by_key():
    stream = io.StringIO()
    lg = DefaultLogger(stream=stream)
    lg.info("m", {"b": 1, "a": 2})
    assert "m a=2 b=1" in stream.getvalue()


def test_debug_suppressed_at_info_level():
    stream = io.StringIO()
    lg = DefaultLogger(stream=stream)
    lg.debug("hidden", None)
    assert stream.getvalue() == ""


def test_level_debug_enables_debug_output():
    stream = io.StringIO()
    lg = DefaultLogger(stream=stream)
    lg.level("DEBUG")
    lg.debug("shown", None)
    assert lg.threshold == logging.DEBUG
    assert "shown" in stream.getvalue()


def test_level_warn_filters_info():
    stream = io.StringIO()
    lg = DefaultLogger(stream=stream, level="warn")
    lg.info("quiet", None)
    lg.warning("loud", None)
    out = stream.getvalue()
    assert "quiet" not in out
    assert "loud" in out


def test_unknown_level_falls_back_to_info():
    lg = DefaultLogger(stream=io.StringIO(), level="error")
    lg.level("verbose")
    assert lg.threshold == logging.INFO


def test_empty_message_and_fields_is_ignored():
    stream = io.StringIO()
    lg = DefaultLogger(stream=stream)
    lg.error("", {})
    lg.info("", None)
    assert stream.getvalue() == ""


def test_fatal_logs_and_exits():
    stream = io.StringIO()
    lg = DefaultLogger(stream=stream)
    with pytest.raises(SystemExit) as excinfo:
        lg.fatal("boom", None)
    assert excinfo.value.code == 1
    assert "boom" in stream.getvalue()


def test_fatal_with_nothing_does_not_exit():
    stream = io.StringIO()
    lg = DefaultLogger(stream=stream)
    assert lg.fatal("", None) is None
    assert stream.getvalue() == ""


def test_output_path_appends_to_file(tmp_path):
    target = tmp_path / "client.log"
    target.write_text("existing\n", encoding="utf-8")
    lg = DefaultLogger(stream=io.StringIO())
    lg.output_path(str(target))
    lg.info("to file", None)
    content = target.read_text(encoding="utf-8")
    assert content.startswith("existing\n")
    assert "to file" in content


def test_output_path_to_directory_raises(tmp_path):
    lg = DefaultLogger(stream=io.StringIO())
    with pytest.raises(OSError):
        lg.output_path(str(tmp_path))


def test_module_info_skips_empty(recorder):
    log.info("", {})
    log.info("x", {})
    assert recorder.calls == [("info", "x", {})]


def test_module_warning_skips_empty(recorder):
    log.warning("", None)
    log.warning("", {"k": "v"})
    assert recorder.calls == [("warning", "", {"k": "v"})]


def test_module_error_debug_fatal_always_forward(recorder):
    log.error("", None)
    log.debug("d", None)
    log.fatal("f", {"a": 1})
    assert recorder.calls == [
        ("error", "", None),
        ("debug", "d", None),
        ("fatal", "f", {"a": 1}),
    ]


def test_set_log_level_ignores_empty(recorder):
    log.set_log_level("")
    log.set_log_level("debug")
    assert recorder.calls == [("level", "debug")]


def test_set_output_path_ignores_empty(recorder):
    assert log.set_output_path("") is None
    log.set_output_path("out.log")
    assert recorder.calls == [("output_path", "out.log")]