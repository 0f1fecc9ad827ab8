import json
import logging

from tonewatch.errors import AudioDecodeError, FFmpegNotFoundError, ToneSetParseError
from tonewatch.util.event_log import JsonlEventLogger, LoggingEventLogger
from tonewatch.util.exit_codes import ExitCode
from tonewatch.util.logging import call_context, configure_logging, get_logger


def test_call_context_tags_json_records(tmp_path) -> None:
    log_path = tmp_path / "tonewatch.jsonl"
    configure_logging(level="INFO", json_file=str(log_path), use_color=False)
    logger = get_logger("tests.logging")
    with call_context("call-42"):
        logger.info("inside")
    logger.info("outside")
    for handler in logging.getLogger("tonewatch").handlers:
        handler.flush()
    rows = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert [(row["message"], row.get("call_id")) for row in rows] == [("inside", "call-42"), ("outside", None)]
    assert rows[0]["logger"] == "tonewatch.tests.logging"
    configure_logging(level="WARNING")


def test_jsonl_event_logger_writes_call_scoped_events(tmp_path) -> None:
    events = JsonlEventLogger(tmp_path / "events" / "run.jsonl", mirror_paths=[tmp_path / "mirror.jsonl"])
    events.start_call("c1", path="c1.m4a")
    events.log("tone_match", frequency_hz=350.5, tone_type="A")
    rows = [json.loads(line) for line in (tmp_path / "events" / "run.jsonl").read_text().splitlines()]
    assert [row["event"] for row in rows] == ["call_start", "tone_match"]
    assert all(row["call_id"] == "c1" and row["run_id"] == events.run_id for row in rows)
    assert rows[1]["frequency_hz"] == 350.5
    assert len((tmp_path / "mirror.jsonl").read_text().splitlines()) == 2


def test_logging_event_logger_is_quiet_above_its_level(caplog) -> None:
    logger = logging.getLogger("tonewatch_event_port_test")
    LoggingEventLogger(logger, level=logging.DEBUG).log("noise_gate", noise_floor_db=-51.234)
    with caplog.at_level(logging.DEBUG, logger="tonewatch_event_port_test"):
        LoggingEventLogger(logger, level=logging.DEBUG).log("noise_gate", noise_floor_db=-51.234)
    assert [r.getMessage() for r in caplog.records] == ["noise_gate noise_floor_db=-51.23"]


def test_exit_codes_follow_the_exception_type() -> None:
    assert ExitCode.for_exception(FFmpegNotFoundError("missing")) == ExitCode.FFMPEG_MISSING
    assert ExitCode.for_exception(AudioDecodeError("bad")) == ExitCode.DECODE_FAILED
    assert ExitCode.for_exception(FileNotFoundError("gone")) == ExitCode.DECODE_FAILED
    assert ExitCode.for_exception(ToneSetParseError("nope")) == ExitCode.TONE_SET_INVALID
    assert ExitCode.for_exception(RuntimeError("boom")) == ExitCode.GENERAL_ERROR
    assert ExitCode.message(ExitCode.FFMPEG_MISSING) == "ffmpeg not available"
    assert ExitCode.message(99) == "Unknown exit code 99"
