import logging

from thinkfast.logging_utils import configure_logging, resolve_level


def test_configure_logging_honours_env_override(monkeypatch, tmp_path):
    target_dir = tmp_path / "logs"
    monkeypatch.setenv("THINKFAST_LOG_DIR", str(target_dir))

    log_path = configure_logging("unit_test", include_console=False)
    logging.getLogger(__name__).info("env override works")

    assert log_path == target_dir / "unit_test.log"
    assert "env override works" in log_path.read_text()


def test_reconfiguring_stops_writing_to_previous_log(tmp_path):
    first_path = configure_logging("first_run", log_dir=tmp_path / "a", include_console=False)
    logging.getLogger(__name__).info("first entry")

    second_path = configure_logging("second_run", log_dir=tmp_path / "b", include_console=False)
    logging.getLogger(__name__).info("second entry")

    assert "first entry" in first_path.read_text()
    assert "second entry" in second_path.read_text()
    assert "second entry" not in first_path.read_text()


def test_transfer_loggers_are_quietened(tmp_path):
    configure_logging("quiet", level="DEBUG", log_dir=tmp_path, include_console=False)
    assert logging.getLogger("httpx").level == logging.WARNING


def test_resolve_level(monkeypatch):
    monkeypatch.setenv("THINKFAST_LOG_LEVEL", "debug")
    assert resolve_level(None) == logging.DEBUG
    assert resolve_level("warning") == logging.WARNING
    assert resolve_level(logging.ERROR) == logging.ERROR
    assert resolve_level("chatty") == logging.INFO
