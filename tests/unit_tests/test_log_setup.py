import logging

import pytest

from shield_guard.utils.logger import (
    DEFAULT_PARENT_LOGGER,
    ColorFormatter,
    LoggerManager,
    get_logger,
    get_ops_logger,
)


@pytest.fixture
def manager():
    mgr = LoggerManager()
    yield mgr
    logging.getLogger(mgr.parent_name).handlers.clear()


def test_child_loggers_use_parent_prefix(manager):
    logger = manager.get_logger("throttling.manager")
    assert logger.name == f"{DEFAULT_PARENT_LOGGER}.throttling.manager"
    assert manager.get_logger("throttling.manager") is logger


def test_custom_parent_logger(manager):
    manager.configure({"parent_logger": "edge", "level": "DEBUG"})
    logger = manager.get_logger("core.engine")
    assert logger.name == "edge.core.engine"
    parent = logging.getLogger("edge")
    assert parent.level == logging.DEBUG
    assert parent.propagate is False


def test_reconfigure_does_not_duplicate_handlers(manager):
    manager.configure({"enable_console": True})
    manager.configure({"enable_console": True})
    assert len(logging.getLogger(DEFAULT_PARENT_LOGGER).handlers) == 1


def test_console_can_be_disabled(manager):
    manager.configure({"enable_console": False})
    assert logging.getLogger(DEFAULT_PARENT_LOGGER).handlers == []


def test_file_logging(manager, tmp_path):
    log_file = tmp_path / "shield.log"
    manager.configure({"enable_console": False, "enable_file": True, "file_path": str(log_file)})
    manager.get_logger("test").warning("written to file")
    for handler in logging.getLogger(DEFAULT_PARENT_LOGGER).handlers:
        handler.flush()
    assert "written to file" in log_file.read_text()
    for handler in logging.getLogger(DEFAULT_PARENT_LOGGER).handlers:
        handler.close()


def test_set_level(manager):
    manager.configure({"level": "INFO"})
    manager.set_level("ERROR")
    assert logging.getLogger(DEFAULT_PARENT_LOGGER).level == logging.ERROR


def test_color_formatter():
    record = logging.LogRecord("x", logging.ERROR, __file__, 1, "boom", None, None)
    colored = ColorFormatter("%(levelname)s %(message)s", use_color=True).format(record)
    plain = ColorFormatter("%(levelname)s %(message)s", use_color=False).format(record)
    assert plain == "ERROR boom"
    assert colored.startswith("\033[91m")
    assert colored.endswith("\033[0m")


def test_module_helpers():
    assert get_logger("reputation.manager").name.endswith(".reputation.manager")
    assert get_ops_logger().name.endswith(".ops")
