import logging

from glslcompose import utils
from glslcompose.utils import env_flag, logger


def test_env_flag(monkeypatch):
    monkeypatch.delenv("GLSLCOMPOSE_TEST_FLAG", raising=False)
    assert not env_flag("GLSLCOMPOSE_TEST_FLAG")
    assert env_flag("GLSLCOMPOSE_TEST_FLAG", "1")

    for value in ["1", "true", "yes", "on"]:
        monkeypatch.setenv("GLSLCOMPOSE_TEST_FLAG", value)
        assert env_flag("GLSLCOMPOSE_TEST_FLAG")
    for value in ["0", "false", "False", "no", ""]:
        monkeypatch.setenv("GLSLCOMPOSE_TEST_FLAG", value)
        assert not env_flag("GLSLCOMPOSE_TEST_FLAG")


def test_log_level(monkeypatch, caplog):
    level = logger.level
    try:
        monkeypatch.setenv("GLSLCOMPOSE_LOG_LEVEL", "debug")
        utils._set_log_level()
        assert logger.level == logging.DEBUG

        monkeypatch.setenv("GLSLCOMPOSE_LOG_LEVEL", "15")
        utils._set_log_level()
        assert logger.level == 15

        monkeypatch.setenv("GLSLCOMPOSE_LOG_LEVEL", "loud")
        with caplog.at_level(logging.WARNING, logger="glslcompose"):
            utils._set_log_level()
            assert logger.level == logging.WARNING
        assert "Invalid glslcompose log level: loud" in caplog.text
    finally:
        logger.setLevel(level)
