from moviefinder.logger import LOGGER_NAME, create_log_config, logger


def test_logger_name():
    assert logger.name == LOGGER_NAME


def test_log_config_level():
    config = create_log_config("DEBUG")
    assert list(config["loggers"]) == [LOGGER_NAME]
    assert config["loggers"][LOGGER_NAME]["level"] == "DEBUG"
    assert "logger_name" not in config
