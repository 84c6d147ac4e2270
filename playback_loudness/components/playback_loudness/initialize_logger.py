import logging
import sys
from logging.handlers import RotatingFileHandler

from playback_loudness.components.playback_loudness.library.configuration.model.configuration import \
    PlaybackLoudnessConfigurationModel

TRACE: int = 5
logging.addLevelName(TRACE, "TRACE")

LOGGER_ROOT: str = "PlaybackLoudness"

_FORMAT: str = "%(asctime)s [%(levelname)-7s] [%(name)-65.65s] %(message)s"


def get_logger(configuration: PlaybackLoudnessConfigurationModel) -> logging.Logger:
    min_level: int = logging.INFO

    if configuration.development.debug:
        min_level = logging.DEBUG

        if configuration.development.verbose:
            min_level = TRACE

    logger = logging.getLogger(LOGGER_ROOT)
    logger.setLevel(min_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(_FORMAT)

    log_directory = configuration.paths.log_directory
    log_directory.mkdir(parents=True, exist_ok=True)
    file_output = RotatingFileHandler(
        log_directory / "playback_loudness.log",
        maxBytes=2_000_000,
        backupCount=10,
        encoding="utf-8",
    )
    file_output.setFormatter(formatter)

    console_output = logging.StreamHandler(sys.stderr)
    console_output.setFormatter(formatter)

    logger.addHandler(file_output)
    logger.addHandler(console_output)

    return logger
