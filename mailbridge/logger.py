"""
Bridge between a mail engine's diagnostic log lines and Python logging.

Engines report what their transport is doing as short lines whose first two
characters classify the entry::

    ++ transport started
    >> command sent
    << response received
    !! error message

``EngineLogger`` maps these prefixes onto logging levels and forwards every
line to the ``mailbridge.logger.EngineLogger.add`` logger. To collect them,
enable engine logging and route that logger::

    MAILBRIDGE = {
        "ENABLE_ENGINE_LOGGING": True,
    }

    LOGGING = {
        "version": 1,
        "handlers": {"file": {"class": "logging.FileHandler", "filename": "mail.log"}},
        "loggers": {
            "mailbridge.logger.EngineLogger.add": {"handlers": ["file"], "level": 5},
        },
    }
"""
import logging

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LOG_CATEGORY = "mailbridge.logger.EngineLogger.add"

PREFIX_LEVELS = {
    "++": TRACE,
    ">>": logging.INFO,
    "<<": logging.INFO,
    "!!": logging.WARNING,
}


def get_level(entry):
    """Return the logging level for an engine log line, INFO by default."""
    if isinstance(entry, bytes):
        entry = entry.decode("utf-8", errors="replace")
    if not isinstance(entry, str):
        return logging.INFO
    return PREFIX_LEVELS.get(entry[:2], logging.INFO)


class EngineLogger:
    """
    Engine plugin that passes the engine's internal log lines on to the
    ``mailbridge.logger.EngineLogger.add`` logger.
    """

    def __init__(self, logger=None):
        self.logger = logger or logging.getLogger(LOG_CATEGORY)

    def add(self, entry):
        level = get_level(entry)
        if isinstance(entry, bytes):
            entry = entry.decode("utf-8", errors="replace")
        self.logger.log(level, "%s", entry)

    def clear(self):
        # Entries live in the logging handlers, nothing is buffered here.
        pass

    def dump(self):
        return ""
