"""Structured logging for dupgate."""

import json
import os
import sys
import time
from typing import Optional, TextIO


LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}


class Logger:
    """JSON-lines logger; one object per record on stdout."""

    def __init__(self, component: str = "gate", level: Optional[str] = None,
                 stream: Optional[TextIO] = None):
        self.component = component
        level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
        self.threshold = LEVELS.get(level, LEVELS["INFO"])
        self.stream = stream

    def _log(self, level: str, message: str, **kwargs):
        if LEVELS[level] < self.threshold:
            return
        log_entry = {
            "timestamp": time.time(),
            "level": level,
            "component": self.component,
            "message": message,
            **kwargs
        }
        stream = self.stream or sys.stdout
        stream.write(json.dumps(log_entry, default=str) + "\n")
        stream.flush()

    def info(self, message: str, **kwargs):
        self._log("INFO", message, **kwargs)

    def warn(self, message: str, **kwargs):
        self._log("WARN", message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs):
        self._log("DEBUG", message, **kwargs)
