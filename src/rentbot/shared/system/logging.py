"""
Centralized Logger with Rich Console
====================================
Static facade used by every component of the bot.

Usage:
    from rentbot.shared.system.logging import Logger

    Logger.configure(level="INFO", log_dir="./logs")
    Logger.info("[SCANNER] Page fetched")
    Logger.success("[SUBMIT] Transaction broadcast")
    Logger.section("Storage Rent Cycle")

A leading [TAG] picks the source column and icon. Until configure() is
given a log_dir, output goes to the console only.
"""

import logging
import os
import re
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional, Tuple

from rich.console import Console
from rich.text import Text


_file_log = logging.getLogger("rentbot")
_file_log.setLevel(logging.DEBUG)
_file_log.propagate = False

_console = Console()

_TAG = re.compile(r"^\s*\[([A-Za-z_]{1,14})\]\s*")


# =============================================================================
# PRESENTATION
# =============================================================================

ICONS = {
    "SYSTEM": "🛸",
    "BOT": "🤖",
    "SCANNER": "🔍",
    "QUEUE": "⏳",
    "BATCH": "📦",
    "SUBMIT": "📡",
    "MONITOR": "👁️",
    "NODE": "🛡️",
    "DB": "💾",
    "CLI": "📋",
    "THREADS": "🧵",
}

# level -> (threshold, console style, stdlib level for the file sink)
LEVELS = {
    "DEBUG": (10, "dim", logging.DEBUG),
    "INFO": (20, "cyan", logging.INFO),
    "SUCCESS": (20, "green bold", logging.INFO),
    "WARNING": (30, "yellow", logging.WARNING),
    "ERROR": (40, "red bold", logging.ERROR),
    "CRITICAL": (50, "red bold reverse", logging.CRITICAL),
}


# =============================================================================
# LOGGER
# =============================================================================

class Logger:
    _silent = False
    _threshold = LEVELS["INFO"][0]

    @staticmethod
    def configure(level: str = "INFO", log_dir: Optional[str] = None) -> Optional[str]:
        """
        Set the console threshold and, when `log_dir` is given, open a
        rotating per-run log file there. Returns the file path or None.
        """
        Logger._threshold = LEVELS.get(level.upper(), LEVELS["INFO"])[0]
        if not log_dir:
            return None

        os.makedirs(log_dir, exist_ok=True)
        path = os.path.join(log_dir, f"rentbot_{datetime.now():%Y%m%d_%H%M%S}.log")

        while _file_log.handlers:
            old = _file_log.handlers[0]
            _file_log.removeHandler(old)
            old.close()

        sink = RotatingFileHandler(path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
        sink.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(message)s", "%Y-%m-%d %H:%M:%S"))
        _file_log.addHandler(sink)
        return path

    @staticmethod
    def _split(message: str) -> Tuple[str, str]:
        match = _TAG.match(message)
        if match is None:
            return "SYSTEM", message
        return match.group(1).upper(), message[match.end():]

    @staticmethod
    def _emit(level: str, message: str) -> None:
        source, text = Logger._split(message)
        threshold, style, file_level = LEVELS[level]

        if _file_log.handlers:
            _file_log.log(file_level, f"[{source}] {text}")

        if Logger._silent or threshold < Logger._threshold:
            return

        now = datetime.now()
        icon = ICONS.get(source)
        line = Text(f"{now:%H:%M:%S}.{now.microsecond // 1000:03d} ", style="dim")
        line.append(f"| {level:<8} ", style=style)
        line.append(f"| {source[:10]:<10} | ", style="dim")
        line.append(f"{icon} {text}" if icon else text)
        _console.print(line)

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    @staticmethod
    def debug(message: str) -> None:
        Logger._emit("DEBUG", message)

    @staticmethod
    def info(message: str) -> None:
        Logger._emit("INFO", message)

    @staticmethod
    def success(message: str) -> None:
        Logger._emit("SUCCESS", message)

    @staticmethod
    def warning(message: str) -> None:
        Logger._emit("WARNING", message)

    @staticmethod
    def error(message: str) -> None:
        Logger._emit("ERROR", message)

    @staticmethod
    def critical(message: str) -> None:
        Logger._emit("CRITICAL", message)

    @staticmethod
    def section(title: str) -> None:
        """Horizontal rule between cycles."""
        if not Logger._silent:
            _console.print()
            _console.rule(f"[bold magenta]{title}[/]", style="dim")
        if _file_log.handlers:
            _file_log.info(f"[SYSTEM] ═══ {title} ═══")

    @staticmethod
    def set_silent(silent: bool) -> None:
        Logger._silent = silent
