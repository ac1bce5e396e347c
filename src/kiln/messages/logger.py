"""
Logging for kiln: short, color-coded lines on the console, plain lines in
`logs/kiln.log`.

Flow-scoped loggers are named `kiln.flow.<flow name>[.home|.store|.watch]`.
Every record from one of them is tagged with the flow name, so the output of
several flows reflowing at once stays easy to tell apart:

    12:04:51  [app.css] change styles/_buttons.scss, reflowing
    12:04:51  [app.css] OK built in 0.12s (4 files, 1,812 bytes)
"""
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Optional

import colorama

colorama.init()

LOG_DIR = "logs"
LOG_FILE = "kiln.log"
LINE_FORMAT = "%(asctime)s  %(flow_tag)s%(message)s"
TIME_FORMAT = "%H:%M:%S"

FLOW_PREFIX = "kiln.flow."
FLOW_SUFFIXES = (".home", ".store", ".watch")

RESET = colorama.Style.RESET_ALL
PATH_COLOR = colorama.Fore.CYAN
PREFIX_COLORS = {
    "START": colorama.Fore.BLUE,
    "OK": colorama.Fore.GREEN,
}
LEVEL_COLORS = {
    logging.WARNING: colorama.Fore.YELLOW,
    logging.ERROR: colorama.Fore.RED,
}


def _get_event_loop_time() -> float:
    """Loop time inside a running loop, monotonic time outside of one."""
    try:
        return asyncio.get_running_loop().time()
    except RuntimeError:
        return time.monotonic()


def flow_name_of(logger_name: str) -> Optional[str]:
    """kiln.flow.app.css.watch -> app.css; None for loggers outside a flow."""
    if not logger_name.startswith(FLOW_PREFIX):
        return None
    name = logger_name[len(FLOW_PREFIX) :]
    for suffix in FLOW_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


class FlowTagFilter(logging.Filter):
    """Attach `flow_tag` ("[name] " or "") to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        flow_name = flow_name_of(record.name)
        record.flow_tag = f"[{flow_name}] " if flow_name else ""
        return True


class ColorFormatter(logging.Formatter):
    """
    Formatter that colors START/OK lines, warnings and errors.

    With `color=False` it writes the same lines without escape codes, which
    is what ends up in the log file.
    """

    def __init__(self, fmt: str = LINE_FORMAT, color: bool = True):
        super().__init__(fmt, datefmt=TIME_FORMAT)
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "flow_tag"):
            FlowTagFilter().filter(record)
        line = super().format(record)
        if not self.color:
            return line

        color = PREFIX_COLORS.get(getattr(record, "color_prefix", None))
        color = color or LEVEL_COLORS.get(record.levelno)
        if record.flow_tag:
            line = line.replace(
                record.flow_tag, f"{colorama.Fore.WHITE}{record.flow_tag}{RESET}", 1
            )
        if color:
            line = f"{color}{line}{RESET}"
        return line


def _attach_handlers(logger: logging.Logger) -> None:
    log_dir = Path.cwd() / LOG_DIR
    log_dir.mkdir(exist_ok=True)

    file_handler = logging.FileHandler(log_dir / LOG_FILE, encoding="utf-8")
    file_handler.setFormatter(ColorFormatter(color=False))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColorFormatter())

    for handler in (file_handler, console_handler):
        handler.setLevel(logging.DEBUG)
        handler.addFilter(FlowTagFilter())
        logger.addHandler(handler)

    logger.setLevel(logging.INFO)
    logger.propagate = False


class KilnLogger:
    """
    Thin wrapper around a standard library logger.

    Handlers are attached the first time a name is requested; asking for the
    same name again reuses them.
    """

    BUILD_TEMPLATE = "Built {} from {:,} files ({:,} bytes) in {:.2f}s"

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        if not self.logger.handlers:
            _attach_handlers(self.logger)

    def info(self, msg: str, color_prefix: Optional[str] = None) -> None:
        extra = {"color_prefix": color_prefix} if color_prefix else None
        self.logger.info(msg, extra=extra)

    def start(self, msg: str) -> None:
        self.info(f"START {msg}", color_prefix="START")

    def success(self, msg: str) -> None:
        self.info(f"OK {msg}", color_prefix="OK")

    def error(self, msg: str) -> None:
        self.logger.error(msg)

    def warning(self, msg: str) -> None:
        self.logger.warning(msg)

    def debug(self, msg: str) -> None:
        self.logger.debug(msg)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)

    def path(self, path: str, color: Optional[str] = None) -> str:
        """Highlight a path inside a message."""
        return f"{color or PATH_COLOR}{path}{RESET}"


def get_logger(name: str) -> KilnLogger:
    """Get a configured logger instance."""
    return KilnLogger(name)


def set_verbose(verbose: bool = True) -> None:
    """Switch every kiln logger between INFO and DEBUG."""
    level = logging.DEBUG if verbose else logging.INFO
    for name in list(logging.root.manager.loggerDict):
        if name == "kiln" or name.startswith("kiln."):
            logging.getLogger(name).setLevel(level)
