#!/usr/bin/env python3
"""
core/log_utils.py: Logging setup shared by the ptlayout tools.

This module contains:
- setup_logging: Configures console/file handlers and per-topic debug levels.
- RichLogFormatter: A formatter for colorful, topic-aligned console output.
- ContextFilter: A logging filter that tags records with the page being
  processed.
"""

import logging

PROJECT_TOPICS = {
    "ptlayout": {
        "snapshot",
        "gaps",
        "regions",
        "grid",
        "merge",
        "layout",
        "units",
        "config",
        "pdf",
        "cli",
    },
}


def resolve_topics(project_name: str, debug_topics: str) -> set:
    """Expands a comma-separated topic list ('all', or prefixes like 'merg')."""
    valid = PROJECT_TOPICS.get(project_name, set())
    requested = [t.strip() for t in (debug_topics or "").split(",") if t.strip()]
    if "all" in requested:
        return set(valid)
    return {full for u in requested for full in valid if full.startswith(u)}


def setup_logging(
    project_name: str,
    level=logging.INFO,
    color_logs=False,
    debug_topics=None,
    log_file: str = None,
):
    """Configures logging for the application."""
    root_logger = logging.getLogger()
    for h in root_logger.handlers[:]:
        root_logger.removeHandler(h)
        h.close()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(RichLogFormatter(use_color=color_logs))
    root_logger.addHandler(console_handler)
    root_logger.setLevel(level)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, mode="w")
            file_handler.setFormatter(RichLogFormatter(use_color=False))
            root_logger.addHandler(file_handler)
            logging.getLogger(project_name).info("Logging to file: %s", log_file)
        except IOError as e:
            logging.getLogger(project_name).error(
                "Could not open log file %s: %s", log_file, e
            )

    # pdfminer is very chatty at DEBUG/INFO
    logging.getLogger("pdfminer").setLevel(logging.WARNING)

    if debug_topics:
        for topic in resolve_topics(project_name, debug_topics):
            logging.getLogger(f"{project_name}.{topic}").setLevel(logging.DEBUG)


class ContextFilter(logging.Filter):
    """
    A logging filter that injects contextual information (e.g. 'p3' for the
    third page) into log records.
    """

    def __init__(self, context_str=""):
        super().__init__()
        self.context_str = context_str

    def filter(self, record):
        record.context = self.context_str
        return True


class RichLogFormatter(logging.Formatter):
    """A logging formatter for colored and aligned console output.

    Each line is prefixed with a color-coded level and the bolded topic, i.e.
    the logger name after the project prefix ('ptlayout.merge' -> 'merge').

    Args:
        use_color (bool): If True, ANSI color codes are used. Defaults to False.
    """

    LEVEL_COLORS = {
        logging.DEBUG: "\033[38;5;252m",  # Light Grey
        logging.INFO: "\033[38;5;111m",  # Pastel Blue
        logging.WARNING: "\033[38;5;229m",  # Pale Yellow
        logging.ERROR: "\033[38;5;210m",  # Soft Red
        logging.CRITICAL: "\033[38;5;217m",  # Light Magenta
    }
    TOPIC_WIDTH = 8

    def __init__(self, use_color=False):
        super().__init__()
        self.use_color = use_color
        self.BOLD = "\033[1m" if use_color else ""
        self.RESET = "\033[0m" if use_color else ""

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno, "") if self.use_color else ""
        level_name = record.levelname[:5]

        name_parts = record.name.split(".")
        topic = name_parts[1] if len(name_parts) > 1 else record.name
        topic = topic[: self.TOPIC_WIDTH]

        context = getattr(record, "context", "")
        context_str = f"[{context}]" if context else ""

        prefix = (
            f"{color}{level_name:<5}{self.RESET}:"
            f"{self.BOLD}{topic:<{self.TOPIC_WIDTH}}{self.RESET}{context_str}: "
        )
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return "\n".join(f"{prefix}{line}" for line in message.split("\n"))
