"""Service entry point (logging is configured before the app is imported)"""

import logging
import sys
from datetime import datetime


class Colors:
    """ANSI escape codes"""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"


# Level colours
LOG_COLORS = {
    logging.DEBUG: "\033[38;5;245m",      # grey
    logging.INFO: "\033[38;5;79m",        # teal
    logging.WARNING: "\033[38;5;221m",    # amber
    logging.ERROR: "\033[38;5;203m",      # soft red
    logging.CRITICAL: "\033[1;38;5;203m", # bold soft red
}

# Fixed-width level names
LOG_LEVEL_NAMES = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO ",
    logging.WARNING: "WARN ",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "CRIT ",
}


from field_tools.config.settings import get_settings
from field_tools.core.timezone import get_timezone

settings = get_settings()
TZ = get_timezone()


class ColorFormatter(logging.Formatter):
    """Coloured, aligned formatter with timestamps in the configured zone"""

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=TZ)
        return dt.strftime(datefmt or "%Y-%m-%d %H:%M:%S")

    def format(self, record):
        level_color = LOG_COLORS.get(record.levelno, "")
        record.levelname = LOG_LEVEL_NAMES.get(record.levelno, record.levelname)

        result = super().format(record)

        if level_color:
            result = f"{level_color}{result}{Colors.RESET}"
        return result


logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

for handler in logging.root.handlers:
    handler.setFormatter(ColorFormatter(
        fmt="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

# Quiet third-party loggers
logging.getLogger("apscheduler.executors.default").setLevel(logging.WARNING)
logging.getLogger("apscheduler.scheduler").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.INFO)
logging.getLogger("curl_cffi").setLevel(logging.WARNING)

import uvicorn

from field_tools.web.app import create_app


def main():
    """Start the HTTP service"""
    logger = logging.getLogger(__name__)
    logger.info(f"Starting CRMS field tools (shortcode {settings.ussd_shortcode})")
    uvicorn.run(
        create_app(),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
