"""
Terminal Logging for Proxy Guard

Colored console output: level-colored log lines (tagged with the
monitoring session when one is attached), HTTP request traces and the
startup banner.
"""
import logging
import sys
from datetime import datetime


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"

    BG_RED = "\033[41m"


class ColoredFormatter(logging.Formatter):
    """
    One colored line per record.

    Records logged with `extra={"session_id": ...}` get a magenta session tag.
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DIM + Colors.WHITE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BG_RED + Colors.WHITE,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]

        parts = [
            f"{Colors.DIM}{timestamp}{Colors.RESET}",
            f"{color}{record.levelname:8}{Colors.RESET}",
            f"[{Colors.CYAN}{record.name}{Colors.RESET}]",
        ]
        session_id = getattr(record, "session_id", None)
        if session_id:
            parts.append(f"{Colors.MAGENTA}{session_id}{Colors.RESET}")
        parts.append(record.getMessage())

        message = " ".join(parts)
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def setup_logger(name: str = "proxy_guard", level: int = logging.DEBUG) -> logging.Logger:
    """Attach a colored stdout handler to `name` (replacing earlier handlers)."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers = []
    logger.propagate = False

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter())
    handler.setLevel(level)
    logger.addHandler(handler)

    return logger


http_logger = setup_logger("proxy_guard.http")


def log_request(method: str, path: str, status_code: int, duration_ms: int):
    status_color = Colors.GREEN if status_code < 400 else Colors.RED
    http_logger.info(
        f"{method} {path} -> {status_color}{status_code}{Colors.RESET} in {duration_ms}ms"
    )


def log_error(error_type: str, message: str):
    http_logger.error(f"{Colors.BOLD}{error_type}{Colors.RESET}: {message}")


def log_startup(service_name: str, port: int, config: dict):
    """Print the startup banner with the effective detection settings."""
    print(f"\n{Colors.BOLD}{Colors.GREEN}{'='*60}{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.GREEN}  {service_name} STARTED{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.GREEN}{'='*60}{Colors.RESET}")
    print(f"  Running on: {Colors.CYAN}http://localhost:{port}{Colors.RESET}")
    for key, value in config.items():
        print(f"  {key}: {Colors.CYAN}{value}{Colors.RESET}")
    print(f"\n{Colors.DIM}Waiting for frames...{Colors.RESET}\n")
