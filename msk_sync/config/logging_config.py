# =============================================================================
# File: msk_sync/config/logging_config.py
# Description: Logging configuration using the Rich framework
# =============================================================================

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from typing import Any, Dict, Optional

from rich.box import DOUBLE, MINIMAL, ROUNDED
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

PLAIN_FORMAT = "[%(asctime)s] [%(levelname)-8s] [%(name)-36s] %(message)s"
PLAIN_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    value = os.getenv(key, '').lower()
    return value in ('true', '1', 'yes', 'on') if value else default


def get_env_int(key: str, default: int) -> int:
    """Get integer value from environment variable."""
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


MSK_THEME = Theme({
    "debug": "magenta dim",
    "info": "green",
    "warning": "dark_goldenrod",
    "error": "red",
    "critical": "bold red",
    "success": "green3",
    "dim": "bright_black",
    "header": "bold cyan",
})

# Panel border colour per worker role
BORDER_COLORS = {
    'publisher': 'bright_green',
    'subscriber': 'magenta',
}

_service_type = "publisher"


class ProductionFormatter(logging.Formatter):
    """JSON formatter for production environments"""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if get_env_bool('LOG_JSON_INCLUDE_EXTRAS', True):
            for extra in ("identity", "topic"):
                if hasattr(record, extra):
                    log_obj[extra] = getattr(record, extra)

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj)


def get_logger_level_from_env(logger_name: str, default_level: int) -> int:
    """
    Per-logger override, e.g. "msk_sync.infra.bus" -> LOGLEVEL_MSK_SYNC_INFRA_BUS.
    """
    env_name = f"LOGLEVEL_{logger_name.replace('.', '_').upper()}"
    level_str = os.getenv(env_name, '').upper()
    if level_str:
        level_map = {
            'DEBUG': logging.DEBUG,
            'INFO': logging.INFO,
            'WARNING': logging.WARNING,
            'WARN': logging.WARNING,
            'ERROR': logging.ERROR,
            'CRITICAL': logging.CRITICAL,
        }
        return level_map.get(level_str, default_level)
    return default_level


def setup_logging(
        service_name: str = "msk_sync",
        log_level: Optional[str] = None,
        log_file: Optional[str] = None,
        enable_json: Optional[bool] = None,
        service_type: Optional[str] = None,
) -> None:
    """
    Configure the root logger.

    Args:
        service_name: Name of the service, used for the startup logger
        log_level: Override log level (default LOG_LEVEL or INFO)
        log_file: Optional rotating log file path (default LOG_FILE)
        enable_json: JSON lines on stdout (default LOG_JSON_FORMAT)
        service_type: "publisher" or "subscriber", picks panel colours
    """
    global _service_type
    _service_type = service_type or os.getenv('SERVICE_TYPE', _service_type)

    level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_file = log_file or os.getenv("LOG_FILE")

    if enable_json is None:
        enable_json = get_env_bool('LOG_JSON_FORMAT', False)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    use_rich = not enable_json and (sys.stdout.isatty() or get_env_bool("FORCE_COLOR", False))

    if use_rich:
        console = Console(
            theme=MSK_THEME,
            force_terminal=get_env_bool("FORCE_COLOR", False),
            width=get_env_int('LOG_CONSOLE_WIDTH', 0) or None,
        )
        root_logger.addHandler(RichHandler(
            console=console,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            log_time_format="[%X]",
        ))

    elif enable_json:
        json_handler = logging.StreamHandler(sys.stdout)
        json_handler.setFormatter(ProductionFormatter())
        root_logger.addHandler(json_handler)

    else:
        plain_handler = logging.StreamHandler(sys.stdout)
        plain_handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt=PLAIN_DATEFMT))
        root_logger.addHandler(plain_handler)

    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=get_env_int('LOG_MAX_SIZE_MB', 100) * 1024 * 1024,
            backupCount=get_env_int('LOG_BACKUP_COUNT', 5),
            encoding=os.getenv('LOG_FILE_ENCODING', 'utf-8'),
        )
        # Always use plain formatter for files
        file_handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt=PLAIN_DATEFMT))
        root_logger.addHandler(file_handler)

    default_noise_config = {
        "asyncio": logging.WARNING,
        "asyncpg": logging.WARNING,
        "redis": logging.WARNING,
        "msk_sync.retry": logging.WARNING,
    }
    for logger_name, default_level in default_noise_config.items():
        logging.getLogger(logger_name).setLevel(get_logger_level_from_env(logger_name, default_level))

    logging.getLogger(f"{service_name}.startup").info(f"Logging configured for {service_name} service")


def log_worker_banner(logger: logging.Logger, worker_name: str, instance_id: str, version: Optional[str] = None):
    """Log a banner for worker startup"""
    if version is None:
        from msk_sync import __version__
        version = __version__

    logger.debug(f"{worker_name} v{version} starting (instance {instance_id})")

    console = Console(theme=MSK_THEME)
    banner_text = f"""[bold cyan]{worker_name.upper()}[/bold cyan]
[dim]Version {version}[/dim]

[bold]Instance:[/bold] {instance_id}
[bold]PID:[/bold] {os.getpid()}
[bold]Started:[/bold] {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"""

    console.print()
    console.print(Panel(
        banner_text,
        title="[bold]WORKER STARTUP[/bold]",
        title_align="center",
        border_style=BORDER_COLORS.get(_service_type, 'bright_blue'),
        box=DOUBLE,
        padding=(1, 2),
        width=min(console.width - 2, 60),
    ))
    console.print()


def log_metrics_table(logger: logging.Logger, title: str, metrics: Dict[str, Any]):
    """Log metrics in a table; the values also go to the logger for non-TTY runs."""
    logger.info(f"{title}: " + ", ".join(f"{key}={value}" for key, value in metrics.items()))

    console = Console(theme=MSK_THEME)
    table = Table(
        title=title,
        show_header=True,
        header_style="white on grey30",
        box=MINIMAL,
        padding=(0, 1),
    )
    table.add_column("Metric", style="cyan", width=30)
    table.add_column("Value", style="white", justify="right", width=15)

    for key, value in metrics.items():
        if isinstance(value, float):
            formatted_value = f"{value:,.2f}"
        elif isinstance(value, int):
            formatted_value = f"{value:,}"
        else:
            formatted_value = str(value)
        table.add_row(key.replace('_', ' ').title(), formatted_value)

    console.print()
    console.print(Panel(
        table,
        border_style=BORDER_COLORS.get(_service_type, 'bright_blue'),
        box=ROUNDED,
        padding=(1, 1),
        width=min(console.width - 2, 60),
    ))
    console.print()


def log_status_update(logger: logging.Logger, status: str, details: Optional[Dict[str, Any]] = None):
    """Log a status update with optional details"""
    logger.info(f"Status: {status}")

    console = Console(theme=MSK_THEME)
    status_text = f"[bold]Status:[/bold] [info]{status}[/info]"

    if details:
        status_text += "\n\n[bold]Details:[/bold]\n"
        for key, value in details.items():
            formatted_key = key.replace('_', ' ').title()
            if isinstance(value, (list, tuple)):
                status_text += f"  • {formatted_key}:\n"
                for item in value:
                    status_text += f"    - {item}\n"
            else:
                status_text += f"  • {formatted_key}: {value}\n"

    console.print()
    console.print(Panel(
        status_text.strip(),
        border_style=BORDER_COLORS.get(_service_type, 'info'),
        box=MINIMAL,
        padding=(1, 2),
        width=min(console.width - 2, 90),
    ))

# =============================================================================
# EOF
# =============================================================================
