# ============================================================================
# snifferdeck/base/config.py
# Application Configuration Management
# ============================================================================
#
# PURPOSE:
# All tunable settings live here: where the Sniffer Control Service is, where
# exported configuration files go, and how verbose logging is.
#
# KEY CONCEPTS:
# 1. Dataclasses: one frozen section per concern
# 2. Environment Variables: every setting can be overridden (SNIFFERDECK_*)
# 3. Singleton: one shared config, replaceable in tests via set_config()
#
# ============================================================================

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from snifferdeck.base.errors import ErrorCode, SnifferDeckError

logger = logging.getLogger(__name__)

# Literal filename every export is delivered under.
EXPORT_FILENAME = "config.json"


# ============================================================================
# Control Service Configuration
# ============================================================================

@dataclass(frozen=True)
class ApiConfig:
    # Base URL of the Sniffer Control Service (the /sniffers routes hang off it)
    base_url: str = "http://127.0.0.1:8080"

    # Seconds before a single request is abandoned and reported as a failure
    timeout: float = 10.0

    # Optional bearer token sent with every request
    token: Optional[str] = None


# ============================================================================
# Export Configuration
# ============================================================================

@dataclass(frozen=True)
class ExportConfig:
    # Directory the file-delivery collaborator writes EXPORT_FILENAME into
    directory: Path = field(default_factory=Path.cwd)


# ============================================================================
# Logging Configuration
# ============================================================================

@dataclass(frozen=True)
class LogConfig:
    # DEBUG / INFO / WARNING / ERROR
    level: str = "INFO"

    # %(name)s is the module logger, e.g. "snifferdeck.control.sync"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    # When set, logs are also written to this file with size based rotation
    file_path: Optional[Path] = None

    max_file_size_mb: int = 5

    backup_count: int = 3


# ============================================================================
# Master Configuration Container
# ============================================================================

@dataclass
class DeckConfig:
    api: ApiConfig = field(default_factory=ApiConfig)

    export: ExportConfig = field(default_factory=ExportConfig)

    log: LogConfig = field(default_factory=LogConfig)

    # Debug mode forces DEBUG logging regardless of log.level
    debug: bool = False

    @classmethod
    def from_env(cls) -> "DeckConfig":
        raw_timeout = os.getenv("SNIFFERDECK_API_TIMEOUT", "10")
        try:
            timeout = float(raw_timeout)
        except ValueError:
            timeout = -1.0
        if timeout <= 0:
            raise SnifferDeckError(
                ErrorCode.CONFIG_INVALID,
                "SNIFFERDECK_API_TIMEOUT must be a positive number of seconds",
                details={"value": raw_timeout},
            )

        api = ApiConfig(
            base_url=os.getenv("SNIFFERDECK_API_URL", "http://127.0.0.1:8080").rstrip("/"),
            timeout=timeout,
            token=os.getenv("SNIFFERDECK_API_TOKEN") or None,
        )

        export_dir = os.getenv("SNIFFERDECK_EXPORT_DIR")
        export = ExportConfig(directory=Path(export_dir)) if export_dir else ExportConfig()

        log_file = os.getenv("SNIFFERDECK_LOG_FILE")
        log = LogConfig(
            level=os.getenv("SNIFFERDECK_LOG_LEVEL", "INFO"),
            file_path=Path(log_file) if log_file else None,
        )

        return cls(
            api=api,
            export=export,
            log=log,
            debug=os.getenv("SNIFFERDECK_DEBUG", "false").lower() == "true",
        )


# ============================================================================
# Global Configuration Singleton
# ============================================================================

_config: Optional[DeckConfig] = None


def get_config() -> DeckConfig:
    """
    Get the global configuration instance.

    Returns:
        The shared DeckConfig (built from the environment on first use)
    """
    global _config
    if _config is None:
        _config = DeckConfig.from_env()
    return _config


def set_config(config: Optional[DeckConfig]) -> None:
    """
    Replace the global configuration (mainly used for testing).

    Passing None makes the next get_config() re-read the environment.
    """
    global _config
    _config = config


def setup_logging(config: Optional[DeckConfig] = None) -> None:
    """
    Configure Python's logging system based on our settings.

    Console output always; a rotating file handler when log.file_path is set.
    Call this once at application startup.
    """
    cfg = config or get_config()

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if cfg.log.file_path is not None:
        from logging.handlers import RotatingFileHandler
        cfg.log.file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                cfg.log.file_path,
                maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
                backupCount=cfg.log.backup_count,
            )
        )

    level = logging.DEBUG if cfg.debug else getattr(logging, cfg.log.level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )

    # httpx logs every request at INFO; keep it quiet unless debugging
    if not cfg.debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
