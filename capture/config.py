"""
FILE DESCRIPTION: Explicit configuration for the capture service.
KEY FUNCTIONS/CLASSES: CaptureConfig, parse_token_table
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv

# Desktop Chrome UA, applied to every page the engine opens
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/126.0.0.0 Safari/537.36"
)

CHROMIUM_LAUNCH_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
)


def parse_token_table(raw: str) -> Dict[str, Tuple[str, Optional[str]]]:
    """
    Parses "token:identity[:username],token2:identity2" into
    {token: (identity_id, username)}. Blank entries are ignored.
    """
    table = {}
    for entry in (raw or "").split(","):
        entry = entry.strip()
        if not entry:
            continue
        parts = entry.split(":")
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise ValueError(f"Malformed token entry: {entry!r}")
        username = parts[2] if len(parts) > 2 and parts[2] else None
        table[parts[0]] = (parts[1], username)
    return table


@dataclass(frozen=True)
class CaptureConfig:
    """
    Runtime configuration passed into the pipeline, governor and web app.
    All durations are in seconds.
    """
    # Request defaults
    default_width: int = 1920
    default_height: int = 1080
    default_format: str = "png"
    default_full_page: bool = True
    max_dimension: int = 8192
    jpeg_quality: int = 90

    # Timeouts
    capture_timeout: float = 30.0
    launch_timeout: float = 15.0
    navigation_timeout: float = 30.0
    screenshot_timeout: float = 15.0

    # Render readiness: at most N requests in flight for the quiet window
    idle_max_inflight: int = 2
    idle_quiet_window: float = 0.5

    # Concurrency governor
    max_concurrency: int = 4
    max_queue: int = 16
    queue_timeout: float = 10.0

    # History paging
    history_default_limit: int = 10
    history_max_limit: int = 100

    user_agent: str = DEFAULT_USER_AGENT
    headless: bool = True
    launch_args: Tuple[str, ...] = CHROMIUM_LAUNCH_ARGS

    # Service
    host: str = "0.0.0.0"
    port: int = 3020
    log_file: Optional[str] = None
    api_tokens: Dict[str, Tuple[str, Optional[str]]] = field(default_factory=dict)

    # Ledger backend: "memory" or "mysql"
    ledger_backend: str = "memory"
    mysql_host: Optional[str] = None
    mysql_port: int = 3306
    mysql_user: Optional[str] = None
    mysql_password: Optional[str] = None
    mysql_database: Optional[str] = None

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "CaptureConfig":
        """
        FLOW: Loads .env (if present) -> Reads CAPTURE_* / MYSQL_* variables ->
        Falls back to dataclass defaults for anything unset.
        """
        load_dotenv(env_file or Path.cwd() / ".env")
        base = cls()

        def _int(name, default):
            return int(os.getenv(name, default))

        def _float(name, default):
            return float(os.getenv(name, default))

        def _bool(name, default):
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.strip().lower() in ("1", "true", "yes", "on")

        return cls(
            default_width=_int("CAPTURE_DEFAULT_WIDTH", base.default_width),
            default_height=_int("CAPTURE_DEFAULT_HEIGHT", base.default_height),
            default_format=os.getenv("CAPTURE_DEFAULT_FORMAT", base.default_format),
            default_full_page=_bool("CAPTURE_DEFAULT_FULL_PAGE", base.default_full_page),
            max_dimension=_int("CAPTURE_MAX_DIMENSION", base.max_dimension),
            jpeg_quality=_int("CAPTURE_JPEG_QUALITY", base.jpeg_quality),
            capture_timeout=_float("CAPTURE_TIMEOUT", base.capture_timeout),
            launch_timeout=_float("CAPTURE_LAUNCH_TIMEOUT", base.launch_timeout),
            navigation_timeout=_float("CAPTURE_NAVIGATION_TIMEOUT", base.navigation_timeout),
            screenshot_timeout=_float("CAPTURE_SCREENSHOT_TIMEOUT", base.screenshot_timeout),
            idle_max_inflight=_int("CAPTURE_IDLE_MAX_INFLIGHT", base.idle_max_inflight),
            idle_quiet_window=_float("CAPTURE_IDLE_QUIET_WINDOW", base.idle_quiet_window),
            max_concurrency=_int("CAPTURE_MAX_CONCURRENCY", base.max_concurrency),
            max_queue=_int("CAPTURE_MAX_QUEUE", base.max_queue),
            queue_timeout=_float("CAPTURE_QUEUE_TIMEOUT", base.queue_timeout),
            history_default_limit=_int("CAPTURE_HISTORY_DEFAULT_LIMIT", base.history_default_limit),
            history_max_limit=_int("CAPTURE_HISTORY_MAX_LIMIT", base.history_max_limit),
            user_agent=os.getenv("CAPTURE_USER_AGENT", base.user_agent),
            headless=_bool("CAPTURE_HEADLESS", base.headless),
            host=os.getenv("CAPTURE_HOST", base.host),
            port=_int("PORT", base.port),
            log_file=os.getenv("CAPTURE_LOG_FILE") or None,
            api_tokens=parse_token_table(os.getenv("CAPTURE_API_TOKENS", "")),
            ledger_backend=os.getenv("CAPTURE_LEDGER_BACKEND", base.ledger_backend).lower(),
            mysql_host=os.getenv("MYSQL_HOST"),
            mysql_port=_int("MYSQL_PORT", base.mysql_port),
            mysql_user=os.getenv("MYSQL_USER"),
            mysql_password=os.getenv("MYSQL_PASSWORD"),
            mysql_database=os.getenv("MYSQL_DATABASE"),
        )
