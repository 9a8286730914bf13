"""Configuration module for the ActivityWatch range analyzer.

Centralizes all configuration constants and environment variables
to eliminate scattered magic numbers and duplicated settings.

Values that the CLI may change by loading a .env file after import are
exposed as small getter functions instead of module constants.
"""

import os
import socket
from pathlib import Path

# ============================================================================
# Path Configuration
# ============================================================================

# ActivityWatch server database (peewee sqlite store)
DEFAULT_AW_DB_PATH = (
    Path.home() / "Library" / "Application Support" / "activitywatch"
    / "aw-server" / "peewee-sqlite.v2.db"
)

# Default directory scanned for git repositories (<root>/<org>/<repo>)
DEFAULT_GIT_SCAN_ROOT = Path.home() / "src" / "github.com"

# Directory where structured XML documents are persisted on request
DEFAULT_XML_OUTPUT_DIR = Path.cwd() / "xml"


def get_aw_db_path() -> Path:
    """Resolve the ActivityWatch database path (DATABASE_URL may carry a file: prefix)."""
    raw = os.getenv("AW_DB_PATH") or os.getenv("DATABASE_URL")
    if raw:
        return Path(raw.removeprefix("file:"))
    return DEFAULT_AW_DB_PATH


def get_git_scan_root() -> Path:
    return Path(os.getenv("GIT_SCAN_ROOT", str(DEFAULT_GIT_SCAN_ROOT)))


def get_xml_output_dir() -> Path:
    return Path(os.getenv("XML_OUTPUT_DIR", str(DEFAULT_XML_OUTPUT_DIR)))


# ============================================================================
# Event Source Types (ActivityWatch bucket types)
# ============================================================================

BUCKET_WINDOW = "currentwindow"
BUCKET_WEB_TAB = "web.tab.current"
BUCKET_AFK = "afkstatus"
BUCKET_EDITOR = "app.editor.activity"
BUCKET_GIT_COMMIT = "git.commit"


# ============================================================================
# Scheduler Configuration
# ============================================================================

# Fixed analysis window; other lookback/interval values are ignored
WINDOW_MINUTES = 30

# Environment flags consulted (in order) for the scheduler's calendar default
SCHEDULER_CREATE_ENV_NAMES = (
    "ANALYZE_RANGE_SCHEDULER_CREATE",
    "RANGE_ANALYSIS_SCHEDULER_CREATE",
    "RANGE_ANALYSIS_CREATE_CALENDAR",
    "ANALYZE_RANGE_CREATE_CALENDAR",
)


# ============================================================================
# Statistics Configuration
# ============================================================================

# Peak-activity bucket sizes (minutes), epoch-aligned
PEAK_WINDOW_MINUTES = (10, 5)

# Switch density basis (milliseconds)
SWITCH_DENSITY_BASIS_MS = 10 * 60 * 1000

# Placeholder duration of synthetic commit events (seconds)
GIT_COMMIT_EVENT_DURATION = 1


def get_local_dev_pattern() -> str:
    """Project name pattern counted as local development time."""
    return os.getenv("LOCAL_DEV_PROJECT_PATTERN", "activitywatch-util")


def get_category_rules_file() -> Path | None:
    raw = os.getenv("AW_CATEGORY_RULES_FILE")
    return Path(raw) if raw else None


# ============================================================================
# Report Configuration
# ============================================================================

# Time zone used for timestamps in the structured document, prompts and calendar
DEFAULT_REPORT_TIMEZONE = "Asia/Tokyo"

# Prompt language ('ja' or 'en')
DEFAULT_REPORT_LANGUAGE = "ja"

# Calendar entry titles are truncated to this many characters
CALENDAR_SUMMARY_MAX_CHARS = 50


def get_report_timezone() -> str:
    return os.getenv("REPORT_TIMEZONE", DEFAULT_REPORT_TIMEZONE)


def get_report_language() -> str:
    lang = os.getenv("REPORT_LANGUAGE", DEFAULT_REPORT_LANGUAGE).strip().lower()
    return lang if lang in ("ja", "en") else DEFAULT_REPORT_LANGUAGE


def get_machine_name() -> str:
    """Machine identifier prefixed to calendar entries (empty when unknown)."""
    override = os.getenv("MACHINE_NAME")
    if override is not None:
        return override.strip()
    try:
        return socket.gethostname().strip()
    except OSError:
        return ""


# ============================================================================
# Git Collector Limits
# ============================================================================

GIT_MAX_COMMITS_PER_REPO = 1000
GIT_COMMAND_TIMEOUT = 30  # seconds


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def get_git_max_diff_chars() -> int:
    return _int_env("GIT_MAX_DIFF_CHARS", 20000)


def get_git_diff_context() -> int:
    return _int_env("GIT_DIFF_CONTEXT", 0)


def get_git_max_snapshot_files() -> int:
    return _int_env("GIT_MAX_SNAPSHOT_FILES", 50)


def get_git_max_file_chars() -> int:
    return _int_env("GIT_MAX_FILE_CHARS", 20000)


# ============================================================================
# Generation Service Configuration
# ============================================================================

PROVIDERS = ("openai", "gemini", "bedrock")

OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4.1")

GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL",
    "https://generativelanguage.googleapis.com/v1beta"
)
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-pro")

# Bedrock proxy URL and token file (same layout as the session visualizer)
BEDROCK_PROXY_URL = os.getenv(
    "BEDROCK_PROXY_URL",
    "https://bedrock-runtime.us-east-1.amazonaws.com"
)
BEDROCK_TOKEN_FILE = Path(os.getenv(
    "BEDROCK_TOKEN_FILE",
    str(Path.home() / ".config" / "bedrock-proxy" / "token")
))
BEDROCK_MODEL_ID = os.getenv(
    "BEDROCK_MODEL_ID",
    "global.anthropic.claude-haiku-4-5-20251001-v1:0"
)
BEDROCK_MAX_TOKENS = 2048

# Sampling temperatures for the two generation calls
TEXT_TEMPERATURE = 0.7
STRUCTURED_TEMPERATURE = 0.3


def get_llm_timeout() -> float:
    """Deadline for a single generation call (seconds)."""
    try:
        return float(os.getenv("LLM_TIMEOUT_SECONDS", "180"))
    except ValueError:
        return 180.0


# ============================================================================
# Server Configuration
# ============================================================================

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000

# Default provider per surface (HTTP defaults to openai, CLI to gemini)
DEFAULT_HTTP_PROVIDER = "openai"
DEFAULT_CLI_PROVIDER = "gemini"
