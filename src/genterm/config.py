# /genterm/config.py
"""
Centralized configuration for GenTerm.
Covers the terminal client, the backend service and the shared logging setup.
"""
import os
from pathlib import Path
from dotenv import load_dotenv
from rich.console import Console
from .observability import configure_logging

# ==============================================================================
# CONSOLE & ENVIRONMENT
# ==============================================================================
console = Console()
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return bool(default)
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return int(default)
    try:
        value = int(raw)
    except ValueError:
        return int(default)
    return max(minimum, value)


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None:
        return float(default)
    try:
        value = float(raw)
    except ValueError:
        return float(default)
    return max(float(minimum), value)


def _env_list(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in str(raw).split(",") if item.strip()]


# ==============================================================================
# GLOBAL CONFIGURATION
# ==============================================================================
# --- Terminal Client ---
API_URL = os.getenv("GENTERM_API_URL", "http://127.0.0.1:8080").rstrip("/")
QUERY_TIMEOUT_S = _env_float("GENTERM_QUERY_TIMEOUT_S", 120.0, minimum=1.0)
HTTP_TIMEOUT_S = _env_float("GENTERM_HTTP_TIMEOUT_S", 60.0, minimum=1.0)
PROMPT_REFRESH_INTERVAL_S = _env_float("GENTERM_PROMPT_REFRESH_INTERVAL_S", 0.25, minimum=0.05)

# --- LLM Backend ---
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://api.openai.com/v1")
LLM_API_KEY = os.getenv("LLM_API_KEY", "")
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o")
LLM_MAX_TOKENS = _env_int("LLM_MAX_TOKENS", 2000, minimum=1)
LLM_TEMPERATURE = _env_float("LLM_TEMPERATURE", 0.4, minimum=0.0)
SYSTEM_PROMPT = os.getenv(
    "SYSTEM_PROMPT",
    "You are a helpful assistant. Use the provided context to answer questions accurately.",
)

# --- Server ---
HOST = os.getenv("HOST", "0.0.0.0")
PORT = _env_int("PORT", 8080, minimum=1)
CORS_ALLOW_ORIGINS = _env_list("CORS_ALLOW_ORIGINS", "*")
SERVER_RELOAD = _env_bool("SERVER_RELOAD", False)

# --- Path Configuration ---
# Data directory is at ../../data relative to this file (src/genterm/config.py)
_BASE_DIR = Path(__file__).resolve().parent.parent.parent
_DATA_DIR = _BASE_DIR / "data"

CACHE_DIR = Path(os.getenv("CACHE_DIR", str(_DATA_DIR / "runtime_cache")))
METRICS_DIR = Path(os.getenv("METRICS_DIR", str(CACHE_DIR / "metrics")))

# --- Create necessary directories ---
CACHE_DIR.mkdir(parents=True, exist_ok=True)
LOG_PATH = Path(os.getenv("LOG_PATH", str(CACHE_DIR / "app.log")))
LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
configure_logging(LOG_PATH)


def check_server_config() -> tuple[bool, list[str]]:
    """
    Preflight for the backend service.
    Returns (ok, error_messages).
    """
    errors: list[str] = []
    if not LLM_API_KEY:
        errors.append("LLM_API_KEY environment variable is required.")
    if not LLM_BASE_URL.startswith(("http://", "https://")):
        errors.append(f"LLM_BASE_URL must be an http(s) URL, got '{LLM_BASE_URL}'.")
    return (not errors), errors
