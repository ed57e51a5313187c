import os

from dotenv import load_dotenv

load_dotenv()

# ── Paths ─────────────────────────────────────────────────────────────────────
BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(BACKEND_DIR)
DEFAULT_DATA_PATH = os.path.join(PROJECT_ROOT, "data")


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, float(raw))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, int(raw))
    except (TypeError, ValueError):
        return default


def _env_path(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if not raw:
        return default
    if not os.path.isabs(raw):
        return os.path.join(PROJECT_ROOT, raw)
    return raw


DATA_PATH = _env_path("DATA_PATH", DEFAULT_DATA_PATH)

# -- Remote backend ----------------------------------------------------------
BACKEND_API_URL = os.environ.get(
    "BACKEND_API_URL",
    "https://ccomp-uerj-progress-backend.onrender.com",
).rstrip("/")
BACKEND_TIMEOUT_SECONDS = _env_float("BACKEND_TIMEOUT_SECONDS", 15.0, minimum=1.0)
SCHEDULE_FETCH_WORKERS = _env_int("SCHEDULE_FETCH_WORKERS", 8, minimum=1)
SCHEDULE_FETCH_DEADLINE_SECONDS = _env_float("SCHEDULE_FETCH_DEADLINE_SECONDS", 20.0, minimum=0.0)

# -- Degree requirements (contractually fixed for this curriculum) -----------
REQUIRED_MANDATORY_CREDITS = _env_int("REQUIRED_MANDATORY_CREDITS", 177, minimum=0)
REQUIRED_ELECTIVE_CREDITS = _env_int("REQUIRED_ELECTIVE_CREDITS", 20, minimum=0)

# -- Server ------------------------------------------------------------------
SLOW_REQUEST_LOG_MS = _env_float("SLOW_REQUEST_LOG_MS", 750.0, minimum=0.0)
