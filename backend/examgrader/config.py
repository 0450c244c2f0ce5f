"""
Configuration - env vars, constants, grading tunables.
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')

# Logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("examgrader")

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"

# Upload limits
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
MAX_FILES = 10
ALLOWED_MIME_PREFIXES = ("image/",)
ALLOWED_MIME_TYPES = ("application/pdf",)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"⚠️ Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


@dataclass(frozen=True)
class GradingConfig:
    """Tunables for one run of the evaluation pipeline."""

    timeout_seconds: float = 60.0
    max_retries: int = 2
    retry_delay_seconds: float = 2.0
    issue_tolerance: int = 3
    blank_paper_ratio: float = 0.8
    marks_mismatch_ratio: float = 0.5

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    @classmethod
    def from_env(cls) -> "GradingConfig":
        return cls(
            timeout_seconds=_env_float("GRADING_TIMEOUT_SECONDS", 60.0),
            max_retries=_env_int("GRADING_MAX_RETRIES", 2),
            retry_delay_seconds=_env_float("GRADING_RETRY_DELAY_SECONDS", 2.0),
            issue_tolerance=_env_int("VALIDATION_ISSUE_TOLERANCE", 3),
            blank_paper_ratio=_env_float("BLANK_PAPER_RATIO", 0.8),
            marks_mismatch_ratio=_env_float("MARKS_MISMATCH_RATIO", 0.5),
        )


# Rate limiting / quotas
RATE_LIMIT_MAX_REQUESTS = _env_int("RATE_LIMIT_MAX_REQUESTS", 30)
RATE_LIMIT_WINDOW_SECONDS = _env_float("RATE_LIMIT_WINDOW_SECONDS", 60.0)
DEFAULT_EVALUATION_LIMIT = _env_int("DEFAULT_EVALUATION_LIMIT", 10)


def get_version_info():
    """Get deployment version information."""
    git_commit = os.environ.get("GIT_COMMIT_SHA")
    if not git_commit and os.path.exists(".git_commit"):
        try:
            with open(".git_commit", "r") as f:
                git_commit = f.read().strip()
        except OSError as e:
            logger.warning(f"Could not read .git_commit: {e}")

    if not git_commit:
        logger.warning("GIT_COMMIT_SHA not set and .git_commit not found. Build pipeline issue?")
        git_commit = "unknown"

    build_time = os.environ.get("BUILD_TIME", "unknown")
    env = os.environ.get("ENV", os.environ.get("ENVIRONMENT", "development"))

    return {
        "git_commit": git_commit,
        "build_time": build_time,
        "environment": env
    }
