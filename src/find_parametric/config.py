# src/find_parametric/config.py
from __future__ import annotations

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_repo_root(start: Path) -> Path:
    """
    Best-effort repository root discovery.
    - Prefer the closest ancestor containing `pyproject.toml`.
    - Fallback to the start path if not found.
    """
    cur = start.resolve()
    for _ in range(20):
        if (cur / "pyproject.toml").exists():
            return cur
        if cur.parent == cur:
            break
        cur = cur.parent
    return start.resolve()


PACKAGE_ROOT = Path(__file__).resolve().parent
REPO_ROOT = _find_repo_root(PACKAGE_ROOT)

# Load .env early so env-driven defaults below see it.
load_dotenv(str(REPO_ROOT / ".env"), override=False)

LOCAL_ROOT = REPO_ROOT / ".Local"


class Settings(BaseSettings):
    DEBUG: bool = False

    PROJECT_ROOT: str = str(REPO_ROOT)

    FIND_PARAMETRIC_DATABASE_URL: Optional[str] = None

    # Engine: None selects the in-process engine (optionally seeded from a JSON file).
    FIND_PARAMETRIC_ENGINE_URL: Optional[str] = None
    FIND_PARAMETRIC_ENGINE_SEED_PATH: Optional[str] = None
    FIND_PARAMETRIC_ENGINE_TIMEOUT_S: float = float(10.0)

    # Facets
    FIND_PARAMETRIC_DEFAULT_BUCKETS: int = int(20)
    FIND_PARAMETRIC_MAX_BUCKETS: int = int(1000)  # upper bound for targetNumberOfBuckets
    FIND_PARAMETRIC_DEPENDENT_MAX_DEPTH: int = int(5)
    FIND_PARAMETRIC_VALUES_PAGE_SIZE: int = int(20)

    # Export
    FIND_PARAMETRIC_EXPORT_PAGE_SIZE: int = int(1000)
    FIND_PARAMETRIC_ENGINE_RETRIES: int = int(2)

    FIND_PARAMETRIC_LOG_LEVEL: str = "INFO"

    @property
    def project_root(self) -> Path:
        if not self.PROJECT_ROOT:
            raise RuntimeError("PROJECT_ROOT is not set. Please set PROJECT_ROOT in your .env file.")
        return Path(self.PROJECT_ROOT).resolve()

    model_config = SettingsConfigDict(
        env_file=str(REPO_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
