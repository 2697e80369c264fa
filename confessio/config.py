"""
Centralized configuration for Confessio.

All configuration values should be imported from this module.
Supports environment variable overrides for containerization.
"""

import os
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


def _find_project_root() -> Path:
    """Find project root by looking for pyproject.toml or .git."""
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent
    return current.parent


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Confessio configuration."""

    # ==========================================================================
    # Paths
    # ==========================================================================
    PROJECT_ROOT: Path = field(default_factory=_find_project_root)

    @property
    def VOCABULARY_PATH(self) -> Optional[Path]:
        path = os.environ.get("CONFESSIO_VOCABULARY_PATH")
        return Path(path) if path else None

    # ==========================================================================
    # Database Connections
    # ==========================================================================
    @property
    def POSTGRES_DSN(self) -> str:
        return os.environ.get(
            "POSTGRES_DSN",
            "dbname=confessio user=confessio host=/var/run/postgresql"
        )

    @property
    def PG_POOL_MIN(self) -> int:
        return int(os.environ.get("PG_POOL_MIN", "1"))

    @property
    def PG_POOL_MAX(self) -> int:
        return int(os.environ.get("PG_POOL_MAX", "10"))

    @property
    def NEO4J_URI(self) -> str:
        return os.environ.get("NEO4J_URI", "bolt://localhost:7687")

    @property
    def NEO4J_USER(self) -> str:
        return os.environ.get("NEO4J_USER", "neo4j")

    @property
    def NEO4J_PASSWORD(self) -> str:
        return os.environ.get("NEO4J_PASSWORD", "")

    # ==========================================================================
    # Gemini
    # ==========================================================================
    @property
    def GEMINI_API_KEY(self) -> Optional[str]:
        return os.environ.get("GEMINI_API_KEY")

    @property
    def GEMINI_MODEL(self) -> str:
        return os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")

    @property
    def EMBEDDING_MODEL(self) -> str:
        return os.environ.get("EMBEDDING_MODEL", "text-embedding-004")

    @property
    def EMBEDDING_DIM(self) -> int:
        return int(os.environ.get("EMBEDDING_DIM", "768"))

    # ==========================================================================
    # Retrieval
    # ==========================================================================
    @property
    def ADAPTER_TIMEOUT_S(self) -> float:
        return float(os.environ.get("CONFESSIO_ADAPTER_TIMEOUT_S", "8.0"))

    @property
    def USE_LLM_FILTERS(self) -> bool:
        return _env_flag("CONFESSIO_USE_LLM_FILTERS")

    @property
    def LOG_LEVEL(self) -> str:
        return os.environ.get("LOG_LEVEL", "INFO")

    # Per-source fusion weights (sum to 1.0)
    SEARCH_WEIGHTS = {
        "vector": 0.5,
        "lexical": 0.35,
        "relational": 0.15,
    }

    FINAL_RESULT_COUNT = 5
    VECTOR_TOP_K = 5
    LEXICAL_TOP_K = 5
    LEXICAL_RETRY_TOP_K = 3
    RELATIONAL_TOP_K = 5

    # Below this average final score the context is logged as weak
    LOW_CONFIDENCE_THRESHOLD = 0.6

    # ==========================================================================
    # Validation
    # ==========================================================================
    def validate(self) -> list[str]:
        """Return list of configuration errors."""
        errors = []

        if not self.PROJECT_ROOT.exists():
            errors.append(f"PROJECT_ROOT does not exist: {self.PROJECT_ROOT}")

        if not self.GEMINI_API_KEY:
            errors.append("GEMINI_API_KEY not set")

        if not self.NEO4J_PASSWORD:
            errors.append("NEO4J_PASSWORD not set")

        if self.VOCABULARY_PATH and not self.VOCABULARY_PATH.exists():
            errors.append(f"CONFESSIO_VOCABULARY_PATH does not exist: {self.VOCABULARY_PATH}")

        if self.EMBEDDING_DIM != 768:
            errors.append(
                f"Non-standard embedding dimension: {self.EMBEDDING_DIM}. "
                "Stored vectors are 768-dimensional."
            )

        if abs(sum(self.SEARCH_WEIGHTS.values()) - 1.0) > 1e-9:
            errors.append("SEARCH_WEIGHTS must sum to 1.0")

        return errors

    def __repr__(self) -> str:
        return (
            f"Config(\n"
            f"  PROJECT_ROOT={self.PROJECT_ROOT}\n"
            f"  POSTGRES_DSN={self.POSTGRES_DSN[:30]}...\n"
            f"  NEO4J_URI={self.NEO4J_URI}\n"
            f"  GEMINI_MODEL={self.GEMINI_MODEL}\n"
            f"  EMBEDDING_MODEL={self.EMBEDDING_MODEL}\n"
            f")"
        )


# Global config instance
config = Config()


# Convenience exports
POSTGRES_DSN = config.POSTGRES_DSN
NEO4J_URI = config.NEO4J_URI
NEO4J_USER = config.NEO4J_USER
NEO4J_PASSWORD = config.NEO4J_PASSWORD
GEMINI_API_KEY = config.GEMINI_API_KEY
GEMINI_MODEL = config.GEMINI_MODEL
EMBEDDING_MODEL = config.EMBEDDING_MODEL
EMBEDDING_DIM = config.EMBEDDING_DIM
