"""
Centralized configuration management.

Configuration is loaded from:
1. Environment variables
2. .env file (if present)
3. Default values

Usage:
    from voterlookup.config import get_config
    config = get_config()
    print(config.db.is_configured)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple


def _load_dotenv(dotenv_path: Optional[Path] = None) -> None:
    """
    Minimal .env loader (no external dependency).

    Supports KEY=VALUE, ignores blank lines and comments (#).
    Does not override existing environment variables.
    """
    if dotenv_path is None:
        dotenv_path = Path(__file__).resolve().parent.parent / ".env"

    if not dotenv_path.exists() or not dotenv_path.is_file():
        return

    for raw_line in dotenv_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if not key:
            continue
        # Only set if not already in environment
        if os.getenv(key) in (None, ""):
            os.environ[key] = value


# Load .env on module import
_load_dotenv()


def _get_bool_env(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    value = os.getenv(key, "").strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    return default


def _get_int_env(key: str, default: int) -> int:
    """Get integer from environment variable."""
    value = os.getenv(key, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float_env(key: str, default: float) -> float:
    """Get float from environment variable."""
    value = os.getenv(key, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass
class DBConfig:
    """Database configuration (PostgreSQL)."""
    url: str = field(default_factory=lambda: os.getenv("DATABASE_URL", ""))
    host: str = field(default_factory=lambda: os.getenv("DB_HOST", ""))
    port: int = field(default_factory=lambda: _get_int_env("DB_PORT", 5432))
    name: str = field(default_factory=lambda: os.getenv("DB_NAME", ""))
    user: str = field(default_factory=lambda: os.getenv("DB_USER", ""))
    password: str = field(default_factory=lambda: os.getenv("DB_PASSWORD", ""))
    schema: str = field(default_factory=lambda: os.getenv("DB_SCHEMA", "public"))
    ssl_mode: str = field(default_factory=lambda: os.getenv("DB_SSL_MODE", "prefer"))
    connect_timeout: int = field(default_factory=lambda: _get_int_env("DB_CONNECT_TIMEOUT", 10))

    # Connection pool bounds
    pool_min: int = field(default_factory=lambda: _get_int_env("DB_POOL_MIN", 1))
    pool_max: int = field(default_factory=lambda: _get_int_env("DB_POOL_MAX", 10))

    @property
    def is_configured(self) -> bool:
        """Check if minimal DB config is present."""
        return bool(self.url or (self.host and self.name and self.user))

    def connect_kwargs(self) -> dict:
        """Keyword arguments for psycopg2.connect / pool constructors."""
        # pg_trgm functions are installed in public
        search_path = self.schema if self.schema == "public" else f"{self.schema},public"
        kwargs = {
            "connect_timeout": self.connect_timeout,
            "options": f"-c search_path={search_path}",
        }
        if self.url:
            kwargs["dsn"] = self.url
            return kwargs
        kwargs.update(
            host=self.host,
            port=self.port,
            dbname=self.name,
            user=self.user,
            password=self.password,
            sslmode=self.ssl_mode,
        )
        return kwargs


@dataclass
class SearchWeights:
    """
    Scoring constants for the ranked name search.

    Trigram tier scores are combined with GREATEST(), so each value is a
    candidate score on its own. Pattern tier scores are summed.
    """
    # Trigram tier: whole-string matching
    similarity_threshold: float = 0.3
    min_score: float = 0.2
    full_name_exact: float = 0.95
    relative_name_exact: float = 0.85

    # Trigram tier: per-word substring hits, first word weighted highest
    word_pattern_base: float = 0.6
    word_pattern_decay: float = 0.05
    relative_name_penalty: float = 0.1

    # Trigram tier: categorical bonuses by number of words matched
    all_words_bonus: float = 1.0
    three_of_three_bonus: float = 0.9
    two_of_three_bonus: float = 0.5
    most_words_fraction: float = 0.67
    most_words_bonus: float = 0.5
    half_words_fraction: float = 0.5
    half_words_bonus: float = 0.3
    two_words_bonus: float = 0.2

    # Optionally drop multi-word results matching fewer than N query words.
    # Off by default: whole-string similarity admits typo matches.
    require_word_quorum: bool = False
    min_words_for_multiword: int = 2

    # Pattern tier (additive)
    pattern_full_name_exact: int = 10
    pattern_full_name_first_word: int = 8
    pattern_relative_name_exact: int = 7
    pattern_relative_name_first_word: int = 6
    pattern_full_name_word_base: int = 5
    pattern_relative_name_word_base: int = 4
    pattern_word_decay: int = 1

    def word_pattern_score(self, index: int, relative: bool = False) -> float:
        """Score for the index-th query word found as a substring."""
        score = self.word_pattern_base - index * self.word_pattern_decay
        if relative:
            score -= self.relative_name_penalty
        return round(max(score, 0.0), 4)

    def pattern_word_score(self, index: int, relative: bool = False) -> int:
        """Pattern-tier weight for the index-th word; never negative."""
        base = self.pattern_relative_name_word_base if relative else self.pattern_full_name_word_base
        return max(base - index * self.pattern_word_decay, 0)


@dataclass
class SearchConfig:
    """Voter search configuration."""
    result_limit: int = field(default_factory=lambda: _get_int_env("SEARCH_RESULT_LIMIT", 50))
    epic_limit: int = field(default_factory=lambda: _get_int_env("SEARCH_EPIC_LIMIT", 50))
    chat_results: int = field(default_factory=lambda: _get_int_env("SEARCH_CHAT_RESULTS", 5))
    trigram_extension: str = field(
        default_factory=lambda: os.getenv("SEARCH_TRIGRAM_EXTENSION", "pg_trgm")
    )
    weights: SearchWeights = field(default_factory=lambda: SearchWeights(
        similarity_threshold=_get_float_env("SEARCH_SIMILARITY_THRESHOLD", 0.3),
        min_score=_get_float_env("SEARCH_MIN_SCORE", 0.2),
        require_word_quorum=_get_bool_env("SEARCH_REQUIRE_WORD_QUORUM", False),
    ))


# Ward sets: name -> (aliases, default wards)
DEFAULT_WARD_SETS: Dict[str, Tuple[Tuple[str, ...], str]] = {
    "165": (("165", "ward165", "ward-165"), "165"),
    "170": (("170", "ward170", "ward-170"), "170"),
    "168": (("168", "ward168", "ward-168"), "168"),
    "multiple": (("multiple", "all", "voters", "multi"), "140,141,143,144,145,146,147,148"),
}


def _parse_wards(value: str) -> List[str]:
    return [w.strip() for w in value.split(",") if w.strip()]


@dataclass
class WardSet:
    """A named group of wards served by one deployment."""
    name: str
    aliases: Tuple[str, ...]
    wards: List[str]


@dataclass
class WardConfig:
    """Ward-set configuration. Each set can be overridden by WARD_SET_<NAME>."""
    sets: List[WardSet] = field(default_factory=lambda: [
        WardSet(
            name=name,
            aliases=aliases,
            wards=_parse_wards(os.getenv(f"WARD_SET_{name.upper()}", "") or default),
        )
        for name, (aliases, default) in DEFAULT_WARD_SETS.items()
    ])
    configured_ward: str = field(
        default_factory=lambda: os.getenv("CONFIGURED_WARD") or os.getenv("NEXT_PUBLIC_WARD") or "140"
    )

    @property
    def default_wards(self) -> List[str]:
        return _parse_wards(self.configured_ward)

    def all_wards(self) -> List[str]:
        """Every ward in any configured set, in first-seen order."""
        seen: List[str] = []
        for ward in [w for s in self.sets for w in s.wards] + self.default_wards:
            if ward not in seen:
                seen.append(ward)
        return seen


@dataclass
class Config:
    """
    Main application configuration.

    All settings are loaded from environment variables with sensible defaults.
    Set DEBUG=1 in environment to enable debug mode.
    """

    # Base directory (project root)
    base_dir: Path = field(default_factory=lambda: Path(__file__).resolve().parent.parent)
    logs_dir: Path = field(default=None)

    # Debug mode (enables verbose logging)
    debug: bool = field(default_factory=lambda: _get_bool_env("DEBUG", False))
    log_to_file: bool = field(default_factory=lambda: _get_bool_env("LOG_TO_FILE", False))

    # HTTP server
    api_host: str = field(default_factory=lambda: os.getenv("API_HOST", "127.0.0.1"))
    api_port: int = field(default_factory=lambda: _get_int_env("API_PORT", 8000))

    # Sub-configurations
    db: DBConfig = field(default_factory=DBConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    wards: WardConfig = field(default_factory=WardConfig)

    def __post_init__(self):
        """Resolve paths after initialization."""
        if self.logs_dir is None:
            self.logs_dir = self.base_dir / os.getenv("LOG_DIR", "logs")


# Global config instance (lazily initialized)
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _config
    _config = None
