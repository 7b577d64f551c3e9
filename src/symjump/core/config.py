"""
SymJump Configuration Module

Centralized, instance-based configuration for extraction, recency scoring,
ranking, and logging.  Every component receives its settings from a
:class:`SymJumpConfig` rather than from module globals so that several
clients (different roots, different stores) can coexist in one process.
"""

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass
class SymJumpConfig:
    """
    Instance-based configuration for SymJump.

    Create from environment variables::

        config = SymJumpConfig.from_env()

    Or with explicit values::

        config = SymJumpConfig(rg_binary="/opt/bin/rg", max_workers=8)
    """

    # ── ripgrep ───────────────────────────────────────────────────
    rg_binary: str = "rg"
    rg_timeout_seconds: float = 10.0
    rg_max_output_bytes: int = 10 * 1024 * 1024
    rg_max_filesize: str = "1M"  # skips generated / minified files
    max_workers: int = 4

    # ── Persistent state ──────────────────────────────────────────
    state_dir: str = str(Path.home() / ".symjump")
    state_db_name: str = "state.db"
    recency_store_key: str = "symjump.recencyEntries"
    last_command_store_key: str = "symjump.lastCommand"

    # ── Recency scoring ───────────────────────────────────────────
    max_recency_entries: int = 1000
    recency_weight: float = 0.7  # recency vs. frequency inside a recency score
    decay_factor: float = 0.9    # per hour
    max_age_hours: float = 48.0  # recency stops decaying past this age
    frequency_cap: int = 50
    max_score: float = 100.0

    # ── Ranking ───────────────────────────────────────────────────
    fuzzy_weight: float = 0.6
    recency_rank_weight: float = 0.4
    max_visible_items: int = 20

    # ── Logging ───────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # ── Factory ───────────────────────────────────────────────────

    @classmethod
    def from_env(cls) -> "SymJumpConfig":
        """Build a config snapshot from current environment variables.

        Reads :envvar:`SYMJUMP_RG`, :envvar:`SYMJUMP_RG_TIMEOUT`,
        :envvar:`SYMJUMP_MAX_WORKERS`, :envvar:`SYMJUMP_STATE_DIR` and
        :envvar:`SYMJUMP_LOG_LEVEL`.
        """
        return cls(
            rg_binary=os.getenv("SYMJUMP_RG", "rg"),
            rg_timeout_seconds=float(os.getenv("SYMJUMP_RG_TIMEOUT", "10")),
            max_workers=int(os.getenv("SYMJUMP_MAX_WORKERS", "4")),
            state_dir=os.getenv("SYMJUMP_STATE_DIR", str(Path.home() / ".symjump")),
            log_level=os.getenv("SYMJUMP_LOG_LEVEL", "INFO").upper(),
        )

    # ── Validation & Accessors ────────────────────────────────────

    def validate(self) -> bool:
        """
        Check that numeric settings are in range.

        Raises :class:`~symjump.exceptions.ConfigError` on failure.
        """
        from symjump.exceptions import ConfigError

        if self.rg_timeout_seconds <= 0:
            raise ConfigError(
                f"rg_timeout_seconds must be positive (got {self.rg_timeout_seconds}).\n"
                "  Set via: export SYMJUMP_RG_TIMEOUT=10"
            )
        if self.rg_max_output_bytes <= 0:
            raise ConfigError("rg_max_output_bytes must be positive.")
        if self.max_workers < 1:
            raise ConfigError(
                f"max_workers must be at least 1 (got {self.max_workers}).\n"
                "  Set via: export SYMJUMP_MAX_WORKERS=4"
            )
        if self.max_recency_entries < 1:
            raise ConfigError("max_recency_entries must be at least 1.")
        if self.frequency_cap < 1:
            raise ConfigError("frequency_cap must be at least 1.")
        if not 0.0 < self.decay_factor <= 1.0:
            raise ConfigError(f"decay_factor must be in (0, 1] (got {self.decay_factor}).")
        for name in ("recency_weight", "fuzzy_weight", "recency_rank_weight"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must be between 0 and 1 (got {value}).")
        if self.max_visible_items < 1:
            raise ConfigError("max_visible_items must be at least 1.")
        return True

    def get_state_path(self) -> Path:
        """Path of the SQLite file backing the persistent store."""
        return Path(self.state_dir).expanduser() / self.state_db_name
