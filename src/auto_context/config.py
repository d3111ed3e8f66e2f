"""Centralised application settings loaded from environment / .env file."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """All runtime configuration for the auto-context engine and service.

    Values are read from environment variables first, then from a *.env* file
    located at the project root.  Every variable lives in one flat namespace;
    the engine thresholds below are the policy knobs most likely to be
    recalibrated and are converted into an :class:`EngineConfig` by
    :meth:`EngineConfig.from_settings`.
    """

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Rules ─────────────────────────────────────────────────
    rules_file: str = ""  # JSON rule set replacing the defaults when set

    # ── Signal window / underground ───────────────────────────
    signal_window_seconds: float = 8.0
    walk_autocorr_threshold: float = 0.35
    underground_strong_confidence: float = 0.55

    # ── Fork selection ────────────────────────────────────────
    fork_gps_loss_seconds: float = 25.0
    fork_hysteresis_seconds: float = 12.0

    # ── Cooking detection ─────────────────────────────────────
    cooking_ewma_alpha: float = 0.02
    cooking_confirm_seconds: float = 180.0
    cooking_hold_seconds: float = 600.0
    cooking_min_score: float = 0.60

    # ── API server ────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = int(os.getenv("PORT", "8000"))
    api_secret_key: str = "change-me-to-a-random-secret"
    cors_origins: str = "*"  # comma-separated origins, or "*" for all

    # ── Places (GPS home / work presence when set) ────────────
    home_lat: float | None = None
    home_lon: float | None = None
    work_lat: float | None = None
    work_lon: float | None = None
    area_radius_m: float = 150.0

    # ── Streaming ─────────────────────────────────────────────
    pipeline_maxsize: int = 10_000

    # ── Logging ───────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Return a cached :class:`Settings` singleton."""
    return Settings()
