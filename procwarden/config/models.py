# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of ProcWarden, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Configuration module for ProcWarden.

Defines Pydantic models for ``procwarden.json`` (the ordered list of
processes to supervise plus supervisor timing knobs) and a loader that
always reads the file fresh, so ``start``/``restart`` pick up edits.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from procwarden.exceptions import ConfigError, ConfigNotFoundError, ConfigurationMissing

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class ProcessSpec(BaseModel):
    """Launch specification of one managed process."""

    name: str = Field(min_length=1)
    command: str = Field(min_length=1)
    args: list[str] = []
    cwd: str | None = None  # None = supervisor's own working directory
    env: dict[str, str] = {}
    restart_delay_ms: int = Field(default=2000, ge=0)
    max_restarts: int = Field(default=-1, ge=-1)  # -1 = unlimited, 0 = never

    @field_validator("env", mode="before")
    @classmethod
    def _stringify_env(cls, value: Any) -> Any:
        # Ports and flags are commonly written as bare numbers/booleans.
        if isinstance(value, dict):
            return {
                str(k): str(v).lower() if isinstance(v, bool) else str(v)
                for k, v in value.items()
            }
        return value

    @field_validator("args", mode="before")
    @classmethod
    def _stringify_args(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(v) for v in value]
        return value


class SupervisorSettings(BaseModel):
    """Timing knobs of the supervision engine."""

    start_stagger_sec: float = Field(default=0.5, ge=0)  # pause between start-all spawns
    restart_settle_sec: float = Field(default=1.0, ge=0)  # user restart: stop -> start
    restart_all_delay_sec: float = Field(default=2.0, ge=0)  # restart-all: stop-all -> start-all
    stop_grace_sec: float = Field(default=10.0, ge=0)  # SIGTERM -> SIGKILL escalation
    detached_check_interval_sec: float = Field(default=5.0, gt=0)


class ProcWardenConfig(BaseModel):
    version: int = 1
    apps: list[ProcessSpec] = []
    supervisor: SupervisorSettings = SupervisorSettings()

    @model_validator(mode="after")
    def _validate_unique_names(self) -> ProcWardenConfig:
        seen: set[str] = set()
        for spec in self.apps:
            if spec.name in seen:
                raise ValueError(f"duplicate process name '{spec.name}'")
            seen.add(spec.name)
        return self

    def get_spec(self, name: str) -> ProcessSpec:
        """Return the spec configured under *name*.

        Raises:
            ConfigurationMissing: If no app with that name is configured.
        """
        for spec in self.apps:
            if spec.name == name:
                return spec
        raise ConfigurationMissing(name)

    def names(self) -> list[str]:
        return [spec.name for spec in self.apps]


# ---------------------------------------------------------------------------
# Load / Save
# ---------------------------------------------------------------------------


def load_config(path: Path) -> ProcWardenConfig:
    """Load and validate the process list from *path*.

    Raises:
        ConfigNotFoundError: If the file does not exist.
        ConfigError: If the file cannot be read, parsed or validated.
    """
    if not path.is_file():
        raise ConfigNotFoundError(f"Config file {path} not found")

    logger.debug("Loading config from %s", path)
    try:
        data: dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
        config = ProcWardenConfig.model_validate(data)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse %s: %s", path, exc)
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc
    except ValidationError as exc:
        logger.error("Invalid config in %s: %s", path, exc)
        raise ConfigError(f"Invalid config in {path}: {exc}") from exc
    except OSError as exc:
        logger.error("Failed to read config from %s: %s", path, exc)
        raise ConfigError(f"Failed to read {path}: {exc}") from exc

    logger.info("Config loaded from %s (%d apps)", path, len(config.apps))
    return config


def save_config(config: ProcWardenConfig, path: Path) -> None:
    """Persist *config* to disk as pretty-printed JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = config.model_dump(mode="json")
    text = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    path.write_text(text, encoding="utf-8")
    logger.debug("Config saved to %s", path)
