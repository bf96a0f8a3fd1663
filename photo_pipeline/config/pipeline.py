"""
Pipeline configuration.

Resolution order for every field:
  1. Environment variable (PIPELINE_BATCH_SIZE, PIPELINE_MAX_ATTEMPTS, ...)
  2. YAML file named by PIPELINE_CONFIG_PATH (keys identical to field names)
  3. Built-in default

Usage:
    from photo_pipeline.config.pipeline import load_pipeline_config

    config = load_pipeline_config()
    dispatcher = EnhancementDispatcher(store, provider, config)
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_JOB_DEADLINE_SECONDS = 45.0
DEFAULT_INVOCATION_BUDGET_SECONDS = 60.0

# field name -> (environment variable, parser)
_ENV_VARS = {
    "batch_size": ("PIPELINE_BATCH_SIZE", int),
    "max_attempts": ("PIPELINE_MAX_ATTEMPTS", int),
    "job_deadline_seconds": ("PIPELINE_JOB_DEADLINE_SECONDS", float),
    "invocation_budget_seconds": ("PIPELINE_INVOCATION_BUDGET_SECONDS", float),
    "cron_secret": ("CRON_SECRET", str),
}


class PipelineConfigError(ValueError):
    """Raised when pipeline configuration is missing or inconsistent."""
    pass


@dataclass(frozen=True)
class PipelineConfig:
    """
    Settings passed explicitly into the dispatcher and workers.

    Attributes:
        batch_size: Maximum jobs dispatched per invocation
        max_attempts: Claimed attempts before a job is FAILED
        job_deadline_seconds: Wall-clock bound on one provider call
        invocation_budget_seconds: Hard limit of the hosting platform per invocation
        cron_secret: Shared secret expected on the trigger endpoint
    """
    batch_size: int = DEFAULT_BATCH_SIZE
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    job_deadline_seconds: float = DEFAULT_JOB_DEADLINE_SECONDS
    invocation_budget_seconds: float = DEFAULT_INVOCATION_BUDGET_SECONDS
    cron_secret: Optional[str] = None

    @property
    def orphan_grace_seconds(self) -> float:
        """Age after which a PROCESSING claim is considered abandoned."""
        return 2 * self.job_deadline_seconds

    def validate(self) -> "PipelineConfig":
        if self.batch_size < 1:
            raise PipelineConfigError("batch_size must be at least 1")
        if self.max_attempts < 1:
            raise PipelineConfigError("max_attempts must be at least 1")
        if self.job_deadline_seconds <= 0:
            raise PipelineConfigError("job_deadline_seconds must be positive")
        if self.job_deadline_seconds >= self.invocation_budget_seconds:
            raise PipelineConfigError(
                "job_deadline_seconds must be shorter than invocation_budget_seconds "
                f"({self.job_deadline_seconds} >= {self.invocation_budget_seconds})"
            )
        return self

    @classmethod
    def from_mapping(cls, values: Dict[str, Any]) -> "PipelineConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise PipelineConfigError(f"Unknown pipeline settings: {sorted(unknown)}")

        coerced: Dict[str, Any] = {}
        for name, value in values.items():
            if value is None and name == "cron_secret":
                coerced[name] = None
                continue
            parse = _ENV_VARS[name][1]
            try:
                coerced[name] = parse(value)
            except (TypeError, ValueError) as e:
                raise PipelineConfigError(f"Invalid value for {name}: {value!r}") from e
        return cls(**coerced).validate()

    @classmethod
    def from_yaml(cls, path: str) -> "PipelineConfig":
        """Load settings from a YAML file; missing keys keep their defaults."""
        config_path = Path(path)
        if not config_path.exists():
            raise PipelineConfigError(f"Pipeline config file not found: {path}")

        with open(config_path, "r") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise PipelineConfigError(f"Pipeline config must be a mapping: {path}")

        logger.info("Loading pipeline config from %s", config_path)
        return cls.from_mapping(raw)

    @classmethod
    def from_env(cls, base: Optional["PipelineConfig"] = None) -> "PipelineConfig":
        """Overlay environment variables on top of base (or the defaults)."""
        overrides: Dict[str, Any] = {}
        for name, (env_var, parse) in _ENV_VARS.items():
            raw = os.getenv(env_var)
            if raw is None or raw == "":
                continue
            try:
                overrides[name] = parse(raw)
            except ValueError as e:
                raise PipelineConfigError(f"Invalid value for {env_var}: {raw!r}") from e

        return replace(base or cls(), **overrides).validate()


def load_pipeline_config() -> PipelineConfig:
    """Resolve the effective configuration (env over YAML over defaults)."""
    path = os.getenv("PIPELINE_CONFIG_PATH")
    base = PipelineConfig.from_yaml(path) if path else None
    return PipelineConfig.from_env(base)
