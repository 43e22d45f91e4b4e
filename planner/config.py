"""
Governance configuration

One immutable GovernanceConfig is built at startup (usually from the
environment) and handed to the governance engine and the scheduler. Nothing
downstream reads process state directly.

Environment variables:
- PROMPT_ENHANCEMENT_MODE: strict | balanced | creative (default balanced)
- ENABLE_WORKER_ENHANCEMENTS, ENABLE_PROFILE_OVERRIDES, ENABLE_COST_CAPS,
  ENABLE_TIMEOUT_CAPS, ENABLE_QUALITY_GATES: "true" enables, anything else disables
- MAX_COST_PER_JOB (1.00), MAX_TOTAL_COST (10.00)
- MAX_JOB_TIMEOUT (600s), MAX_TOTAL_TIMEOUT (3600s)
- MIN_QUALITY_SCORE (0.3), MAX_RETRIES (3)
- BACKOFF_SECONDS (30), MAX_CONCURRENT_JOBS (3)
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


class PromptEnhancementMode(Enum):
    STRICT = "strict"
    BALANCED = "balanced"
    CREATIVE = "creative"


DEFAULT_PROFILE_OVERRIDES: Dict[str, Dict[str, Any]] = {
    "educational_explainer": {
        "prompt_enhancement_mode": PromptEnhancementMode.STRICT,
        "max_cost_per_job": 0.50,
        "max_total_cost": 5.00,
    },
    "ugc_testimonial": {
        "prompt_enhancement_mode": PromptEnhancementMode.BALANCED,
        "max_cost_per_job": 0.30,
        "max_total_cost": 3.00,
    },
    "ugc_reaction": {
        "prompt_enhancement_mode": PromptEnhancementMode.CREATIVE,
        "max_cost_per_job": 0.40,
        "max_total_cost": 4.00,
    },
    "marketing_dynamic": {
        "prompt_enhancement_mode": PromptEnhancementMode.CREATIVE,
        "max_cost_per_job": 1.00,
        "max_total_cost": 10.00,
    },
    "cinematic_trailer": {
        "prompt_enhancement_mode": PromptEnhancementMode.CREATIVE,
        "max_cost_per_job": 2.00,
        "max_total_cost": 20.00,
    },
}


@dataclass(frozen=True)
class GovernanceConfig:
    """Feature flags and operating caps, global with per-profile overrides"""

    # Prompt enhancement
    prompt_enhancement_mode: PromptEnhancementMode = PromptEnhancementMode.BALANCED
    enable_worker_enhancements: bool = True
    enable_profile_overrides: bool = True

    # Cost control (USD)
    enable_cost_caps: bool = True
    max_cost_per_job: float = 1.00
    max_total_cost: float = 10.00

    # Timeout control (seconds)
    enable_timeout_caps: bool = True
    max_job_timeout: int = 600
    max_total_timeout: int = 3600

    # Quality control
    enable_quality_gates: bool = True
    min_quality_score: float = 0.3

    # Retry policy
    max_retries: int = 3
    backoff_seconds: float = 30.0

    # Scheduling
    max_concurrent_jobs: int = 3

    profile_overrides: Dict[str, Dict[str, Any]] = field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_PROFILE_OVERRIDES.items()}
    )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GovernanceConfig":
        """Create config from environment variables (os.environ by default)"""
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        mode = env.get("PROMPT_ENHANCEMENT_MODE")
        if mode:
            try:
                values["prompt_enhancement_mode"] = PromptEnhancementMode(mode.lower())
            except ValueError:
                logger.warning(f"Invalid PROMPT_ENHANCEMENT_MODE '{mode}', using balanced")

        flags = {
            "ENABLE_WORKER_ENHANCEMENTS": "enable_worker_enhancements",
            "ENABLE_PROFILE_OVERRIDES": "enable_profile_overrides",
            "ENABLE_COST_CAPS": "enable_cost_caps",
            "ENABLE_TIMEOUT_CAPS": "enable_timeout_caps",
            "ENABLE_QUALITY_GATES": "enable_quality_gates",
        }
        for env_name, attr in flags.items():
            if env.get(env_name) is not None:
                values[attr] = env[env_name].strip().lower() == "true"

        numbers = {
            "MAX_COST_PER_JOB": ("max_cost_per_job", float),
            "MAX_TOTAL_COST": ("max_total_cost", float),
            "MAX_JOB_TIMEOUT": ("max_job_timeout", int),
            "MAX_TOTAL_TIMEOUT": ("max_total_timeout", int),
            "MIN_QUALITY_SCORE": ("min_quality_score", float),
            "MAX_RETRIES": ("max_retries", int),
            "BACKOFF_SECONDS": ("backoff_seconds", float),
            "MAX_CONCURRENT_JOBS": ("max_concurrent_jobs", int),
        }
        for env_name, (attr, cast) in numbers.items():
            raw = env.get(env_name)
            if not raw:
                continue
            try:
                values[attr] = cast(raw)
            except ValueError:
                logger.warning(f"Ignoring {env_name}={raw!r}: not a valid {cast.__name__}")

        return cls(**values)

    def with_overrides(self, overrides: Mapping[str, Any]) -> "GovernanceConfig":
        """Shallow-merge `overrides` on top of this config"""
        known = {f.name for f in fields(self)} - {"profile_overrides"}
        accepted = {}
        for key, value in overrides.items():
            if key not in known:
                logger.warning(f"Ignoring unknown governance override '{key}'")
                continue
            if key == "prompt_enhancement_mode" and not isinstance(value, PromptEnhancementMode):
                value = PromptEnhancementMode(value)
            accepted[key] = value
        return replace(self, **accepted)

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            if f.name == "profile_overrides":
                value = {
                    profile: {k: (v.value if isinstance(v, Enum) else v) for k, v in override.items()}
                    for profile, override in value.items()
                }
            data[f.name] = value
        return data
