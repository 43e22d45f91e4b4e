"""Governance engine: cost caps, timeout caps, quality gates and retry policy"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from planner.config import GovernanceConfig
from planner.models.manifest import ProductionJob

logger = logging.getLogger(__name__)

# Fraction of a cap at which an allowed request starts carrying a warning
WARNING_THRESHOLD = 0.8


@dataclass
class CapCheck:
    """Outcome of a cost or timeout cap check"""
    allowed: bool
    reason: Optional[str] = None   # Set when rejected
    warning: Optional[str] = None  # Set when allowed but close to a cap


@dataclass
class QualityGateResult:
    passed: bool
    reason: Optional[str] = None


@dataclass
class RetryPolicy:
    max_retries: int
    backoff_seconds: float


@dataclass
class AdmissionDecision:
    """Whether a job may be dispatched, with every reason and warning collected"""
    allowed: bool
    reasons: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def reason(self) -> Optional[str]:
        return "; ".join(self.reasons) if self.reasons else None


class GovernanceEngine:
    """
    Evaluates operating limits for a creative profile.

    Every check resolves the profile first: the global config with the
    profile's override object shallow-merged on top. An unknown profile (or
    overrides switched off) resolves to the global config unchanged.

    Example:
        engine = GovernanceEngine(GovernanceConfig.from_env())
        check = engine.check_cost_cap(8.1, 0.5, "marketing_dynamic")
        # CapCheck(allowed=True, warning="Approaching total cost limit: 8.60 / 10.00")
    """

    def __init__(self, config: Optional[GovernanceConfig] = None):
        self.config = config or GovernanceConfig()

    def flags_for_profile(self, profile_id: Optional[str]) -> GovernanceConfig:
        if not profile_id or not self.config.enable_profile_overrides:
            return self.config
        override = self.config.profile_overrides.get(profile_id)
        if not override:
            return self.config
        return self.config.with_overrides(override)

    def check_cost_cap(
        self,
        current_cost: float,
        additional_cost: float,
        profile_id: Optional[str] = None,
    ) -> CapCheck:
        """Check whether spending `additional_cost` on top of `current_cost` is allowed"""
        flags = self.flags_for_profile(profile_id)
        if not flags.enable_cost_caps:
            return CapCheck(allowed=True)

        total = current_cost + additional_cost
        if total > flags.max_total_cost:
            return CapCheck(
                allowed=False,
                reason=f"Total cost would exceed limit: {total:.2f} > {flags.max_total_cost:.2f}",
            )
        if additional_cost > flags.max_cost_per_job:
            return CapCheck(
                allowed=False,
                reason=f"Job cost would exceed limit: {additional_cost:.2f} > {flags.max_cost_per_job:.2f}",
            )

        if total > flags.max_total_cost * WARNING_THRESHOLD:
            return CapCheck(
                allowed=True,
                warning=f"Approaching total cost limit: {total:.2f} / {flags.max_total_cost:.2f}",
            )
        if additional_cost > flags.max_cost_per_job * WARNING_THRESHOLD:
            return CapCheck(
                allowed=True,
                warning=f"Approaching job cost limit: {additional_cost:.2f} / {flags.max_cost_per_job:.2f}",
            )
        return CapCheck(allowed=True)

    def check_timeout_cap(
        self,
        current_seconds: float,
        additional_seconds: float,
        profile_id: Optional[str] = None,
    ) -> CapCheck:
        """Check whether running `additional_seconds` more is within the timeout caps"""
        flags = self.flags_for_profile(profile_id)
        if not flags.enable_timeout_caps:
            return CapCheck(allowed=True)

        total = current_seconds + additional_seconds
        if total > flags.max_total_timeout:
            return CapCheck(
                allowed=False,
                reason=f"Total timeout would exceed limit: {total:g}s > {flags.max_total_timeout}s",
            )
        if additional_seconds > flags.max_job_timeout:
            return CapCheck(
                allowed=False,
                reason=f"Job timeout would exceed limit: {additional_seconds:g}s > {flags.max_job_timeout}s",
            )

        if total > flags.max_total_timeout * WARNING_THRESHOLD:
            return CapCheck(
                allowed=True,
                warning=f"Approaching total timeout limit: {total:g}s / {flags.max_total_timeout}s",
            )
        if additional_seconds > flags.max_job_timeout * WARNING_THRESHOLD:
            return CapCheck(
                allowed=True,
                warning=f"Approaching job timeout limit: {additional_seconds:g}s / {flags.max_job_timeout}s",
            )
        return CapCheck(allowed=True)

    def check_quality_gate(self, score: float, profile_id: Optional[str] = None) -> QualityGateResult:
        """Evaluated on a job's output, after it ran"""
        flags = self.flags_for_profile(profile_id)
        if not flags.enable_quality_gates:
            return QualityGateResult(passed=True)

        if score < flags.min_quality_score:
            return QualityGateResult(
                passed=False,
                reason=f"Quality score below minimum: {score:g} < {flags.min_quality_score:g}",
            )
        return QualityGateResult(passed=True)

    def job_timeout(self, profile_id: Optional[str] = None) -> Optional[float]:
        """Wall-clock limit for one worker call, or None when timeout caps are off"""
        flags = self.flags_for_profile(profile_id)
        if not flags.enable_timeout_caps:
            return None
        return float(flags.max_job_timeout)

    def retry_policy(self, profile_id: Optional[str] = None) -> RetryPolicy:
        flags = self.flags_for_profile(profile_id)
        return RetryPolicy(max_retries=flags.max_retries, backoff_seconds=flags.backoff_seconds)

    def admit_job(
        self,
        job: ProductionJob,
        spent_cost: float = 0.0,
        elapsed_seconds: float = 0.0,
        profile_id: Optional[str] = None,
    ) -> AdmissionDecision:
        """
        Decide whether `job` may be dispatched.

        Args:
            job: The job about to run
            spent_cost: Cost already incurred by the manifest
            elapsed_seconds: Planned seconds already consumed by the manifest
            profile_id: Creative profile of the manifest

        Returns:
            AdmissionDecision; a rejection is final for this job
        """
        decision = AdmissionDecision(allowed=True)

        checks = [self.check_cost_cap(spent_cost, job.estimated_cost, profile_id)]
        if job.estimated_duration_seconds:
            checks.append(self.check_timeout_cap(elapsed_seconds, job.estimated_duration_seconds, profile_id))

        for check in checks:
            if not check.allowed:
                decision.allowed = False
                decision.reasons.append(check.reason)
            elif check.warning:
                decision.warnings.append(check.warning)

        if not decision.allowed:
            logger.info(f"Job {job.id} rejected by governance: {decision.reason}")
        for warning in decision.warnings:
            logger.warning(f"Job {job.id}: {warning}")
        return decision

    # ------------------------------------------------------------
    # Job payload helpers
    # ------------------------------------------------------------

    def apply_flags_to_job(self, payload: Dict[str, Any], profile_id: Optional[str] = None) -> Dict[str, Any]:
        """Return a copy of `payload` carrying the resolved flags for the worker"""
        flags = self.flags_for_profile(profile_id)
        return {
            **payload,
            "feature_flags": {
                "prompt_enhancement_mode": flags.prompt_enhancement_mode.value,
                "enable_worker_enhancements": flags.enable_worker_enhancements,
                "max_cost_per_job": flags.max_cost_per_job,
                "max_total_cost": flags.max_total_cost,
                "max_job_timeout": flags.max_job_timeout,
                "max_total_timeout": flags.max_total_timeout,
                "max_retries": flags.max_retries,
            },
        }

    def validate_job(self, job: Dict[str, Any], profile_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Check a job description in isolation (no prior spend or elapsed time).

        Reads `estimated_cost`, `estimated_duration` and `quality_score` from
        the dict when present.

        Returns:
            Dict with `valid`, `warnings` and `errors`
        """
        flags = self.flags_for_profile(profile_id)
        warnings: List[str] = []
        errors: List[str] = []

        if flags.enable_cost_caps and job.get("estimated_cost"):
            check = self.check_cost_cap(0, job["estimated_cost"], profile_id)
            if not check.allowed:
                errors.append(check.reason)
            elif check.warning:
                warnings.append(check.warning)

        if flags.enable_timeout_caps and job.get("estimated_duration"):
            check = self.check_timeout_cap(0, job["estimated_duration"], profile_id)
            if not check.allowed:
                errors.append(check.reason)
            elif check.warning:
                warnings.append(check.warning)

        if flags.enable_quality_gates and job.get("quality_score") is not None:
            gate = self.check_quality_gate(job["quality_score"], profile_id)
            if not gate.passed:
                errors.append(gate.reason)

        return {"valid": not errors, "warnings": warnings, "errors": errors}

    def summary(self) -> Dict[str, Any]:
        """Global flags plus the resolved flags of every configured profile"""
        return {
            "global": self.config.to_dict(),
            "profiles": {
                profile_id: self.flags_for_profile(profile_id).to_dict()
                for profile_id in self.config.profile_overrides
            },
        }
