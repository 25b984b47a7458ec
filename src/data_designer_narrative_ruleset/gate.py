# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from data_designer_narrative_ruleset.profile import EngineProfile
from data_designer_narrative_ruleset.scoring import (
    Metrics,
    ScoringWeights,
    compute_ruleset_melodrama_score,
    compute_ruleset_nuance_score,
    detect_forbidden_moves,
)

logger = logging.getLogger(__name__)


class GateFailureCode(str, Enum):
    FORBIDDEN_MOVE_PRESENT = "FORBIDDEN_MOVE_PRESENT"
    TWIST_OVERUSE = "TWIST_OVERUSE"
    MELODRAMA = "MELODRAMA"
    OVERCOMPLEXITY = "OVERCOMPLEXITY"
    SUBTEXT_MISSING = "SUBTEXT_MISSING"
    STAKES_TOO_BIG_TOO_EARLY = "STAKES_TOO_BIG_TOO_EARLY"
    TEMPLATE_SIMILARITY = "TEMPLATE_SIMILARITY"
    QUIET_BEATS_MISSING = "QUIET_BEATS_MISSING"
    MEANING_SHIFT_MISSING = "MEANING_SHIFT_MISSING"


@dataclass(frozen=True)
class GateParameters:
    """Tunable ceilings for the gate checks that are not read from the profile."""

    # Allowed twist keywords per 1000 words: base + per_cap * budgets.twist_cap.
    twist_rate_base: float = 2.0
    twist_rate_per_cap: float = 3.0

    # More early shock events than this fails STAKES_TOO_BIG_TOO_EARLY.
    shock_early_count_max: int = 2

    # Final deliveries are held to a tighter melodrama ceiling.
    final_melodrama_factor: float = 0.9
    regression_tolerance: float = 0.05


DEFAULT_GATE_PARAMETERS = GateParameters()


@dataclass(frozen=True)
class GateResult:
    failures: tuple[str, ...]
    melodrama_score: float
    nuance_score: float
    forbidden_moves_found: tuple[str, ...] = ()
    similarity_risk: float | None = None
    prior_score: float | None = None
    score_delta: float | None = None
    regressed: bool = False
    is_final: bool = False

    @property
    def passed(self) -> bool:
        return not self.failures

    def to_payload(self) -> dict[str, object]:
        return {
            "passed": self.passed,
            "failures": list(self.failures),
            "melodrama_score": round(self.melodrama_score, 4),
            "nuance_score": round(self.nuance_score, 4),
            "forbidden_moves_found": list(self.forbidden_moves_found),
            "similarity_risk": None if self.similarity_risk is None else round(self.similarity_risk, 4),
            "prior_score": self.prior_score,
            "score_delta": None if self.score_delta is None else round(self.score_delta, 4),
            "regressed": self.regressed,
            "is_final": self.is_final,
        }


def twist_rate_ceiling(profile: EngineProfile, params: GateParameters | None = None) -> float:
    p = params or DEFAULT_GATE_PARAMETERS
    return p.twist_rate_base + p.twist_rate_per_cap * profile.budgets.twist_cap


def melodrama_ceiling(profile: EngineProfile, is_final: bool, params: GateParameters | None = None) -> float:
    p = params or DEFAULT_GATE_PARAMETERS
    ceiling = profile.gate_thresholds.melodrama_max
    return ceiling * p.final_melodrama_factor if is_final else ceiling


def _is_overcomplex(metrics: Metrics, profile: EngineProfile) -> bool:
    return (
        metrics.plot_thread_count > profile.budgets.plot_thread_cap
        or metrics.named_faction_count > profile.gate_thresholds.complexity_factions_max
        or metrics.new_character_rate > profile.gate_thresholds.complexity_core_chars_max
    )


def run_ruleset_gate(
    metrics: Metrics,
    text: str,
    profile: EngineProfile,
    prior_score: float | None = None,
    is_final: bool = False,
    *,
    similarity_risk: float | None = None,
    params: GateParameters | None = None,
    weights: ScoringWeights | None = None,
) -> GateResult:
    """Check scored text against the profile's thresholds.

    Args:
        metrics: Output of ``compute_ruleset_metrics(text)``.
        text: The generated text, searched for forbidden moves.
        profile: Resolved ruleset profile.
        prior_score: Nuance score of the previous attempt. Only used to report
            a regression; it never changes which checks run.
        is_final: Delivery pass. Adds the quiet-beat and meaning-shift checks
            and tightens the melodrama ceiling.
        similarity_risk: Optional risk from ``compute_ruleset_similarity_risk``,
            checked against ``gate_thresholds.similarity_max``.
        params: Optional gate tuning overrides.
        weights: Optional scoring weight overrides.

    Returns:
        A :class:`GateResult`; it passed when ``failures`` is empty.
    """
    p = params or DEFAULT_GATE_PARAMETERS
    failures: list[GateFailureCode] = []

    found = detect_forbidden_moves(text, profile.forbidden_moves)
    if found:
        failures.append(GateFailureCode.FORBIDDEN_MOVE_PRESENT)

    if metrics.twist_keyword_rate > twist_rate_ceiling(profile, p):
        failures.append(GateFailureCode.TWIST_OVERUSE)

    melodrama = compute_ruleset_melodrama_score(metrics, weights)
    if melodrama > melodrama_ceiling(profile, is_final, p):
        failures.append(GateFailureCode.MELODRAMA)

    if _is_overcomplex(metrics, profile):
        failures.append(GateFailureCode.OVERCOMPLEXITY)

    if metrics.subtext_scene_count < profile.pacing_profile.subtext_scenes_min:
        failures.append(GateFailureCode.SUBTEXT_MISSING)

    if metrics.shock_early_count > p.shock_early_count_max:
        failures.append(GateFailureCode.STAKES_TOO_BIG_TOO_EARLY)

    if similarity_risk is not None and similarity_risk > profile.gate_thresholds.similarity_max:
        failures.append(GateFailureCode.TEMPLATE_SIMILARITY)

    if is_final:
        if metrics.quiet_beats_count < profile.pacing_profile.quiet_beats_min:
            failures.append(GateFailureCode.QUIET_BEATS_MISSING)
        if metrics.meaning_shift_count < profile.pacing_profile.meaning_shifts_min_per_act:
            failures.append(GateFailureCode.MEANING_SHIFT_MISSING)

    nuance = compute_ruleset_nuance_score(metrics, weights)
    score_delta = None if prior_score is None else nuance - prior_score
    regressed = score_delta is not None and score_delta < -p.regression_tolerance

    if failures:
        logger.debug(f"Ruleset gate failed for {profile.lane.value}: {', '.join(f.value for f in failures)}")
    if regressed:
        logger.debug(f"Nuance score regressed from {prior_score:.3f} to {nuance:.3f}")

    return GateResult(
        failures=tuple(f.value for f in failures),
        melodrama_score=melodrama,
        nuance_score=nuance,
        forbidden_moves_found=tuple(found),
        similarity_risk=similarity_risk,
        prior_score=prior_score,
        score_delta=score_delta,
        regressed=regressed,
        is_final=is_final,
    )
