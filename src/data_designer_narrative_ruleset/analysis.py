# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from data_designer_narrative_ruleset.fingerprint import (
    Fingerprint,
    SimilarityParameters,
    compute_ruleset_fingerprint,
    compute_ruleset_similarity_risk,
)
from data_designer_narrative_ruleset.gate import GateParameters, run_ruleset_gate
from data_designer_narrative_ruleset.profile import EngineProfile
from data_designer_narrative_ruleset.repair import build_ruleset_repair_instruction
from data_designer_narrative_ruleset.scoring import ScoringWeights, compute_ruleset_metrics


def analyze_script(
    text: str,
    profile: EngineProfile,
    *,
    recent_fingerprints: Sequence[Fingerprint | Mapping[str, Any]] = (),
    prior_score: float | None = None,
    is_final: bool = False,
    scoring_weights: ScoringWeights | None = None,
    gate_parameters: GateParameters | None = None,
    similarity_parameters: SimilarityParameters | None = None,
) -> dict:
    """Score, fingerprint and gate one generated unit.

    Args:
        text: The generated script text.
        profile: Resolved ruleset profile.
        recent_fingerprints: The caller's window of accepted fingerprints.
        prior_score: Nuance score of the previous attempt, for regression reporting.
        is_final: Apply the delivery checks.

    Returns:
        Dict with keys: passed, failures, melodrama_score, nuance_score,
        similarity_risk, regressed, forbidden_moves_found, metrics,
        fingerprint, repair_instruction (``None`` when the gate passed).
    """
    metrics = compute_ruleset_metrics(text, scoring_weights)
    fingerprint = compute_ruleset_fingerprint(text, profile)
    risk = compute_ruleset_similarity_risk(fingerprint, recent_fingerprints, similarity_parameters)
    gate = run_ruleset_gate(
        metrics, text, profile, prior_score, is_final,
        similarity_risk=risk, params=gate_parameters, weights=scoring_weights,
    )
    repair = None
    if not gate.passed:
        repair = build_ruleset_repair_instruction(gate.failures, profile, gate.forbidden_moves_found)

    return {
        "passed": gate.passed,
        "failures": list(gate.failures),
        "melodrama_score": round(gate.melodrama_score, 4),
        "nuance_score": round(gate.nuance_score, 4),
        "similarity_risk": round(risk, 4),
        "regressed": gate.regressed,
        "forbidden_moves_found": list(gate.forbidden_moves_found),
        "metrics": metrics.to_payload(),
        "fingerprint": fingerprint.to_payload(),
        "repair_instruction": repair,
    }
