# SPDX-License-Identifier: Apache-2.0
"""Narrative ruleset engine and its NeMo Data Designer plugin.

Derives per-project writing constraints for AI-assisted script generation,
layers project and run overrides over them, scores generated text against the
resulting thresholds and builds repair instructions for failed units. Pure
functions, no LLM calls, no I/O.

Usage::

    from data_designer_narrative_ruleset import (
        analyze_script, derive_engine_profile, merge_ruleset,
    )

    profile = derive_engine_profile("vertical_drama", influencers)
    profile = merge_ruleset(profile, None, project_overrides, run_overrides)
    result = analyze_script(draft, profile, recent_fingerprints=recent)
    if not result["passed"]:
        redraft(result["repair_instruction"])

The Data Designer column config is importable from
``data_designer_narrative_ruleset.config`` when Data Designer is installed.
"""

from data_designer_narrative_ruleset.analysis import analyze_script
from data_designer_narrative_ruleset.conflicts import Conflict, detect_conflicts
from data_designer_narrative_ruleset.defaults import get_default_engine_profile, supported_lanes
from data_designer_narrative_ruleset.derive import DerivationWeights, derive_engine_profile
from data_designer_narrative_ruleset.fingerprint import (
    Fingerprint,
    SimilarityParameters,
    compute_ruleset_fingerprint,
    compute_ruleset_similarity_risk,
    get_diversification_hints,
)
from data_designer_narrative_ruleset.gate import GateFailureCode, GateParameters, GateResult, run_ruleset_gate
from data_designer_narrative_ruleset.merge import apply_overrides, merge_ruleset
from data_designer_narrative_ruleset.profile import (
    ConfigurationError,
    EngineProfile,
    Influencer,
    InvalidFingerprint,
    InvalidOverride,
    InvalidProfile,
    Lane,
    Override,
    UnknownLane,
)
from data_designer_narrative_ruleset.repair import build_ruleset_repair_instruction
from data_designer_narrative_ruleset.scoring import (
    Metrics,
    ScoringWeights,
    compute_ruleset_melodrama_score,
    compute_ruleset_metrics,
    compute_ruleset_nuance_score,
    detect_forbidden_moves,
)
from data_designer_narrative_ruleset.summary import build_ruleset_prompt_block, generate_rules_summary

__all__ = [
    "ConfigurationError",
    "Conflict",
    "DerivationWeights",
    "EngineProfile",
    "Fingerprint",
    "GateFailureCode",
    "GateParameters",
    "GateResult",
    "Influencer",
    "InvalidFingerprint",
    "InvalidOverride",
    "InvalidProfile",
    "Lane",
    "Metrics",
    "Override",
    "ScoringWeights",
    "SimilarityParameters",
    "UnknownLane",
    "analyze_script",
    "apply_overrides",
    "build_ruleset_prompt_block",
    "build_ruleset_repair_instruction",
    "compute_ruleset_fingerprint",
    "compute_ruleset_melodrama_score",
    "compute_ruleset_metrics",
    "compute_ruleset_nuance_score",
    "compute_ruleset_similarity_risk",
    "derive_engine_profile",
    "detect_conflicts",
    "detect_forbidden_moves",
    "generate_rules_summary",
    "get_default_engine_profile",
    "get_diversification_hints",
    "merge_ruleset",
    "run_ruleset_gate",
    "supported_lanes",
]
