# SPDX-License-Identifier: Apache-2.0
# Internal-contradiction checks for a resolved profile.
#
# Conflicts are data for the caller to act on. Each rule compares the profile
# against its own lane default and runs independently of the others.

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal

from data_designer_narrative_ruleset.defaults import get_default_engine_profile, is_essential_guardrail
from data_designer_narrative_ruleset.profile import EngineProfile

Severity = Literal["soft", "hard"]


@dataclass(frozen=True)
class ConflictMargins:
    """How far a profile may drift from its lane default before it conflicts."""

    twist_margin: int = 1
    stakes_margin: float = 0.05


DEFAULT_CONFLICT_MARGINS = ConflictMargins()


@dataclass(frozen=True)
class Conflict:
    id: str
    severity: Severity
    message: str
    dimension: str
    inferred_value: str
    expected_value: str

    @property
    def is_hard(self) -> bool:
        return self.severity == "hard"

    def to_payload(self) -> dict[str, object]:
        return {
            "id": self.id,
            "severity": self.severity,
            "message": self.message,
            "dimension": self.dimension,
            "inferred_value": self.inferred_value,
            "expected_value": self.expected_value,
        }


_ConflictRule = Callable[[EngineProfile, EngineProfile, ConflictMargins], list[Conflict]]


def _rule_twist_vs_restraint(profile: EngineProfile, default: EngineProfile, margins: ConflictMargins) -> list[Conflict]:
    twist_cap = profile.budgets.twist_cap
    expected = default.budgets.twist_cap
    if twist_cap <= expected + margins.twist_margin:
        return []
    return [
        Conflict(
            "twist_vs_restraint", "soft",
            f"Twist cap ({twist_cap}) exceeds lane default ({expected}).",
            "twist_budget", str(twist_cap), str(expected),
        )
    ]


def _rule_early_global_stakes(profile: EngineProfile, default: EngineProfile, margins: ConflictMargins) -> list[Conflict]:
    pct = profile.stakes_ladder.no_global_before_pct
    expected = default.stakes_ladder.no_global_before_pct
    floor = round(expected - margins.stakes_margin, 6)
    if pct >= floor:
        return []
    return [
        Conflict(
            "early_global_stakes", "soft",
            f"Global stakes earlier ({round(pct * 100)}%) than default ({round(expected * 100)}%).",
            "stakes_ladder", str(pct), str(expected),
        )
    ]


def _rule_missing_forbidden(profile: EngineProfile, default: EngineProfile, _margins: ConflictMargins) -> list[Conflict]:
    present = set(profile.forbidden_moves)
    conflicts = []
    for move in default.forbidden_moves:
        if move in present:
            continue
        conflicts.append(
            Conflict(
                f"missing_forbidden_{move}",
                "hard" if is_essential_guardrail(move) else "soft",
                f'Default forbidden move "{move}" not in profile.',
                "forbidden_moves", "allowed", "forbidden",
            )
        )
    return conflicts


def _rule_thread_cap_exceeds_gate(profile: EngineProfile, _default: EngineProfile, _margins: ConflictMargins) -> list[Conflict]:
    cap = profile.budgets.plot_thread_cap
    gate_max = profile.gate_thresholds.complexity_threads_max
    if cap <= gate_max:
        return []
    return [
        Conflict(
            "thread_cap_exceeds_gate", "soft",
            f"Plot thread cap ({cap}) is above the gate's complexity limit ({gate_max}).",
            "plot_threads", str(cap), str(gate_max),
        )
    ]


_RULES: list[_ConflictRule] = [
    _rule_twist_vs_restraint,
    _rule_early_global_stakes,
    _rule_missing_forbidden,
    _rule_thread_cap_exceeds_gate,
]


def detect_conflicts(profile: EngineProfile, margins: ConflictMargins | None = None) -> list[Conflict]:
    """List the contradictions between ``profile`` and its lane's guardrails.

    An unmodified lane default always returns an empty list.
    """
    m = margins or DEFAULT_CONFLICT_MARGINS
    default = get_default_engine_profile(profile.lane)
    conflicts: list[Conflict] = []
    for rule in _RULES:
        conflicts.extend(rule(profile, default, m))
    return conflicts


def has_hard_conflict(conflicts: list[Conflict]) -> bool:
    return any(c.is_hard for c in conflicts)
