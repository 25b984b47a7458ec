# SPDX-License-Identifier: Apache-2.0
# Rewrite instructions for the drafting step after a failed gate.
#
# The instruction is passed verbatim to the next drafting call, so every cap
# it mentions is read from the profile rather than left implicit.

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Callable

from data_designer_narrative_ruleset.defaults import humanize_move
from data_designer_narrative_ruleset.gate import GateFailureCode
from data_designer_narrative_ruleset.profile import EngineProfile, Lane

logger = logging.getLogger(__name__)

_LANE_PRIORITIES: dict[Lane, tuple[str, ...]] = {
    Lane.VERTICAL_DRAMA: (
        "VERTICAL DRAMA PRIORITIES:",
        "- Keep the episode-ending cliffhanger, but build it from leverage, status and exposure, not violence.",
        "- Escalate through social leverage and reputational stakes the audience can read in seconds.",
        "- Keep stakes personal or social; nothing global before the final stretch.",
    ),
    Lane.FEATURE_FILM: (
        "FEATURE FILM PRIORITIES:",
        "- Protect the quiet beats: let tension live in behavior and silence, not exposition.",
        "- Earn each turn through character choice and its cost.",
        "- Prefer one meaning shift over another twist.",
    ),
    Lane.SERIES: (
        "SERIES PRIORITIES:",
        "- Keep obligations between recurring characters as the engine of each episode.",
        "- Hold back revelations the season has not earned yet.",
        "- Close the episode on a changed relationship rather than a shock.",
    ),
    Lane.DOCUMENTARY: (
        "DOCUMENTARY PRIORITIES:",
        "- Stay with what the record supports; cut invented drama and speculation.",
        "- Let procedure, documents and testimony carry the tension.",
        "- Give opposing voices their strongest legitimate case.",
    ),
}

_FOOTER = "CRITICAL: Do NOT add new plot elements. Only remove, replace, or reframe."

_SectionBuilder = Callable[[EngineProfile], list[str]]


def _melodrama(_profile: EngineProfile) -> list[str]:
    return [
        "REDUCE MELODRAMA:",
        "- Convert screaming confessions to withheld corrections.",
        "- Replace physical threats with resource withdrawal or social leverage.",
        "- Replace villain monologues with bureaucratic language.",
        "- Cut absolute language by half.",
    ]


def _overcomplexity(profile: EngineProfile) -> list[str]:
    b = profile.budgets
    gt = profile.gate_thresholds
    return [
        "REDUCE COMPLEXITY:",
        f"- Collapse plot threads to at most {b.plot_thread_cap} (plot_thread_cap = {b.plot_thread_cap}).",
        f"- Limit core characters to {b.core_character_cap}; introduce at most {gt.complexity_core_chars_max} new characters.",
        f"- Keep at most {gt.complexity_factions_max} named faction(s); remove the rest.",
    ]


def _subtext_missing(profile: EngineProfile) -> list[str]:
    minimum = profile.pacing_profile.subtext_scenes_min
    return [
        "ADD SUBTEXT:",
        f"- Include at least {minimum} subtext scenes (subtext_scenes_min = {minimum}).",
        "- For each, show what the character wants, what they won't say, what they say instead, their tactic and the tell.",
    ]


def _twist_overuse(profile: EngineProfile) -> list[str]:
    b = profile.budgets
    return [
        "REDUCE TWISTS:",
        f"- Keep at most {b.twist_cap} twist(s) and {b.big_reveal_cap} major reveal(s).",
        "- Replace removed twists with character insight.",
    ]


def _stakes_too_early(profile: EngineProfile) -> list[str]:
    pct = round(profile.stakes_ladder.no_global_before_pct * 100)
    early = "/".join(profile.stakes_ladder.early_allowed) or "personal"
    return [
        "REFRAME EARLY STAKES:",
        f"- Keep early stakes {early}; no global or life-threatening stakes before the final {pct}%.",
        "- Replace early violence with reputational, financial or procedural consequences.",
    ]


def _template_similarity(profile: EngineProfile) -> list[str]:
    return [
        "BREAK THE TEMPLATE:",
        f"- This unit repeats recent {profile.story_engine.value} / {profile.conflict_mode.value} patterns.",
        "- Change the inciting incident, the stakes type and the ending shape while keeping the ruleset.",
    ]


def _quiet_beats_missing(profile: EngineProfile) -> list[str]:
    minimum = profile.pacing_profile.quiet_beats_min
    return [
        "ADD QUIET BEATS:",
        f"- Include at least {minimum} quiet beats with tension carried by behavior, not dialogue.",
    ]


def _meaning_shift_missing(profile: EngineProfile) -> list[str]:
    minimum = profile.pacing_profile.meaning_shifts_min_per_act
    return [
        "ADD MEANING SHIFTS:",
        f"- Include at least {minimum} moment(s) per act that reinterpret existing information.",
    ]


_SECTIONS: dict[GateFailureCode, _SectionBuilder] = {
    GateFailureCode.MELODRAMA: _melodrama,
    GateFailureCode.OVERCOMPLEXITY: _overcomplexity,
    GateFailureCode.SUBTEXT_MISSING: _subtext_missing,
    GateFailureCode.TWIST_OVERUSE: _twist_overuse,
    GateFailureCode.STAKES_TOO_BIG_TOO_EARLY: _stakes_too_early,
    GateFailureCode.TEMPLATE_SIMILARITY: _template_similarity,
    GateFailureCode.QUIET_BEATS_MISSING: _quiet_beats_missing,
    GateFailureCode.MEANING_SHIFT_MISSING: _meaning_shift_missing,
}


def _forbidden_moves(profile: EngineProfile, found: Sequence[str]) -> list[str]:
    if found:
        lines = ["REMOVE FORBIDDEN MOVES:"]
        lines += [f"- Remove the {humanize_move(move)} entirely; do not replace it with a similar device." for move in found]
        return lines
    lines = ["REMOVE FORBIDDEN MOVES:", "- A forbidden move is present. Remove any of:"]
    lines += [f"  - {humanize_move(move)}" for move in profile.forbidden_moves]
    return lines


def lane_priorities(lane: Lane) -> tuple[str, ...]:
    return _LANE_PRIORITIES[lane]


def build_ruleset_repair_instruction(
    failure_codes: Iterable[str],
    profile: EngineProfile,
    forbidden_moves_found: Sequence[str] | None = None,
) -> str:
    """Build the rewrite instruction for a failed gate.

    Args:
        failure_codes: Failure codes from :func:`run_ruleset_gate`.
        profile: The profile the text was gated against.
        forbidden_moves_found: Moves matched in the text, named individually in
            the removal section.

    Returns:
        Lane priorities, one section per recognised failure, and a closing
        constraint, joined by newlines.
    """
    codes = {c.value if isinstance(c, GateFailureCode) else c for c in failure_codes}
    lines = list(_LANE_PRIORITIES[profile.lane])

    if GateFailureCode.FORBIDDEN_MOVE_PRESENT.value in codes:
        lines += ["", *_forbidden_moves(profile, forbidden_moves_found or ())]

    for code, build in _SECTIONS.items():
        if code.value in codes:
            lines += ["", *build(profile)]

    unknown = codes - {c.value for c in GateFailureCode}
    if unknown:
        logger.debug(f"No repair section for failure codes: {', '.join(sorted(unknown))}")

    lines += ["", _FOOTER]
    return "\n".join(lines)
