# SPDX-License-Identifier: Apache-2.0
# Canonical per-lane ruleset profiles.
#
# The defaults, the lane safe maximums and the conflict rules in conflicts.py
# are tuned together: every default must derive cleanly and detect zero
# conflicts.

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any

from data_designer_narrative_ruleset.profile import EngineProfile, Lane, UnknownLane

# ---------------------------------------------------------------------------
# Forbidden moves
# ---------------------------------------------------------------------------

DEFAULT_FORBIDDEN_MOVES = (
    "secret_organization",
    "omniscient_surveillance",
    "sniper_assassination",
    "helicopter_extraction",
    "villain_monologue",
    "everything_is_connected",
)

# Guardrails whose absence is a hard conflict. The rest are stylistic.
ESSENTIAL_GUARDRAILS = frozenset({"secret_organization", "omniscient_surveillance", "everything_is_connected"})

_MOVE_SPLIT_RE = re.compile(r"[_\s]+")


@lru_cache(maxsize=1024)
def forbidden_move_pattern(move_id: str) -> re.Pattern[str] | None:
    """Compile the phrase pattern for a snake_case forbidden-move ID.

    ``secret_organization`` matches "secret organization", "Secret\\nOrganization"
    and so on. Returns ``None`` for an ID with no words in it.
    """
    words = [w for w in _MOVE_SPLIT_RE.split(move_id.strip()) if w]
    if not words:
        return None
    return re.compile(r"\s+".join(re.escape(w) for w in words), re.IGNORECASE)


def humanize_move(move_id: str) -> str:
    return move_id.replace("_", " ").strip()


def is_essential_guardrail(move_id: str) -> bool:
    return move_id in ESSENTIAL_GUARDRAILS


# ---------------------------------------------------------------------------
# Lane tables
# ---------------------------------------------------------------------------


def _base_payload(lane: Lane) -> dict[str, Any]:
    return {
        "version": "1.0",
        "lane": lane.value,
        "engine": {"story_engine": "pressure_cooker", "causal_grammar": "accumulation", "conflict_mode": "moral_trap"},
        "budgets": {
            "drama_budget": 2, "twist_cap": 1, "big_reveal_cap": 1, "plot_thread_cap": 3,
            "core_character_cap": 5, "faction_cap": 1, "coincidence_cap": 1,
        },
        "pacing_profile": {
            "beats_per_minute": {"min": 2.0, "target": 3.0, "max": 5.0},
            "cliffhanger_rate": {"target": 0.5, "max": 0.7},
            "quiet_beats_min": 3,
            "subtext_scenes_min": 4,
            "meaning_shifts_min_per_act": 1,
        },
        "stakes_ladder": {
            "early_allowed": ["personal"],
            "no_global_before_pct": 0.20,
            "late_allowed": ["systemic"],
            "notes": "Personal stakes only until final 20%",
        },
        "dialogue_rules": {"subtext_ratio_target": 0.55, "monologue_max_lines": 6, "no_speeches": True},
        "forbidden_moves": list(DEFAULT_FORBIDDEN_MOVES),
        "signature_devices": [
            "meaning_shift_instead_of_twist", "leverage_over_violence", "polite_threats", "status_choreography",
        ],
        "gate_thresholds": {
            "melodrama_max": 0.50, "similarity_max": 0.60,
            "complexity_threads_max": 3, "complexity_factions_max": 1, "complexity_core_chars_max": 5,
        },
    }


_LANE_UPDATES: dict[Lane, dict[str, dict[str, Any]]] = {
    Lane.FEATURE_FILM: {},
    Lane.VERTICAL_DRAMA: {
        "engine": {"conflict_mode": "status_reputation"},
        "budgets": {"drama_budget": 3, "twist_cap": 2, "core_character_cap": 6, "faction_cap": 2},
        "pacing_profile": {"cliffhanger_rate": {"target": 0.9, "max": 1.0}, "quiet_beats_min": 1, "subtext_scenes_min": 2},
        "stakes_ladder": {
            "early_allowed": ["personal", "social"],
            "no_global_before_pct": 0.25,
            "notes": "Allow personal/social early; NO global before final 25%",
        },
        "gate_thresholds": {
            "melodrama_max": 0.62, "similarity_max": 0.70,
            "complexity_factions_max": 2, "complexity_core_chars_max": 6,
        },
    },
    Lane.SERIES: {
        "engine": {"conflict_mode": "family_obligation"},
        "pacing_profile": {"quiet_beats_min": 2, "subtext_scenes_min": 3},
        "gate_thresholds": {"melodrama_max": 0.35, "similarity_max": 0.65, "complexity_factions_max": 2},
    },
    Lane.DOCUMENTARY: {
        "engine": {"story_engine": "slow_burn_investigation", "conflict_mode": "legal_procedural"},
        "budgets": {"drama_budget": 1, "twist_cap": 0, "big_reveal_cap": 0},
        "pacing_profile": {"quiet_beats_min": 3, "subtext_scenes_min": 2},
        "gate_thresholds": {"melodrama_max": 0.15, "similarity_max": 0.70},
    },
}

# Ceilings applied by the deriver, whatever the influencers ask for.
_SAFE_MAXIMUMS: dict[Lane, dict[str, int]] = {
    Lane.FEATURE_FILM: {
        "drama_budget": 3, "twist_cap": 3, "big_reveal_cap": 2, "plot_thread_cap": 4, "core_character_cap": 7,
    },
    Lane.VERTICAL_DRAMA: {
        "drama_budget": 5, "twist_cap": 3, "big_reveal_cap": 2, "plot_thread_cap": 4, "core_character_cap": 8,
    },
    Lane.SERIES: {
        "drama_budget": 4, "twist_cap": 3, "big_reveal_cap": 2, "plot_thread_cap": 5, "core_character_cap": 8,
    },
    Lane.DOCUMENTARY: {
        "drama_budget": 2, "twist_cap": 1, "big_reveal_cap": 1, "plot_thread_cap": 3, "core_character_cap": 6,
    },
}


def _build_default(lane: Lane) -> EngineProfile:
    payload = _base_payload(lane)
    for section, update in _LANE_UPDATES[lane].items():
        payload[section] = {**payload[section], **update}
    return EngineProfile.from_payload(payload)


_DEFAULT_PROFILES: dict[Lane, EngineProfile] = {lane: _build_default(lane) for lane in Lane}

for _move in DEFAULT_FORBIDDEN_MOVES:
    forbidden_move_pattern(_move)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def resolve_lane(lane: Lane | str) -> Lane:
    if isinstance(lane, Lane):
        return lane
    try:
        return Lane(lane)
    except ValueError:
        raise UnknownLane(lane) from None


def supported_lanes() -> tuple[Lane, ...]:
    return tuple(Lane)


def get_default_engine_profile(lane: Lane | str) -> EngineProfile:
    """Return the canonical profile for ``lane``.

    Raises:
        UnknownLane: ``lane`` is not a supported production format.
    """
    return _DEFAULT_PROFILES[resolve_lane(lane)]


def lane_safe_maximums(lane: Lane | str) -> dict[str, int]:
    return dict(_SAFE_MAXIMUMS[resolve_lane(lane)])


def required_forbidden_moves(lane: Lane | str) -> tuple[str, ...]:
    return get_default_engine_profile(lane).forbidden_moves
