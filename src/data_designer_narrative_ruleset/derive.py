# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from data_designer_narrative_ruleset.defaults import get_default_engine_profile, lane_safe_maximums
from data_designer_narrative_ruleset.profile import ConfigurationError, EngineProfile, Influencer, Lane

logger = logging.getLogger(__name__)

# Influence dimensions that raise a budget field, and the field they raise.
BUDGET_DIMENSIONS: dict[str, str] = {
    "twist_budget": "twist_cap",
    "drama_budget": "drama_budget",
    "reveal_budget": "big_reveal_cap",
    "plot_threads": "plot_thread_cap",
    "ensemble": "core_character_cap",
}


@dataclass(frozen=True)
class DerivationWeights:
    """Tunable constants for turning influencer weight into profile changes."""

    # One budget step per this much summed influencer weight.
    weight_per_step: float = 2.0

    pacing_target_step: float = 1.0
    stakes_social_share_min: float = 0.5
    dialogue_subtext_step: float = 0.1
    dialogue_subtext_ceiling: float = 0.8


DEFAULT_DERIVATION_WEIGHTS = DerivationWeights()


def _coerce_influencer(item: Influencer | Mapping[str, Any]) -> Influencer:
    if isinstance(item, Influencer):
        return item
    try:
        return Influencer.model_validate(item)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid influencer: {exc}") from exc


def _budget_step(total_weight: float, weights: DerivationWeights) -> int:
    if total_weight <= 0:
        return 0
    return math.floor(total_weight / weights.weight_per_step)


def derive_engine_profile(
    lane: Lane | str,
    influencers: Iterable[Influencer | Mapping[str, Any]],
    weights: DerivationWeights | None = None,
) -> EngineProfile:
    """Derive a lane profile nudged by comparable-title influencers.

    Budget-linked dimensions add ``floor(summed weight / weight_per_step)`` to
    their budget field, clamped to the lane's safe maximum. ``avoid_tags`` are
    unioned into ``forbidden_moves``.

    Args:
        lane: Production lane whose default profile is the starting point.
        influencers: Influencer models or their JSON payloads.
        weights: Optional tuning overrides.

    Returns:
        A new profile. Equal to the lane default when ``influencers`` is empty.
    """
    w = weights or DEFAULT_DERIVATION_WEIGHTS
    base = get_default_engine_profile(lane)
    comps = tuple(_coerce_influencer(i) for i in influencers)
    if not comps:
        return base

    dimension_weight: dict[str, float] = {}
    total_weight = 0.0
    for inf in comps:
        for dim in dict.fromkeys(inf.dimensions):
            dimension_weight[dim] = dimension_weight.get(dim, 0.0) + inf.weight
        total_weight += inf.weight

    caps = lane_safe_maximums(base.lane)
    budget_updates: dict[str, int] = {}
    for dim, field_name in BUDGET_DIMENSIONS.items():
        step = _budget_step(dimension_weight.get(dim, 0.0), w)
        if step <= 0:
            continue
        current = getattr(base.budgets, field_name)
        raised = current + step
        budget_updates[field_name] = min(raised, caps[field_name])
        if raised > caps[field_name]:
            logger.debug(f"Clamped {field_name} from {raised} to lane maximum {caps[field_name]} for {base.lane.value}")

    pacing = base.pacing_profile
    stakes = base.stakes_ladder
    dialogue = base.dialogue_rules
    if total_weight > 0:
        pacing_share = min(1.0, dimension_weight.get("pacing", 0.0) / total_weight)
        if pacing_share > 0:
            bpm = pacing.beats_per_minute
            target = min(bpm.max, round(bpm.target + pacing_share * w.pacing_target_step, 1))
            pacing = pacing.model_copy(update={"beats_per_minute": bpm.model_copy(update={"target": target})})

        stakes_share = dimension_weight.get("stakes_ladder", 0.0) / total_weight
        if stakes_share > w.stakes_social_share_min and "social" not in stakes.early_allowed:
            stakes = stakes.model_copy(update={"early_allowed": (*stakes.early_allowed, "social")})

        dialogue_share = min(1.0, dimension_weight.get("dialogue_style", 0.0) / total_weight)
        if dialogue_share > 0:
            ratio = dialogue.subtext_ratio_target + dialogue_share * w.dialogue_subtext_step
            ratio = round(min(w.dialogue_subtext_ceiling, ratio), 3)
            dialogue = dialogue.model_copy(update={"subtext_ratio_target": max(ratio, dialogue.subtext_ratio_target)})

    avoid = [tag for inf in comps for tag in inf.avoid_tags]
    forbidden = tuple(dict.fromkeys((*base.forbidden_moves, *avoid)))

    return base.model_copy(
        update={
            "budgets": base.budgets.model_copy(update=budget_updates),
            "pacing_profile": pacing,
            "stakes_ladder": stakes,
            "dialogue_rules": dialogue,
            "forbidden_moves": forbidden,
            "comps": comps,
        }
    )
