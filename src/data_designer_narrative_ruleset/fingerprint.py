# SPDX-License-Identifier: Apache-2.0
# Repetition signatures for accepted units and a similarity risk against the
# caller's window of recent signatures.

from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, fields
from typing import Any

from pydantic import TypeAdapter, ValidationError

from data_designer_narrative_ruleset.profile import EngineProfile, InvalidFingerprint, Lane

# ---------------------------------------------------------------------------
# Fingerprint
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Fingerprint:
    lane: str
    story_engine: str
    causal_grammar: str
    conflict_mode: str
    stakes_type: str = "personal"
    twist_count_bucket: str = "0"
    antagonist_type: str = "person"
    ending_type: str = "ambiguous"
    inciting_incident_category: str = "discovery"
    setting_tags: tuple[str, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        payload = {f.name: getattr(self, f.name) for f in fields(self)}
        payload["setting_tags"] = list(self.setting_tags)
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Fingerprint:
        """Rebuild a fingerprint from :meth:`to_payload` output. Unknown keys are ignored.

        Raises:
            InvalidFingerprint: a required field is missing or a field has the wrong type.
        """
        try:
            return _FINGERPRINT_ADAPTER.validate_python(dict(payload) if isinstance(payload, Mapping) else payload)
        except ValidationError as exc:
            raise InvalidFingerprint(f"Invalid fingerprint payload: {exc}") from exc


_FINGERPRINT_ADAPTER = TypeAdapter(Fingerprint)


# First matching label wins; the fallback is the dataclass default.
_STAKES_TYPES = [
    ("global", re.compile(r"\b(world|global|humanity|civilization|nation|country|war)\b")),
    ("systemic", re.compile(r"\b(systemic|institution|policy|government|corporate|structural)\b")),
    ("social", re.compile(r"\b(community|social|group|family|neighborhood|town)\b")),
]
_ANTAGONIST_TYPES = [
    ("self", re.compile(r"\b(inner|internal|self-?destruct\w*|own worst|addiction|denial)\b")),
    ("system", re.compile(r"\b(system|institution|bureaucra\w*|corporate|government|structural)\b")),
    ("relationship", re.compile(r"\b(relationship|marriage|partner|family dynamic|toxic)\b")),
]
_ENDING_TYPES = [
    ("reconciliation", re.compile(r"\b(reconcil\w*|reunite\w*|forgive\w*|heal\w*|together again)\b")),
    ("acceptance", re.compile(r"\b(accept\w*|come to terms|peace with|letting go)\b")),
    ("escape", re.compile(r"\b(escape\w*|flee\w*|leave|run away|freedom)\b")),
    ("justice", re.compile(r"\b(justice|punish\w*|convict\w*|verdict|sentence)\b")),
    ("tragedy", re.compile(r"\b(tragic|death|loss|destroy\w*|downfall)\b")),
]
_INCITING_CATEGORIES = [
    ("loss", re.compile(r"\b(loss|death|funeral|fired|bankrupt|divorce)\b")),
    ("offer", re.compile(r"\b(offer|opportunity|invitation|proposal|chance)\b")),
    ("mistake", re.compile(r"\b(mistake|accident|error|blunder|slip)\b")),
    ("arrival", re.compile(r"\b(arrives?|moves? to|new town|stranger|newcomer)\b")),
    ("accusation", re.compile(r"\b(accus\w*|allegation|charged|suspect|blame)\b")),
]
_SETTING_TAGS = [
    ("urban", re.compile(r"\b(urban|city|metropolis)\b")),
    ("rural", re.compile(r"\b(rural|countryside|village|farm)\b")),
    ("workplace", re.compile(r"\b(office|corporate|workplace)\b")),
    ("domestic", re.compile(r"\b(domestic|home|apartment|house)\b")),
    ("medical", re.compile(r"\b(hospital|medical|clinic)\b")),
    ("educational", re.compile(r"\b(school|university|campus)\b")),
    ("legal", re.compile(r"\b(court|legal|prison|jail)\b")),
]
_TWIST_RE = re.compile(r"\b(reveals?|turns? out|twist|secretly|all along)\b")
_MAX_SETTING_TAGS = 5


def _classify(text: str, table: list[tuple[str, re.Pattern[str]]], fallback: str) -> str:
    for label, pattern in table:
        if pattern.search(text):
            return label
    return fallback


def _twist_bucket(count: int) -> str:
    if count == 0:
        return "0"
    if count == 1:
        return "1"
    return "2+"


def compute_ruleset_fingerprint(text: str, profile: EngineProfile) -> Fingerprint:
    """Fingerprint a generated unit: the profile's archetype plus text cues."""
    lower = text.lower()
    return Fingerprint(
        lane=profile.lane.value,
        story_engine=profile.story_engine.value,
        causal_grammar=profile.causal_grammar.value,
        conflict_mode=profile.conflict_mode.value,
        stakes_type=_classify(lower, _STAKES_TYPES, "personal"),
        twist_count_bucket=_twist_bucket(sum(1 for _ in _TWIST_RE.finditer(lower))),
        antagonist_type=_classify(lower, _ANTAGONIST_TYPES, "person"),
        ending_type=_classify(lower, _ENDING_TYPES, "ambiguous"),
        inciting_incident_category=_classify(lower, _INCITING_CATEGORIES, "discovery"),
        setting_tags=tuple(label for label, pattern in _SETTING_TAGS if pattern.search(lower))[:_MAX_SETTING_TAGS],
    )


# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------

_FieldWeights = tuple[tuple[str, float], ...]


@dataclass(frozen=True)
class SimilarityParameters:
    """Tunable constants for similarity risk and diversification hints."""

    # Risk contributed by one fully matching recent entry.
    match_strength: float = 0.35
    window: int = 10

    # Vertical drama diversifies on conflict mode and inciting incident,
    # feature film on engine and grammar.
    vertical_weights: _FieldWeights = (
        ("conflict_mode", 3.0), ("inciting_incident_category", 3.0), ("story_engine", 1.0),
        ("causal_grammar", 1.0), ("stakes_type", 1.0), ("antagonist_type", 1.0), ("ending_type", 1.0),
    )
    feature_weights: _FieldWeights = (
        ("story_engine", 3.0), ("causal_grammar", 3.0), ("conflict_mode", 1.0),
        ("inciting_incident_category", 1.0), ("stakes_type", 1.0), ("antagonist_type", 1.0), ("ending_type", 1.0),
    )
    default_weights: _FieldWeights = (
        ("story_engine", 1.0), ("causal_grammar", 1.0), ("conflict_mode", 1.0), ("stakes_type", 1.0),
        ("twist_count_bucket", 1.0), ("antagonist_type", 1.0), ("ending_type", 1.0),
        ("inciting_incident_category", 1.0),
    )

    hint_share: float = 0.4
    vertical_hint_share: float = 0.3


DEFAULT_SIMILARITY_PARAMETERS = SimilarityParameters()


def _field_weights(lane: str, params: SimilarityParameters) -> _FieldWeights:
    if lane == Lane.VERTICAL_DRAMA.value:
        return params.vertical_weights
    if lane == Lane.FEATURE_FILM.value:
        return params.feature_weights
    return params.default_weights


def _coerce_fingerprint(item: Fingerprint | Mapping[str, Any]) -> Fingerprint:
    if isinstance(item, Fingerprint):
        return item
    return Fingerprint.from_payload(item)


def fingerprint_overlap(candidate: Fingerprint, other: Fingerprint, params: SimilarityParameters | None = None) -> float:
    """Weighted share of archetype fields two fingerprints have in common."""
    p = params or DEFAULT_SIMILARITY_PARAMETERS
    weights = _field_weights(candidate.lane, p)
    total = sum(weight for _, weight in weights)
    if total <= 0:
        return 0.0
    matched = sum(weight for name, weight in weights if getattr(candidate, name) == getattr(other, name))
    return matched / total


def compute_ruleset_similarity_risk(
    fingerprint: Fingerprint,
    recent: Sequence[Fingerprint | Mapping[str, Any]],
    params: SimilarityParameters | None = None,
) -> float:
    """Estimate how repetitive ``fingerprint`` is against recent units.

    Each of the last ``window`` entries contributes
    ``match_strength * overlap``, combined as ``1 - prod(1 - contribution)``.
    The risk is 0 with no history, never falls as matching entries are added,
    and approaches 1 as they accumulate.
    """
    p = params or DEFAULT_SIMILARITY_PARAMETERS
    if not recent:
        return 0.0
    window = [_coerce_fingerprint(item) for item in list(recent)[-p.window :]]
    strength = min(1.0, max(0.0, p.match_strength))
    survival = math.prod(1.0 - strength * fingerprint_overlap(fingerprint, prev, p) for prev in window)
    return min(1.0, max(0.0, 1.0 - survival))


@dataclass(frozen=True)
class DiversificationHints:
    avoid_story_engines: tuple[str, ...] = ()
    avoid_causal_grammars: tuple[str, ...] = ()
    avoid_stakes_types: tuple[str, ...] = ()
    avoid_conflict_modes: tuple[str, ...] = ()
    avoid_inciting_categories: tuple[str, ...] = ()

    def to_payload(self) -> dict[str, list[str]]:
        return {f.name: list(getattr(self, f.name)) for f in fields(self)}


def _overused(values: Iterable[str], threshold: float) -> tuple[str, ...]:
    counts = Counter(values)
    return tuple(value for value, count in counts.items() if count >= threshold)


def get_diversification_hints(
    recent: Sequence[Fingerprint | Mapping[str, Any]],
    lane: Lane | str | None = None,
    params: SimilarityParameters | None = None,
) -> DiversificationHints:
    """Archetype values over-represented in ``recent``, for the next prompt to avoid."""
    p = params or DEFAULT_SIMILARITY_PARAMETERS
    if not recent:
        return DiversificationHints()
    prints = [_coerce_fingerprint(item) for item in recent]
    threshold = len(prints) * p.hint_share
    lane_value = lane.value if isinstance(lane, Lane) else (lane or "")
    narrow = len(prints) * p.vertical_hint_share if lane_value == Lane.VERTICAL_DRAMA.value else threshold
    return DiversificationHints(
        avoid_story_engines=_overused((fp.story_engine for fp in prints), threshold),
        avoid_causal_grammars=_overused((fp.causal_grammar for fp in prints), threshold),
        avoid_stakes_types=_overused((fp.stakes_type for fp in prints), threshold),
        avoid_conflict_modes=_overused((fp.conflict_mode for fp in prints), narrow),
        avoid_inciting_categories=_overused((fp.inciting_incident_category for fp in prints), narrow),
    )
