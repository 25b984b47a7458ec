# SPDX-License-Identifier: Apache-2.0
# Quantitative text signals for generated script material.
#
# Density signals are rates per ``rate_words_basis`` words so that a scene
# and a full act can be held to the same thresholds. Signals compared to a
# profile cap are raw counts.

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import asdict, dataclass, fields

from data_designer_narrative_ruleset.defaults import forbidden_move_pattern

# ---------------------------------------------------------------------------
# Weights
# ---------------------------------------------------------------------------

# (metric field, saturation, weight): the field contributes
# min(1, value / saturation) * weight to the composite.
_Component = tuple[str, float, float]


@dataclass(frozen=True)
class ScoringWeights:
    """Tunable constants for metrics and the melodrama/nuance composites."""

    rate_words_basis: float = 1000.0
    early_portion_fraction: float = 0.2
    long_speech_min_chars: int = 150

    melodrama_components: tuple[_Component, ...] = (
        ("absolute_words_rate", 10.0, 0.20),
        ("twist_keyword_rate", 8.0, 0.20),
        ("conspiracy_rate", 10.0, 0.15),
        ("shock_early_count", 3.0, 0.20),
        ("long_speech_rate", 4.0, 0.10),
        ("faction_rate", 15.0, 0.15),
    )
    nuance_components: tuple[_Component, ...] = (
        ("subtext_scene_count", 3.0, 0.25),
        ("quiet_beats_count", 2.0, 0.20),
        ("meaning_shift_count", 1.0, 0.20),
        ("antagonist_legitimacy", 1.0, 0.15),
        ("cost_of_action_rate", 4.0, 0.10),
    )
    # Nuance credit for restraint, lost as twist + conspiracy density rises.
    restraint_saturation: float = 10.0
    restraint_weight: float = 0.10


DEFAULT_SCORING_WEIGHTS = ScoringWeights()

# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Metrics:
    word_count: int = 0

    absolute_words_rate: float = 0.0
    twist_keyword_rate: float = 0.0
    conspiracy_rate: float = 0.0
    shock_early_rate: float = 0.0
    long_speech_rate: float = 0.0
    faction_rate: float = 0.0
    new_character_rate: float = 0.0
    cost_of_action_rate: float = 0.0

    plot_thread_count: int = 0
    shock_early_count: int = 0
    subtext_scene_count: int = 0
    quiet_beats_count: int = 0
    meaning_shift_count: int = 0
    named_faction_count: int = 0
    antagonist_legitimacy: bool = False

    def to_payload(self) -> dict[str, object]:
        return asdict(self)

    def is_empty(self) -> bool:
        return all(not getattr(self, f.name) for f in fields(self))


# ---------------------------------------------------------------------------
# Compiled patterns
# ---------------------------------------------------------------------------

_ABSOLUTE_WORDS_RE = re.compile(
    r"\b(?:always|never|everything|nothing|only hope|impossible|forever|completely|utterly|total(?:ly)?)\b",
    re.IGNORECASE,
)
_TWIST_KEYWORDS_RE = re.compile(
    r"\b(?:reveals?|turns? out|secretly|suddenly|betrayal|double.?cross|shocking|plot twist|unmasked|all along)\b",
    re.IGNORECASE,
)
_CONSPIRACY_RE = re.compile(
    r"\b(?:organization|conspiracy|shadows?|syndicate|cabal|secret society|hidden agenda|puppet master"
    r"|pulling the strings|pulled the strings)\b",
    re.IGNORECASE,
)
_SHOCK_EVENTS_RE = re.compile(
    r"\b(?:kidnap\w*|murder\w*|explosion|assassin\w*|bomb\w*|massacre|hostage|poisoned?|gunshot|stabbed?)\b",
    re.IGNORECASE,
)
_QUOTED_SPEECH_RE = re.compile(r"[\"“]([^\"“”]*)[\"”]", re.DOTALL)
_SUBTEXT_RE = re.compile(
    r"\b(?:subtext|unspoken|withheld|won't say|says? instead|tactic|tell|beneath the surface|underlying)\b",
    re.IGNORECASE,
)
_QUIET_BEAT_RE = re.compile(
    r"\b(?:silence|pause|stillness|quiet moment|breath|contemplat\w*|reflect\w*|stares?|sit with)\b",
    re.IGNORECASE,
)
_MEANING_SHIFT_RE = re.compile(
    r"\b(?:reinterpret\w*|re-?read|new light|different meaning|reali[sz]es?|understands? now|see differently"
    r"|meaning shift|changes everything we thought)\b",
    re.IGNORECASE,
)
_ANTAGONIST_LEGITIMACY_RE = re.compile(
    r"\b(?:legitimate|valid point|understandable|reasonable|their perspective|from their view|not wrong|has a point)\b",
    re.IGNORECASE,
)
_COST_RE = re.compile(
    r"\b(?:cost|price|consequences?|sacrifice|trade-?off|lose|risk|penalty|repercussions?|fallout)\b",
    re.IGNORECASE,
)
_FACTION_RE = re.compile(
    r"\b(?:faction|group|alliance|coalition|clan|family|house|organization|agency|department|team|side)\b",
    re.IGNORECASE,
)
# "the Harlan Family", "Vance Agency", "House Okafor". Case-sensitive.
_FACTION_KIND = r"(?:Faction|Group|Alliance|Coalition|Clan|Family|House|Organization|Agency|Department|Team)"
_NAMED_FACTION_RE = re.compile(
    rf"\b((?:[A-Z][\w'-]*\s+)+){_FACTION_KIND}\b|\b(?:House|Clan)\s+([A-Z][\w'-]*)"
)
_NAME_STOPWORDS = frozenset({"The", "A", "An", "Her", "His", "Their", "Our", "My", "Your", "Its", "This", "That", "Every"})

_THREAD_RE = re.compile(r"\b(?:meanwhile|subplot|thread|strand|parallel|B-story|C-story|side plot)\b", re.IGNORECASE)
_CHARACTER_INTRO_RE = re.compile(
    r"\b(?:introduce|introducing|we meet|enters?|arrives?|new character|first appearance)\b",
    re.IGNORECASE,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _word_count(text: str) -> int:
    return len(text.split())


def _count(pattern: re.Pattern[str], text: str) -> int:
    return sum(1 for _ in pattern.finditer(text))


def _rate(count: int, words: int, basis: float) -> float:
    if words <= 0:
        return 0.0
    return count / words * basis


def _density(count: int, words: int, basis: float) -> float:
    # Units shorter than the basis count as one full basis.
    return count / max(1.0, words / basis)


def _named_factions(text: str) -> set[str]:
    names = set()
    for match in _NAMED_FACTION_RE.finditer(text):
        words = (match.group(1) or match.group(2)).split()
        while words and words[0] in _NAME_STOPWORDS:
            words.pop(0)
        if words:
            names.add(" ".join(words).lower())
    return names


def _composite(metrics: Metrics, components: tuple[_Component, ...]) -> float:
    total = 0.0
    for name, saturation, weight in components:
        value = float(getattr(metrics, name))
        total += min(1.0, value / saturation) * weight
    return total


def _clamp_unit(value: float) -> float:
    return min(1.0, max(0.0, value))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compute_ruleset_metrics(text: str, weights: ScoringWeights | None = None) -> Metrics:
    """Measure the narrative signals of ``text``.

    Returns an all-zero :class:`Metrics` for empty or whitespace-only text.
    """
    w = weights or DEFAULT_SCORING_WEIGHTS
    words = _word_count(text)
    if words == 0:
        return Metrics()

    basis = w.rate_words_basis
    early = text[: int(len(text) * w.early_portion_fraction)]
    long_speeches = [m for m in _QUOTED_SPEECH_RE.finditer(text) if len(m.group(1)) > w.long_speech_min_chars]
    shock_early = _count(_SHOCK_EVENTS_RE, early)

    return Metrics(
        word_count=words,
        absolute_words_rate=_rate(_count(_ABSOLUTE_WORDS_RE, text), words, basis),
        twist_keyword_rate=_rate(_count(_TWIST_KEYWORDS_RE, text), words, basis),
        conspiracy_rate=_rate(_count(_CONSPIRACY_RE, text), words, basis),
        shock_early_rate=_rate(shock_early, _word_count(early), basis),
        long_speech_rate=_rate(len(long_speeches), words, basis),
        faction_rate=_rate(_count(_FACTION_RE, text), words, basis),
        new_character_rate=_density(_count(_CHARACTER_INTRO_RE, text), words, basis),
        cost_of_action_rate=_rate(_count(_COST_RE, text), words, basis),
        plot_thread_count=_count(_THREAD_RE, text),
        shock_early_count=shock_early,
        subtext_scene_count=_count(_SUBTEXT_RE, text),
        quiet_beats_count=_count(_QUIET_BEAT_RE, text),
        meaning_shift_count=_count(_MEANING_SHIFT_RE, text),
        named_faction_count=len(_named_factions(text)),
        antagonist_legitimacy=_ANTAGONIST_LEGITIMACY_RE.search(text) is not None,
    )


def compute_ruleset_melodrama_score(metrics: Metrics, weights: ScoringWeights | None = None) -> float:
    """Weighted melodrama composite in [0, 1]. Higher is worse."""
    w = weights or DEFAULT_SCORING_WEIGHTS
    return _clamp_unit(_composite(metrics, w.melodrama_components))


def compute_ruleset_nuance_score(metrics: Metrics, weights: ScoringWeights | None = None) -> float:
    """Weighted nuance composite in [0, 1]. Higher is better."""
    w = weights or DEFAULT_SCORING_WEIGHTS
    if metrics.word_count == 0:
        return 0.0
    score = _composite(metrics, w.nuance_components)
    pressure = (metrics.twist_keyword_rate + metrics.conspiracy_rate) / w.restraint_saturation
    score += (1.0 - min(1.0, pressure)) * w.restraint_weight
    return _clamp_unit(score)


def detect_forbidden_moves(text: str, forbidden_move_ids: Iterable[str]) -> list[str]:
    """Return the forbidden-move IDs whose phrase form occurs in ``text``.

    ``villain_monologue`` is searched as "villain monologue", case-insensitive,
    with any run of whitespace between the words. The result keeps the input
    order, without duplicates, and never contains an ID not given.
    """
    found: list[str] = []
    for move_id in dict.fromkeys(forbidden_move_ids):
        pattern = forbidden_move_pattern(move_id)
        if pattern is not None and pattern.search(text):
            found.append(move_id)
    return found
