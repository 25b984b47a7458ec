# SPDX-License-Identifier: Apache-2.0
"""Typed ruleset profile, influencer and override models.

Profiles travel as JSON between the engine, the drafting prompt builder and
whatever persists overrides, so they are pydantic models. They are frozen:
every transformation in this package returns a new profile.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, ValidationError, field_validator

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class RulesetError(Exception):
    """Base class for errors raised by the ruleset engine."""


class ConfigurationError(RulesetError):
    """A ruleset input is malformed. Never retried."""


class UnknownLane(ConfigurationError, ValueError):
    def __init__(self, lane: object) -> None:
        supported = ", ".join(item.value for item in Lane)
        super().__init__(f"Unknown lane {lane!r} (supported: {supported})")
        self.lane = lane


class InvalidProfile(ConfigurationError):
    """A profile payload does not validate against the profile schema."""


class InvalidOverride(ConfigurationError):
    """An override cannot be parsed, resolved, or produces an invalid profile."""


class InvalidFingerprint(ConfigurationError):
    """A persisted fingerprint payload is missing fields or has the wrong types."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Lane(str, Enum):
    FEATURE_FILM = "feature_film"
    VERTICAL_DRAMA = "vertical_drama"
    SERIES = "series"
    DOCUMENTARY = "documentary"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").upper()


class StoryEngine(str, Enum):
    PRESSURE_COOKER = "pressure_cooker"
    TWO_HANDER = "two_hander"
    SLOW_BURN_INVESTIGATION = "slow_burn_investigation"
    SOCIAL_REALISM = "social_realism"
    MORAL_TRAP = "moral_trap"
    CHARACTER_SPIRAL = "character_spiral"
    RASHOMON = "rashomon"
    ANTI_PLOT = "anti_plot"


class CausalGrammar(str, Enum):
    ACCUMULATION = "accumulation"
    EROSION = "erosion"
    EXCHANGE = "exchange"
    MIRROR = "mirror"
    CONSTRAINT = "constraint"
    MISALIGNMENT = "misalignment"
    CONTAGION = "contagion"
    REVELATION_WITHOUT_FACTS = "revelation_without_facts"


class ConflictMode(str, Enum):
    MORAL_TRAP = "moral_trap"
    STATUS_REPUTATION = "status_reputation"
    FAMILY_OBLIGATION = "family_obligation"
    LEGAL_PROCEDURAL = "legal_procedural"


Fraction = Annotated[float, Field(ge=0.0, le=1.0)]
NonNegativeFloat = Annotated[float, Field(ge=0.0, allow_inf_nan=False)]


def _unique(items: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(items))


# ---------------------------------------------------------------------------
# Comparable-title influencers and overrides
# ---------------------------------------------------------------------------


class Influencer(BaseModel):
    """A comparable title nudging a derived profile.

    Attributes:
        title: Display title of the comparable.
        format: Production format of the comparable (``film``, ``series``...).
        weight: Non-negative strength of the influence.
        dimensions: Influence tags. Budget-linked tags (``twist_budget``,
            ``drama_budget``...) raise the matching budget field.
        avoid_tags: Forbidden-move IDs merged into the derived profile.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    title: str
    format: str = "film"
    year: int | None = None
    weight: NonNegativeFloat = 1.0
    dimensions: tuple[str, ...] = ()
    avoid_tags: tuple[str, ...] = ()


class Override(BaseModel):
    """One JSON-patch-like operation against a profile tree."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    op: Literal["replace", "add", "remove"]
    path: str
    value: Any = None

    @field_validator("path")
    @classmethod
    def _check_pointer(cls, path: str) -> str:
        if not path.startswith("/"):
            raise ValueError(f"override path must be a JSON pointer starting with '/', got {path!r}")
        return path

    def describe(self) -> str:
        if self.op == "remove":
            return f"remove {self.path}"
        return f"{self.op} {self.path} = {self.value!r}"


# ---------------------------------------------------------------------------
# Profile sections
# ---------------------------------------------------------------------------


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class NarrativeEngine(_Section):
    story_engine: StoryEngine
    causal_grammar: CausalGrammar = CausalGrammar.ACCUMULATION
    conflict_mode: ConflictMode


class Budgets(_Section):
    drama_budget: NonNegativeInt
    twist_cap: NonNegativeInt
    big_reveal_cap: NonNegativeInt = 1
    plot_thread_cap: NonNegativeInt = 3
    core_character_cap: NonNegativeInt = 5
    faction_cap: NonNegativeInt = 1
    coincidence_cap: NonNegativeInt = 1


class BeatRate(_Section):
    min: NonNegativeFloat
    target: NonNegativeFloat
    max: NonNegativeFloat


class CliffhangerRate(_Section):
    target: Fraction
    max: Fraction


class PacingProfile(_Section):
    beats_per_minute: BeatRate
    cliffhanger_rate: CliffhangerRate
    quiet_beats_min: NonNegativeInt
    subtext_scenes_min: NonNegativeInt
    meaning_shifts_min_per_act: NonNegativeInt = 1


class StakesLadder(_Section):
    early_allowed: tuple[str, ...] = ("personal",)
    no_global_before_pct: Fraction
    late_allowed: tuple[str, ...] = ("systemic",)
    notes: str = ""


class DialogueRules(_Section):
    subtext_ratio_target: Fraction = 0.55
    monologue_max_lines: NonNegativeInt = 6
    no_speeches: bool = True


class GateThresholds(_Section):
    melodrama_max: Fraction
    similarity_max: Fraction
    complexity_threads_max: NonNegativeInt = 3
    complexity_factions_max: NonNegativeInt = 1
    complexity_core_chars_max: NonNegativeInt = 5


# ---------------------------------------------------------------------------
# EngineProfile
# ---------------------------------------------------------------------------


class EngineProfile(BaseModel):
    """The resolved writing constraints for one generation attempt.

    Top-level keys outside the schema are kept (``add`` overrides may create
    them) and read back as attributes. Nested sections are closed.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    version: str = "1.0"
    lane: Lane
    engine: NarrativeEngine
    budgets: Budgets
    pacing_profile: PacingProfile
    stakes_ladder: StakesLadder
    dialogue_rules: DialogueRules = DialogueRules()
    forbidden_moves: tuple[str, ...] = ()
    signature_devices: tuple[str, ...] = ()
    gate_thresholds: GateThresholds
    comps: tuple[Influencer, ...] = ()

    @field_validator("forbidden_moves", "signature_devices")
    @classmethod
    def _dedupe(cls, items: tuple[str, ...]) -> tuple[str, ...]:
        return _unique(items)

    @property
    def story_engine(self) -> StoryEngine:
        return self.engine.story_engine

    @property
    def causal_grammar(self) -> CausalGrammar:
        return self.engine.causal_grammar

    @property
    def conflict_mode(self) -> ConflictMode:
        return self.engine.conflict_mode

    @property
    def extensions(self) -> dict[str, Any]:
        return dict(self.model_extra or {})

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> EngineProfile:
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise InvalidProfile(str(exc)) from exc
