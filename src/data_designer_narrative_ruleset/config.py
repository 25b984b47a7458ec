# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

from typing import Literal

from pydantic import Field

from data_designer.config.column_configs import SingleColumnConfig
from data_designer_narrative_ruleset.profile import Influencer, Lane, Override


class NarrativeRulesetColumnConfig(SingleColumnConfig):
    """Gate generated script columns against a narrative ruleset profile.

    The profile is derived from ``lane`` and ``influencers``, then the project
    and run overrides are layered on top. Each row is scored, fingerprinted
    against the rows before it and gated; failing rows carry a repair
    instruction for the next drafting pass.

    Attributes:
        target_columns: Columns whose text content will be concatenated and gated.
        lane: Production lane selecting the default ruleset.
        influencers: Comparable titles nudging the derived profile.
        project_overrides: Project-scoped overrides, applied in order.
        run_overrides: Run-scoped overrides, applied last.
        is_final: Gate as a delivery pass.
        recent_window: Number of earlier rows' fingerprints used for similarity risk.
        include_repair_instruction: Include the rewrite instruction for failing rows.
        include_metrics: Include raw metrics and fingerprints in output.
    """

    target_columns: list[str]
    lane: Lane = Lane.FEATURE_FILM
    influencers: list[Influencer] = Field(default_factory=list)
    project_overrides: list[Override] = Field(default_factory=list)
    run_overrides: list[Override] = Field(default_factory=list)
    is_final: bool = Field(default=False, description="Apply delivery-only gate checks")
    recent_window: int = Field(default=10, ge=0, le=100, description="Earlier rows compared for similarity risk")
    include_repair_instruction: bool = Field(default=True, description="Include repair instructions for failing rows")
    include_metrics: bool = Field(default=False, description="Include raw metrics and fingerprints in output")
    column_type: Literal["narrative-ruleset"] = "narrative-ruleset"

    @staticmethod
    def get_column_emoji() -> str:
        return "\U0001f3ac"

    @property
    def required_columns(self) -> list[str]:
        return self.target_columns

    @property
    def side_effect_columns(self) -> list[str]:
        return []
