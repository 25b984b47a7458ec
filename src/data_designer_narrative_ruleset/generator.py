# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING

from data_designer.engine.column_generators.generators.base import ColumnGeneratorFullColumn

from data_designer_narrative_ruleset.analysis import analyze_script
from data_designer_narrative_ruleset.config import NarrativeRulesetColumnConfig
from data_designer_narrative_ruleset.conflicts import detect_conflicts
from data_designer_narrative_ruleset.defaults import resolve_lane
from data_designer_narrative_ruleset.derive import derive_engine_profile
from data_designer_narrative_ruleset.fingerprint import Fingerprint
from data_designer_narrative_ruleset.merge import merge_ruleset
from data_designer_narrative_ruleset.profile import EngineProfile

if TYPE_CHECKING:
    import pandas as pd

logger = logging.getLogger(__name__)


def resolve_column_profile(config: NarrativeRulesetColumnConfig) -> EngineProfile:
    derived = derive_engine_profile(config.lane, config.influencers)
    return merge_ruleset(derived, None, config.project_overrides, config.run_overrides)


class NarrativeRulesetColumnGenerator(ColumnGeneratorFullColumn[NarrativeRulesetColumnConfig]):
    """Column generator that gates generated script text against a narrative ruleset."""

    def generate(self, data: pd.DataFrame) -> pd.DataFrame:
        logger.info(f"\U0001f3ac Gating column {self.config.name!r} against the {resolve_lane(self.config.lane).value} ruleset")
        logger.info(f"   target columns: {self.config.target_columns}")
        logger.info(f"   final pass: {self.config.is_final}")

        profile = resolve_column_profile(self.config)
        for conflict in detect_conflicts(profile):
            if conflict.is_hard:
                logger.warning(f"   hard ruleset conflict {conflict.id}: {conflict.message}")
            else:
                logger.info(f"   ruleset conflict {conflict.id}: {conflict.message}")

        recent: deque[Fingerprint] = deque(maxlen=self.config.recent_window)
        results = []
        for _, row in data[self.config.target_columns].iterrows():
            text = " ".join(str(v) for v in row.values if v is not None)
            analysis = analyze_script(text, profile, recent_fingerprints=list(recent), is_final=self.config.is_final)
            if self.config.recent_window:
                recent.append(Fingerprint.from_payload(analysis["fingerprint"]))
            output: dict = {
                "is_valid": analysis["passed"],
                "failures": analysis["failures"],
                "melodrama_score": analysis["melodrama_score"],
                "nuance_score": analysis["nuance_score"],
                "similarity_risk": analysis["similarity_risk"],
            }
            if self.config.include_repair_instruction:
                output["repair_instruction"] = analysis["repair_instruction"]
            if self.config.include_metrics:
                output["metrics"] = analysis["metrics"]
                output["fingerprint"] = analysis["fingerprint"]
            results.append(output)

        passed = sum(1 for r in results if r["is_valid"])
        logger.info(f"   {passed}/{len(results)} rows passed the ruleset gate")

        data = data.copy()
        data[self.config.name] = results
        return data
