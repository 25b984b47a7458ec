import pytest

from data_designer_narrative_ruleset.defaults import get_default_engine_profile
from data_designer_narrative_ruleset.gate import GateFailureCode
from data_designer_narrative_ruleset.merge import apply_overrides
from data_designer_narrative_ruleset.profile import Lane
from data_designer_narrative_ruleset.repair import build_ruleset_repair_instruction, lane_priorities

FOOTER = "CRITICAL: Do NOT add new plot elements. Only remove, replace, or reframe."


class TestLanePriorities:
    def test_vertical_drama(self):
        instruction = build_ruleset_repair_instruction(["MELODRAMA"], get_default_engine_profile("vertical_drama"))
        assert "VERTICAL DRAMA PRIORITIES:" in instruction
        assert "social leverage and reputational stakes" in instruction

    def test_feature_film(self):
        instruction = build_ruleset_repair_instruction(["MELODRAMA"], get_default_engine_profile("feature_film"))
        assert "FEATURE FILM PRIORITIES:" in instruction
        assert "Protect the quiet beats" in instruction

    @pytest.mark.parametrize("lane", list(Lane))
    def test_every_lane_has_priorities(self, lane):
        lines = lane_priorities(lane)
        assert lines[0] == f"{lane.label} PRIORITIES:"
        assert len(lines) > 1

    def test_no_failures_keeps_frame(self):
        instruction = build_ruleset_repair_instruction([], get_default_engine_profile("series"))
        assert instruction.startswith("SERIES PRIORITIES:")
        assert instruction.endswith(FOOTER)


class TestSections:
    def test_overcomplexity_cites_caps(self):
        profile = apply_overrides(get_default_engine_profile("series"), [
            {"op": "replace", "path": "/budgets/plot_thread_cap", "value": 2},
        ])
        instruction = build_ruleset_repair_instruction(["OVERCOMPLEXITY"], profile)
        assert "plot_thread_cap = 2" in instruction
        assert "Limit core characters to 5;" in instruction
        assert "Keep at most 2 named faction(s)" in instruction

    def test_subtext_cites_minimum(self):
        instruction = build_ruleset_repair_instruction(["SUBTEXT_MISSING"], get_default_engine_profile("feature_film"))
        assert "subtext_scenes_min = 4" in instruction

    def test_twist_section(self):
        instruction = build_ruleset_repair_instruction(["TWIST_OVERUSE"], get_default_engine_profile("vertical_drama"))
        assert "at most 2 twist(s)" in instruction

    def test_named_forbidden_moves(self):
        instruction = build_ruleset_repair_instruction(
            ["FORBIDDEN_MOVE_PRESENT"], get_default_engine_profile("feature_film"), ["secret_organization"],
        )
        assert "Remove the secret organization entirely" in instruction
        assert "sniper assassination" not in instruction

    def test_forbidden_moves_without_matches(self):
        instruction = build_ruleset_repair_instruction(["FORBIDDEN_MOVE_PRESENT"], get_default_engine_profile("feature_film"))
        assert "  - secret organization" in instruction
        assert "  - sniper assassination" in instruction

    def test_one_section_per_failure(self):
        codes = ["MELODRAMA", "STAKES_TOO_BIG_TOO_EARLY", "TEMPLATE_SIMILARITY", "QUIET_BEATS_MISSING", "MEANING_SHIFT_MISSING"]
        instruction = build_ruleset_repair_instruction(codes, get_default_engine_profile("feature_film"))
        for header in ("REDUCE MELODRAMA:", "REFRAME EARLY STAKES:", "BREAK THE TEMPLATE:", "ADD QUIET BEATS:",
                       "ADD MEANING SHIFTS:"):
            assert instruction.count(header) == 1
        assert "REDUCE TWISTS:" not in instruction

    def test_accepts_enum_codes(self):
        profile = get_default_engine_profile("feature_film")
        assert build_ruleset_repair_instruction([GateFailureCode.MELODRAMA], profile) == build_ruleset_repair_instruction(
            ["MELODRAMA"], profile
        )

    def test_unknown_codes_are_ignored(self):
        profile = get_default_engine_profile("documentary")
        assert build_ruleset_repair_instruction(["NOT_A_CODE"], profile) == build_ruleset_repair_instruction([], profile)
