from data_designer_narrative_ruleset import analyze_script, derive_engine_profile, merge_ruleset
from data_designer_narrative_ruleset.defaults import get_default_engine_profile

SUBTLE_TEXT = (
    "Maya stops at the door. A long silence. "
    "What she won't say is that the loan was hers; she says instead that the rent is late. "
    "Her tactic is patience, and the tell is the way she folds the receipt. "
    "Later Daniel looks at the letter in a new light: the landlord has a point, and the price of staying is her job. "
    "Beneath the surface, the unspoken cost of leaving settles over the kitchen. Another pause."
)


class TestAnalyzeScript:
    def test_passing_unit(self):
        result = analyze_script(SUBTLE_TEXT, get_default_engine_profile("feature_film"))
        assert result["passed"] is True
        assert result["failures"] == []
        assert result["repair_instruction"] is None
        assert result["similarity_risk"] == 0.0
        assert result["metrics"]["subtext_scene_count"] == 6
        assert result["fingerprint"]["story_engine"] == "pressure_cooker"

    def test_failing_unit_gets_repair_instruction(self):
        result = analyze_script("The secret organization ran the plot.", get_default_engine_profile("vertical_drama"))
        assert result["passed"] is False
        assert result["forbidden_moves_found"] == ["secret_organization"]
        assert "Remove the secret organization entirely" in result["repair_instruction"]
        assert result["repair_instruction"].startswith("VERTICAL DRAMA PRIORITIES:")

    def test_recent_fingerprints_raise_risk(self):
        profile = get_default_engine_profile("feature_film")
        first = analyze_script(SUBTLE_TEXT, profile)
        recent = [first["fingerprint"]] * 3
        again = analyze_script(SUBTLE_TEXT, profile, recent_fingerprints=recent)
        assert again["similarity_risk"] > 0.5
        assert "TEMPLATE_SIMILARITY" in again["failures"]
        assert "BREAK THE TEMPLATE:" in again["repair_instruction"]

    def test_final_and_prior_score(self):
        result = analyze_script(SUBTLE_TEXT, get_default_engine_profile("feature_film"), prior_score=0.2, is_final=True)
        assert result["failures"] == ["QUIET_BEATS_MISSING"]
        assert result["regressed"] is False

    def test_full_pipeline(self):
        profile = derive_engine_profile("vertical_drama", [
            {"title": "Comp", "format": "series", "weight": 2.0, "dimensions": ["twist_budget"], "avoid_tags": ["car_chase"]},
        ])
        profile = merge_ruleset(
            profile, None,
            project_overrides=[{"op": "add", "path": "/forbidden_moves/-", "value": "dream_sequence"}],
            run_overrides=[{"op": "replace", "path": "/budgets/twist_cap", "value": 1}],
        )
        assert profile.budgets.twist_cap == 1
        result = analyze_script("A car chase, then a dream sequence.", profile)
        assert result["forbidden_moves_found"] == ["car_chase", "dream_sequence"]
