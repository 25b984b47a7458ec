import pytest

from data_designer_narrative_ruleset.defaults import get_default_engine_profile
from data_designer_narrative_ruleset.gate import (
    GateFailureCode,
    GateParameters,
    melodrama_ceiling,
    run_ruleset_gate,
    twist_rate_ceiling,
)
from data_designer_narrative_ruleset.merge import apply_overrides
from data_designer_narrative_ruleset.scoring import Metrics, compute_ruleset_metrics, detect_forbidden_moves

SUBTLE_TEXT = (
    "Maya stops at the door. A long silence. "
    "What she won't say is that the loan was hers; she says instead that the rent is late. "
    "Her tactic is patience, and the tell is the way she folds the receipt. "
    "Later Daniel looks at the letter in a new light: the landlord has a point, and the price of staying is her job. "
    "Beneath the surface, the unspoken cost of leaving settles over the kitchen. Another pause."
)

TWISTY_TEXT = "It turns out he was secretly her brother. The reveal: a shocking betrayal all along."

THREADED_TEXT = (
    "Meanwhile the sisters argue. Meanwhile the bank calls. Meanwhile the father sleeps. Meanwhile the dog waits."
)


def _gate(text, lane="feature_film", **kwargs):
    return run_ruleset_gate(compute_ruleset_metrics(text), text, get_default_engine_profile(lane), **kwargs)


class TestGateChecks:
    def test_subtle_text_passes(self):
        result = _gate(SUBTLE_TEXT)
        assert result.passed
        assert result.failures == ()

    def test_forbidden_move(self):
        result = _gate("The secret organization ran the plot.")
        assert GateFailureCode.FORBIDDEN_MOVE_PRESENT.value in result.failures
        assert result.forbidden_moves_found == ("secret_organization",)
        assert not result.passed

    @pytest.mark.parametrize(
        "text",
        [
            SUBTLE_TEXT,
            "The secret organization ran the plot.",
            "A sniper assassination at dawn.",
            "The villain's monologue.",
            "Everything is connected, she says.",
            "",
        ],
    )
    def test_forbidden_failure_iff_detected(self, text):
        profile = get_default_engine_profile("feature_film")
        result = run_ruleset_gate(compute_ruleset_metrics(text), text, profile)
        detected = bool(detect_forbidden_moves(text, profile.forbidden_moves))
        assert ("FORBIDDEN_MOVE_PRESENT" in result.failures) == detected

    def test_twist_overuse(self):
        assert "TWIST_OVERUSE" in _gate(TWISTY_TEXT).failures

    def test_twist_ceiling_follows_budget(self):
        assert twist_rate_ceiling(get_default_engine_profile("documentary")) == 2.0
        assert twist_rate_ceiling(get_default_engine_profile("vertical_drama")) == 8.0

    def test_overcomplexity(self):
        assert "OVERCOMPLEXITY" in _gate(THREADED_TEXT).failures

    def test_subtext_missing(self):
        assert "SUBTEXT_MISSING" in _gate("He walks to the car and drives away.").failures

    def test_one_arrival_in_a_short_scene_passes(self):
        assert _gate(SUBTLE_TEXT + " Daniel arrives.").passed

    def test_too_many_arrivals(self):
        arrivals = " ".join(f"{name} arrives." for name in ("Ruth", "Omar", "Lena", "Theo", "Iris", "Sam"))
        assert "OVERCOMPLEXITY" in _gate(SUBTLE_TEXT + " " + arrivals).failures

    def test_named_factions_over_threshold(self):
        text = SUBTLE_TEXT + " The Harlan Family and the Vance Agency both want the lot."
        assert _gate(text).failures == ("OVERCOMPLEXITY",)
        assert _gate(text, lane="vertical_drama").passed

    def test_faction_threshold_override_changes_outcome(self):
        text = SUBTLE_TEXT + " The Harlan Family and the Vance Agency both want the lot."
        profile = apply_overrides(get_default_engine_profile("feature_film"), [
            {"op": "replace", "path": "/gate_thresholds/complexity_factions_max", "value": 3},
        ])
        assert run_ruleset_gate(compute_ruleset_metrics(text), text, profile).passed

    def test_core_character_threshold_override_changes_outcome(self):
        text = SUBTLE_TEXT + " Ruth arrives. Omar arrives."
        profile = apply_overrides(get_default_engine_profile("feature_film"), [
            {"op": "replace", "path": "/gate_thresholds/complexity_core_chars_max", "value": 1},
        ])
        assert _gate(text).passed
        assert run_ruleset_gate(compute_ruleset_metrics(text), text, profile).failures == ("OVERCOMPLEXITY",)

    def test_early_shock(self):
        text = "Explosion. Gunshot. Hostage. " + " ".join(["calm"] * 60)
        assert "STAKES_TOO_BIG_TOO_EARLY" in _gate(text).failures

    def test_single_early_shock_in_a_short_scene_passes(self):
        result = _gate("Since the murder trial, " + SUBTLE_TEXT)
        assert "STAKES_TOO_BIG_TOO_EARLY" not in result.failures
        assert result.passed

    def test_template_similarity(self):
        assert "TEMPLATE_SIMILARITY" in _gate(SUBTLE_TEXT, similarity_risk=0.9).failures
        assert "TEMPLATE_SIMILARITY" not in _gate(SUBTLE_TEXT, similarity_risk=0.5).failures
        assert "TEMPLATE_SIMILARITY" not in _gate(SUBTLE_TEXT).failures

    def test_similarity_threshold_is_per_lane(self):
        assert "TEMPLATE_SIMILARITY" not in _gate(SUBTLE_TEXT, lane="vertical_drama", similarity_risk=0.65).failures

    def test_failures_are_known_codes(self):
        known = {c.value for c in GateFailureCode}
        for text in (SUBTLE_TEXT, TWISTY_TEXT, THREADED_TEXT, ""):
            assert set(_gate(text, is_final=True, similarity_risk=1.0).failures) <= known


class TestFinalPass:
    def test_final_adds_quiet_beat_check(self):
        assert _gate(SUBTLE_TEXT, is_final=True).failures == ("QUIET_BEATS_MISSING",)

    def test_final_quiet_beats_follow_lane(self):
        assert _gate(SUBTLE_TEXT, lane="vertical_drama", is_final=True).passed

    def test_final_adds_meaning_shift_check(self):
        failures = _gate("He walks to the car and drives away.", is_final=True).failures
        assert "MEANING_SHIFT_MISSING" in failures
        assert "MEANING_SHIFT_MISSING" not in _gate("He walks to the car and drives away.").failures

    def test_final_tightens_melodrama(self):
        metrics = Metrics(word_count=100, absolute_words_rate=10.0, twist_keyword_rate=4.0, conspiracy_rate=10.0,
                          faction_rate=0.75)
        profile = get_default_engine_profile("feature_film")
        assert "MELODRAMA" not in run_ruleset_gate(metrics, "", profile).failures
        assert "MELODRAMA" in run_ruleset_gate(metrics, "", profile, is_final=True).failures

    def test_melodrama_ceiling(self):
        profile = get_default_engine_profile("feature_film")
        assert melodrama_ceiling(profile, False) == 0.5
        assert melodrama_ceiling(profile, True) == pytest.approx(0.45)
        assert melodrama_ceiling(profile, True, GateParameters(final_melodrama_factor=1.0)) == 0.5


class TestPriorScore:
    def test_regression_reported(self):
        text = "He walks to the car and drives away."
        with_prior = _gate(text, prior_score=1.0)
        assert with_prior.regressed
        assert with_prior.score_delta < 0
        assert with_prior.failures == _gate(text).failures

    def test_improvement_not_regressed(self):
        result = _gate(SUBTLE_TEXT, prior_score=0.2)
        assert not result.regressed
        assert result.score_delta > 0

    def test_within_tolerance(self):
        assert not _gate(SUBTLE_TEXT, prior_score=1.04).regressed

    def test_no_prior(self):
        result = _gate(SUBTLE_TEXT)
        assert result.score_delta is None
        assert not result.regressed


class TestGateResult:
    def test_payload(self):
        payload = _gate("The secret organization ran the plot.", prior_score=0.5).to_payload()
        assert payload["passed"] is False
        assert "FORBIDDEN_MOVE_PRESENT" in payload["failures"]
        assert payload["forbidden_moves_found"] == ["secret_organization"]
        assert payload["prior_score"] == 0.5
        assert payload["is_final"] is False
