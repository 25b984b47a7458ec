import pytest

from data_designer_narrative_ruleset.defaults import get_default_engine_profile
from data_designer_narrative_ruleset.fingerprint import (
    Fingerprint,
    SimilarityParameters,
    compute_ruleset_fingerprint,
    compute_ruleset_similarity_risk,
    fingerprint_overlap,
    get_diversification_hints,
)
from data_designer_narrative_ruleset.profile import ConfigurationError, InvalidFingerprint

SCENE_TEXT = "She is accused of the theft at the hospital in the city. It turns out the ledger reveals more."


@pytest.fixture
def fingerprint():
    return compute_ruleset_fingerprint(SCENE_TEXT, get_default_engine_profile("vertical_drama"))


def _other(**changes):
    values = {
        "lane": "vertical_drama",
        "story_engine": "rashomon",
        "causal_grammar": "erosion",
        "conflict_mode": "family_obligation",
        "stakes_type": "global",
        "twist_count_bucket": "0",
        "antagonist_type": "system",
        "ending_type": "justice",
        "inciting_incident_category": "offer",
    }
    values.update(changes)
    return Fingerprint(**values)


class TestComputeFingerprint:
    def test_profile_archetype(self, fingerprint):
        assert fingerprint.lane == "vertical_drama"
        assert fingerprint.story_engine == "pressure_cooker"
        assert fingerprint.causal_grammar == "accumulation"
        assert fingerprint.conflict_mode == "status_reputation"

    def test_text_cues(self, fingerprint):
        assert fingerprint.inciting_incident_category == "accusation"
        assert fingerprint.twist_count_bucket == "2+"
        assert fingerprint.setting_tags == ("urban", "medical")

    def test_fallbacks(self):
        fp = compute_ruleset_fingerprint("", get_default_engine_profile("series"))
        assert fp.stakes_type == "personal"
        assert fp.antagonist_type == "person"
        assert fp.ending_type == "ambiguous"
        assert fp.inciting_incident_category == "discovery"
        assert fp.twist_count_bucket == "0"
        assert fp.setting_tags == ()

    def test_global_stakes(self):
        fp = compute_ruleset_fingerprint("The war will end the nation.", get_default_engine_profile("feature_film"))
        assert fp.stakes_type == "global"

    def test_payload_round_trip(self, fingerprint):
        payload = fingerprint.to_payload()
        assert payload["setting_tags"] == ["urban", "medical"]
        assert Fingerprint.from_payload(payload) == fingerprint

    def test_from_payload_ignores_unknown_keys(self, fingerprint):
        payload = {**fingerprint.to_payload(), "created_at": "2024-01-01"}
        assert Fingerprint.from_payload(payload) == fingerprint

    def test_from_payload_missing_fields(self):
        with pytest.raises(InvalidFingerprint) as excinfo:
            Fingerprint.from_payload({"story_engine": "rashomon"})
        assert isinstance(excinfo.value, ConfigurationError)

    def test_from_payload_rejects_string_tags(self, fingerprint):
        with pytest.raises(InvalidFingerprint):
            Fingerprint.from_payload({**fingerprint.to_payload(), "setting_tags": "urban"})

    def test_from_payload_rejects_non_mapping(self):
        with pytest.raises(InvalidFingerprint):
            Fingerprint.from_payload(["vertical_drama"])


class TestSimilarityRisk:
    def test_empty_history(self, fingerprint):
        assert compute_ruleset_similarity_risk(fingerprint, []) == 0.0

    def test_malformed_history_entry(self, fingerprint):
        with pytest.raises(InvalidFingerprint):
            compute_ruleset_similarity_risk(fingerprint, [{"story_engine": "rashomon"}])

    def test_three_identical_entries(self, fingerprint):
        risk = compute_ruleset_similarity_risk(fingerprint, [fingerprint] * 3)
        assert risk > 0.5
        assert risk == pytest.approx(1 - 0.65**3)

    def test_monotonic_and_bounded(self, fingerprint):
        previous = 0.0
        for n in range(1, 15):
            risk = compute_ruleset_similarity_risk(fingerprint, [fingerprint] * n)
            assert previous <= risk < 1.0
            previous = risk

    def test_window_limits_history(self, fingerprint):
        params = SimilarityParameters()
        full = compute_ruleset_similarity_risk(fingerprint, [fingerprint] * params.window)
        assert compute_ruleset_similarity_risk(fingerprint, [fingerprint] * 30) == pytest.approx(full)

    def test_partial_matches_score_lower(self, fingerprint):
        identical = compute_ruleset_similarity_risk(fingerprint, [fingerprint] * 3)
        different = compute_ruleset_similarity_risk(fingerprint, [_other()] * 3)
        assert different < identical

    def test_accepts_payloads(self, fingerprint):
        as_payloads = [fingerprint.to_payload()] * 3
        assert compute_ruleset_similarity_risk(fingerprint, as_payloads) == pytest.approx(
            compute_ruleset_similarity_risk(fingerprint, [fingerprint] * 3)
        )

    def test_vertical_weights_conflict_mode(self, fingerprint):
        same_mode = _other(conflict_mode=fingerprint.conflict_mode)
        same_engine = _other(story_engine=fingerprint.story_engine)
        assert fingerprint_overlap(fingerprint, same_mode) > fingerprint_overlap(fingerprint, same_engine)

    def test_overlap_bounds(self, fingerprint):
        assert fingerprint_overlap(fingerprint, fingerprint) == 1.0
        assert fingerprint_overlap(fingerprint, _other(twist_count_bucket="1")) == 0.0


class TestDiversificationHints:
    def test_empty_history(self):
        assert get_diversification_hints([]).to_payload() == {
            "avoid_story_engines": [],
            "avoid_causal_grammars": [],
            "avoid_stakes_types": [],
            "avoid_conflict_modes": [],
            "avoid_inciting_categories": [],
        }

    def test_overused_values(self, fingerprint):
        hints = get_diversification_hints([fingerprint] * 3)
        assert hints.avoid_story_engines == ("pressure_cooker",)
        assert hints.avoid_conflict_modes == ("status_reputation",)
        assert hints.avoid_inciting_categories == ("accusation",)

    def test_vertical_uses_narrower_share(self, fingerprint):
        recent = [fingerprint] * 3 + [_other()] * 7
        assert "status_reputation" in get_diversification_hints(recent, lane="vertical_drama").avoid_conflict_modes
        assert "status_reputation" not in get_diversification_hints(recent, lane="feature_film").avoid_conflict_modes
