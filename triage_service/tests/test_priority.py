"""
Tests for priority scoring.
"""

import math
from dataclasses import replace
from datetime import timedelta

import pytest

from triage_service.core.config import ScoringConfig
from triage_service.models.assessment import RiskLevel
from triage_service.scoring.priority import MAX_SERVICE_MINUTES, PriorityScorer, ScoringParameters


@pytest.fixture
def elderly(normalizer, vitals_factory):
    return normalizer.normalize(vitals_factory(Age=70))


@pytest.fixture
def adult(normalizer, vitals_factory):
    return normalizer.normalize(vitals_factory(Age=40))


class TestScore:

    def test_high_risk_elderly_patient(self, scorer, elderly):
        result = scorer.score(RiskLevel.HIGH, 0.9, elderly)

        assert result.priority_score == 105.0
        assert result.base_score == 100.0
        assert result.confidence_adjusted == pytest.approx(95.0)
        assert result.elderly_boost == 10.0
        assert result.time_decay == 0.0

    def test_low_risk_adult(self, scorer, adult):
        result = scorer.score(RiskLevel.LOW, 0.5, adult)
        assert result.priority_score == 7.5

    def test_elderly_boost_starts_at_threshold(self, scorer, normalizer, vitals_factory):
        at_threshold = normalizer.normalize(vitals_factory(Age=65))
        below = normalizer.normalize(vitals_factory(Age=64))

        assert scorer.score(RiskLevel.MEDIUM, 1.0, at_threshold).priority_score == 60.0
        assert scorer.score(RiskLevel.MEDIUM, 1.0, below).priority_score == 50.0

    def test_confidence_is_clamped(self, scorer, adult):
        assert scorer.score(RiskLevel.HIGH, 1.7, adult).priority_score == 100.0
        assert scorer.score(RiskLevel.HIGH, -3, adult).priority_score == 50.0

    def test_score_rounded_to_two_decimals(self, scorer, adult):
        result = scorer.score(RiskLevel.LOW, 0.333, adult)
        assert result.priority_score == round(10 * (0.5 + 0.5 * 0.333), 2)


class TestTimeDecay:

    @pytest.mark.parametrize("minutes,expected_decay", [
        (0, 0.0),
        (9.99, 0.0),
        (10, 2.0),
        (25, 4.0),
        (61, 12.0),
    ])
    def test_decay_per_full_interval(self, scorer, adult, minutes, expected_decay):
        result = scorer.score(RiskLevel.LOW, 1.0, adult, wait_so_far=minutes)

        assert result.time_decay == expected_decay
        assert result.priority_score == 10.0 + expected_decay

    def test_accepts_timedelta(self, scorer, adult):
        result = scorer.score(RiskLevel.LOW, 1.0, adult, wait_so_far=timedelta(minutes=30))
        assert result.time_decay == 6.0

    @pytest.mark.parametrize("wait", [-15, math.nan, timedelta(minutes=-5)])
    def test_invalid_wait_adds_nothing(self, scorer, adult, wait):
        assert scorer.score(RiskLevel.LOW, 1.0, adult, wait_so_far=wait).time_decay == 0.0

    def test_decay_can_be_disabled(self, scoring_parameters, adult):
        scorer = PriorityScorer(replace(scoring_parameters, time_decay_enabled=False))
        result = scorer.score(RiskLevel.LOW, 1.0, adult, wait_so_far=120)
        assert result.priority_score == 10.0

    def test_non_positive_interval_rejected(self):
        with pytest.raises(ValueError):
            ScoringParameters.from_config(ScoringConfig(time_decay_interval_minutes=0))


class TestWaitEstimate:

    def test_wait_scales_with_position(self, scorer, adult):
        result = scorer.score(RiskLevel.MEDIUM, 0.8, adult, position=3)

        assert result.estimated_wait_time == 30
        assert result.service_minutes == 10.0

    def test_estimate_wait_rounds(self):
        assert PriorityScorer.estimate_wait(3, 4.6) == 14
        assert PriorityScorer.estimate_wait(0, 10) == 0

    @pytest.mark.parametrize("service_minutes,expected", [
        (1e308, 3 * 1440),
        (math.inf, 3 * 1440),
        (math.nan, 0),
        (-5.0, 0),
    ])
    def test_estimate_wait_is_total(self, service_minutes, expected):
        assert PriorityScorer.estimate_wait(3, service_minutes) == expected

    def test_calibrated_service_minutes_are_bounded(self, scorer, adult):
        params = scorer.parameters.with_calibration(
            average_service_minutes={RiskLevel.HIGH: 5.0, RiskLevel.MEDIUM: 1e308, RiskLevel.LOW: -1.0}
        )

        assert params.average_service_minutes[RiskLevel.MEDIUM] == MAX_SERVICE_MINUTES
        assert params.average_service_minutes[RiskLevel.LOW] == 0.0
        result = scorer.score(RiskLevel.MEDIUM, 0.8, adult, position=2, parameters=params)
        assert result.estimated_wait_time == 2 * MAX_SERVICE_MINUTES


class TestParameters:

    def test_calibrated_weight_applies(self, scorer, adult):
        params = scorer.parameters.with_calibration(
            tier_weights={RiskLevel.HIGH: 1.2, RiskLevel.MEDIUM: 1.0, RiskLevel.LOW: 1.0}
        )
        scorer.update_parameters(params)

        assert scorer.score(RiskLevel.HIGH, 1.0, adult).priority_score == 120.0

    def test_explicit_parameters_override_current(self, scorer, adult):
        params = scorer.parameters.with_calibration(
            average_service_minutes={RiskLevel.HIGH: 8.0, RiskLevel.MEDIUM: 10.0, RiskLevel.LOW: 15.0}
        )

        result = scorer.score(RiskLevel.HIGH, 1.0, adult, position=2, parameters=params)

        assert result.estimated_wait_time == 16
        assert scorer.parameters.average_service_minutes[RiskLevel.HIGH] == 5.0

    def test_to_dict_uses_tier_names(self, scoring_parameters):
        data = scoring_parameters.to_dict()

        assert data["base_scores"] == {"low": 10.0, "medium": 50.0, "high": 100.0}
        assert data["tier_weights"]["high"] == 1.0
