import random

import pytest

from deepfake_verdict.classifiers.base import Prediction
from deepfake_verdict.errors import AggregationPrecondition
from deepfake_verdict.result import FEATURE_KEYS, compute_confidence, decide_verdict
from deepfake_verdict.scoring.aggregator import FEATURE_WEIGHTS, aggregate, feature_scores

from conftest import SequenceRandom


def _preds(*fake_probs):
    return [Prediction(frame_index=i, fake_probability=p) for i, p in enumerate(fake_probs)]


def test_empty_predictions_rejected():
    with pytest.raises(AggregationPrecondition):
        aggregate([])


class TestClassifierScores:
    def test_mean_of_fake_probabilities(self):
        scores = aggregate(_preds(0.6, 0.7, 0.8))

        assert scores.source == "classifier"
        assert scores.fake_score == pytest.approx(0.7)
        assert scores.real_score == pytest.approx(0.3)
        assert scores.confidence == pytest.approx(80.0)
        assert scores.verdict == "fake"

    def test_order_insensitive(self):
        a = aggregate(_preds(0.1, 0.5, 0.3))
        b = aggregate(_preds(0.3, 0.1, 0.5))
        assert a.fake_score == pytest.approx(b.fake_score)
        assert a.verdict == b.verdict

    def test_close_scores_are_uncertain(self):
        scores = aggregate(_preds(0.45, 0.55, 0.5))
        assert scores.verdict == "uncertain"

    def test_label_only_predictions_are_ignored_for_mean(self):
        preds = _preds(0.1) + [Prediction(frame_index=9, labels=[("cat", 1.0)])]
        assert aggregate(preds).fake_score == pytest.approx(0.1)


class TestPriorScores:
    def test_label_only_predictions_use_prior(self):
        preds = [Prediction(frame_index=0, labels=[("tabby cat", 0.9)])]
        scores = aggregate(preds, rng=SequenceRandom([0.5]))

        assert scores.source == "prior"
        assert scores.real_score == pytest.approx(0.75)
        assert scores.fake_score == pytest.approx(0.25)
        assert scores.confidence == pytest.approx(100.0)
        assert scores.verdict == "real"

    def test_prior_range(self):
        preds = [Prediction(frame_index=0)]
        rng = random.Random(7)
        for _ in range(500):
            s = aggregate(preds, rng=rng)
            assert 0.6 <= s.real_score < 0.9


class TestInvariants:
    @pytest.mark.parametrize("n", [1, 2, 10])
    def test_scores_complementary_and_consistent(self, n):
        rng = random.Random(n)
        for _ in range(200):
            probs = [rng.random() for _ in range(n)]
            s = aggregate(_preds(*probs))

            assert s.real_score + s.fake_score == pytest.approx(1.0)
            assert 0.0 <= s.real_score <= 1.0
            assert s.confidence == pytest.approx(min(100.0, abs(s.real_score - s.fake_score) * 200))
            assert s.verdict == decide_verdict(s.confidence, s.real_score, s.fake_score)
            assert set(s.features) == set(FEATURE_KEYS)
            assert all(0.0 <= v <= 100.0 for v in s.features.values())

    def test_verdict_matches_confidence_rule(self):
        s = aggregate(_preds(0.05))
        assert s.confidence == compute_confidence(s.real_score, s.fake_score)
        assert s.verdict == "real"


class TestFeatureScores:
    def test_weights(self):
        f = feature_scores(0.5)
        for key in FEATURE_KEYS:
            assert f[key] == pytest.approx(0.5 * FEATURE_WEIGHTS[key])

    def test_capped_at_100(self):
        assert feature_scores(1.0)["textureAnomalies"] == 100.0
        assert feature_scores(1.0)["unnaturalEyeBlinking"] == 100.0

    def test_monotonic_in_fake_score(self):
        low, high = feature_scores(0.2), feature_scores(0.6)
        assert all(high[k] >= low[k] for k in FEATURE_KEYS)

    def test_weights_in_range(self):
        assert all(100 <= w <= 130 for w in FEATURE_WEIGHTS.values())
