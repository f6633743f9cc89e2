import random

import pytest

from deepfake_verdict.result import (
    FEATURE_KEYS,
    DetectionResult,
    compute_confidence,
    decide_verdict,
    generate_id,
    now_ms,
)


def _result(**overrides):
    data = dict(
        id="abc",
        filename="clip.mp4",
        timestamp=1700000000000,
        real_score=0.8,
        fake_score=0.2,
        confidence=60.0,
        verdict="real",
        features={k: 10.0 for k in FEATURE_KEYS},
        detection_time=1.5,
        metadata={"fallbackMode": False},
    )
    data.update(overrides)
    return DetectionResult(**data)


class TestComputeConfidence:
    def test_scaled_difference(self):
        assert compute_confidence(0.7, 0.3) == pytest.approx(80.0)

    def test_capped_at_100(self):
        assert compute_confidence(1.0, 0.0) == 100.0

    def test_symmetric(self):
        assert compute_confidence(0.2, 0.8) == compute_confidence(0.8, 0.2)

    def test_equal_scores(self):
        assert compute_confidence(0.5, 0.5) == 0.0


class TestDecideVerdict:
    def test_low_confidence_is_uncertain(self):
        assert decide_verdict(49.9, 0.9, 0.1) == "uncertain"

    def test_boundary_is_not_uncertain(self):
        assert decide_verdict(50.0, 0.625, 0.375) == "real"

    def test_fake_when_fake_higher(self):
        assert decide_verdict(80.0, 0.1, 0.9) == "fake"

    def test_tie_is_fake(self):
        assert decide_verdict(50.0, 0.5, 0.5) == "fake"


class TestGenerateId:
    def test_shape(self):
        rid = generate_id()
        assert len(rid) == 26
        assert rid.isalnum() and rid == rid.lower()

    def test_seeded_is_reproducible(self):
        assert generate_id(random.Random(1)) == generate_id(random.Random(1))

    def test_unique(self):
        assert len({generate_id() for _ in range(100)}) == 100


def test_now_ms_is_milliseconds():
    assert now_ms() > 1_600_000_000_000


class TestDetectionResult:
    def test_immutable(self):
        result = _result()
        with pytest.raises(AttributeError):
            result.verdict = "fake"

    def test_mappings_are_read_only(self):
        result = _result()
        with pytest.raises(TypeError):
            result.features["faceInconsistencies"] = 99.0
        with pytest.raises(TypeError):
            result.metadata["fallbackMode"] = True

    def test_detached_from_constructor_arguments(self):
        features = {k: 10.0 for k in FEATURE_KEYS}
        failed = [2, 5]
        result = _result(features=features, metadata={"failedFrameIndices": failed})

        features["faceInconsistencies"] = 99.0
        failed.append(7)

        assert result.features["faceInconsistencies"] == 10.0
        assert result.metadata["failedFrameIndices"] == [2, 5]

    def test_to_dict_is_a_mutable_copy(self):
        result = _result(metadata={"failedFrameIndices": [1]})
        d = result.to_dict()
        d["features"]["faceInconsistencies"] = 99.0
        d["metadata"]["failedFrameIndices"].append(3)

        assert result.features["faceInconsistencies"] == 10.0
        assert result.metadata["failedFrameIndices"] == [1]

    def test_to_dict_uses_wire_names(self):
        d = _result().to_dict()
        assert d["realScore"] == 0.8
        assert d["fakeScore"] == 0.2
        assert d["detectionTime"] == 1.5
        assert set(d["features"]) == set(FEATURE_KEYS)

    def test_from_dict_restores_value(self):
        original = _result(metadata={"fallbackMode": True, "reason": "x"})
        assert DetectionResult.from_dict(original.to_dict()) == original

    def test_from_dict_rejects_unknown_verdict(self):
        d = _result().to_dict()
        d["verdict"] = "maybe"
        with pytest.raises(ValueError, match="Unknown verdict"):
            DetectionResult.from_dict(d)

    def test_fallback_mode_property(self):
        assert _result(metadata={"fallbackMode": True}).fallback_mode is True
        assert _result(metadata={}).fallback_mode is False
