"""Tests for plate normalization and jurisdiction classification."""

import pytest
from pydantic import ValidationError

from shared.schemas.violation import Classification, TextDetection
from shared.utils.plate_validator import PlateValidator, classify_tokens


@pytest.fixture
def validator():
    return PlateValidator()


class TestNormalize:
    def test_strips_whitespace_and_uppercases(self, validator):
        assert validator.normalize(" 3abc 123\n") == "3ABC123"

    def test_keeps_punctuation(self, validator):
        assert validator.normalize("3ABC-123") == "3ABC-123"


class TestValidate:
    @pytest.mark.parametrize("text", ["3ABC123", "0ZZZ000", "9XYZ987"])
    def test_accepts_grammar(self, validator, text):
        assert validator.validate(text)

    @pytest.mark.parametrize("text", [
        "ABC1234",   # letters first
        "3AB1234",   # two letters
        "3ABC1234",  # trailing digit
        "33ABC123",  # leading digit
        "3ABC12",
        "3ABC-123",
        "",
    ])
    def test_rejects_everything_else(self, validator, text):
        assert not validator.validate(text)


class TestClassify:
    def test_matching_token_is_in_jurisdiction(self, validator):
        result = validator.classify(["CALIFORNIA", "3ABC123", "DMV"])

        assert result.is_in_jurisdiction
        assert result.plate_number == "3ABC123"

    def test_normalizes_before_matching(self, validator):
        result = validator.classify(["3abc 123"])

        assert result == Classification(plate_number="3ABC123", is_in_jurisdiction=True)

    def test_no_match_is_out_of_jurisdiction(self, validator):
        result = validator.classify(["WASHINGTON", "ABC-1234"])

        assert not result.is_in_jurisdiction
        assert result.plate_number == ""

    def test_empty_detection_is_out_of_jurisdiction(self, validator):
        assert validator.classify([]) == Classification(plate_number="", is_in_jurisdiction=False)

    def test_first_match_wins_regardless_of_confidence(self, validator):
        tokens = [
            TextDetection(text="7XYZ456", confidence=40.0),
            TextDetection(text="3ABC123", confidence=99.9),
        ]

        assert validator.classify(tokens).plate_number == "7XYZ456"

    def test_classification_is_deterministic(self, validator):
        tokens = ["noise", "3ABC123", "7XYZ456"]

        assert validator.classify(tokens) == validator.classify(list(tokens))

    def test_module_helper_uses_default_grammar(self):
        assert classify_tokens(["3ABC123"]).is_in_jurisdiction


class TestClassificationModel:
    def test_in_jurisdiction_requires_valid_plate(self):
        with pytest.raises(ValidationError):
            Classification(plate_number="ABC123", is_in_jurisdiction=True)

    def test_out_of_jurisdiction_allows_empty_plate(self):
        assert Classification().plate_number == ""
