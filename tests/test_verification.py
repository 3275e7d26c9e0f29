"""Unit tests for the verification classifier."""

import pytest

from screentype.text_input.verification import VerificationResult, classify


class TestClassify:
    """Tests for classify()."""

    @pytest.mark.parametrize(
        "expected, actual, result",
        [
            ("hello", "hello", VerificationResult.FULL_MATCH),
            ("hello", "", VerificationResult.NO_MATCH),
            ("hello", "hel", VerificationResult.PARTIAL_MATCH),
            ("hello", "hello ", VerificationResult.FULL_MATCH),
            ("hello", "world", VerificationResult.NO_MATCH),
            ("hello", "help", VerificationResult.NO_MATCH),
            ("你好世界", "你好", VerificationResult.PARTIAL_MATCH),
            ("", "", VerificationResult.FULL_MATCH),
        ],
    )
    def test_classification(self, expected, actual, result):
        """Test each rule of the classifier."""
        assert classify(expected, actual) is result

    def test_prefix_of_expected_checked_before_extension(self):
        """A field that cut the text short is partial, not full."""
        assert classify("abcdef", "abc") is VerificationResult.PARTIAL_MATCH

    def test_extra_content_is_full_match(self):
        """Autoformatting that appends content still counts as full."""
        assert classify("555 1234", "555 1234 ext.") is VerificationResult.FULL_MATCH

    def test_total_over_many_pairs(self):
        """Every pair of strings produces exactly one result."""
        samples = ["", "a", "ab", "abc", "b", "ba", "abd"]
        for expected in samples:
            for actual in samples:
                assert isinstance(classify(expected, actual), VerificationResult)

    def test_success_property(self):
        """Only NO_MATCH is a failure."""
        assert VerificationResult.FULL_MATCH.is_success
        assert VerificationResult.PARTIAL_MATCH.is_success
        assert not VerificationResult.NO_MATCH.is_success
