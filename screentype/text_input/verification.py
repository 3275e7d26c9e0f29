"""Classification of a field's content after a text input attempt."""

from enum import Enum

from loguru import logger


class VerificationResult(Enum):
    """Outcome of comparing expected and actual field content.

    FULL_MATCH and PARTIAL_MATCH both count as success for a tier; only
    NO_MATCH moves on to the next tier.
    """

    FULL_MATCH = "full_match"
    PARTIAL_MATCH = "partial_match"
    NO_MATCH = "no_match"

    @property
    def is_success(self) -> bool:
        return self is not VerificationResult.NO_MATCH


def classify(expected: str, actual: str) -> VerificationResult:
    """Compare what was entered with what the field now holds.

    The checks run in a fixed order. A prefix of the expected text is tested
    before an extension of it, so a field that truncated the text is
    reported as partial rather than mistaken for extra content.
    """
    if actual == expected:
        logger.debug("Exact match verified")
        return VerificationResult.FULL_MATCH
    if not actual and expected:
        logger.debug(f"No match: expected='{expected}', field is empty")
        return VerificationResult.NO_MATCH
    if expected.startswith(actual):
        logger.debug(f"Partial match: {len(actual)}/{len(expected)} chars")
        return VerificationResult.PARTIAL_MATCH
    if actual.startswith(expected):
        logger.debug(f"Full match with extra content: '{actual}'")
        return VerificationResult.FULL_MATCH

    logger.debug(f"No match: expected='{expected}', actual='{actual}'")
    return VerificationResult.NO_MATCH
