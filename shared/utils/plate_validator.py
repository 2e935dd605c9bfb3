"""
License Plate Validation and Jurisdiction Classification
Normalizes detector tokens and matches them against the jurisdiction plate grammar
"""

import re
from typing import Iterable, Optional, Union

from loguru import logger

from shared.schemas.violation import PLATE_GRAMMAR, Classification, TextDetection

Token = Union[str, TextDetection]


class PlateValidator:
    """
    Validates and normalizes license plates for a single jurisdiction

    Classification is pure: the same token list always yields the same
    Classification and nothing outside the validator is touched.
    """

    def __init__(self, pattern: re.Pattern = PLATE_GRAMMAR):
        """
        Initialize plate validator

        Args:
            pattern: Compiled jurisdiction plate grammar
        """
        self.pattern = pattern

    def normalize(self, raw_text: str) -> str:
        """
        Normalize plate text

        Args:
            raw_text: Raw detector output

        Returns:
            Uppercase text with all whitespace removed
        """
        return re.sub(r'\s+', '', raw_text).upper()

    def validate(self, text: str) -> bool:
        """Check normalized text against the jurisdiction grammar"""
        return self.pattern.match(text) is not None

    def find_plate(self, tokens: Iterable[Token]) -> Optional[str]:
        """
        Return the first grammar-matching token, in detector order

        Confidence is not consulted: the first match wins even when a later
        match has a higher detector confidence.
        """
        for token in tokens:
            raw_text = token.text if isinstance(token, TextDetection) else token
            normalized = self.normalize(raw_text)
            if self.validate(normalized):
                return normalized
        return None

    def classify(self, tokens: Iterable[Token]) -> Classification:
        """
        Classify a detection result for jurisdiction

        Args:
            tokens: Detector tokens (raw strings or TextDetection) in detector order

        Returns:
            Classification with the matched plate, or an empty plate and
            is_in_jurisdiction=False when no token matches
        """
        plate = self.find_plate(tokens)
        if plate is None:
            logger.debug("No token matched the jurisdiction plate grammar")
            return Classification(plate_number='', is_in_jurisdiction=False)

        logger.debug(f"Plate {plate} matched jurisdiction grammar {self.pattern.pattern}")
        return Classification(plate_number=plate, is_in_jurisdiction=True)


def classify_tokens(tokens: Iterable[Token]) -> Classification:
    """Classify tokens with the default jurisdiction grammar"""
    return PlateValidator().classify(tokens)
