"""Language Detector Port - statistical language guessing."""

from abc import ABC, abstractmethod
from typing import List

from ..envelope import LanguageCandidate


class LanguageDetectorPort(ABC):
    """Port interface for language detection."""

    @abstractmethod
    async def detect(self, text: str, max_candidates: int = 2) -> List[LanguageCandidate]:
        """Guess the languages of text.

        Args:
            text: Body text to analyze
            max_candidates: Upper bound on returned candidates

        Returns:
            List[LanguageCandidate]: Candidates ranked by confidence (may be empty)
        """
        pass
