"""Language detector adapters."""

from .langdetect_detector import LangdetectLanguageDetector

__all__ = ["LangdetectLanguageDetector"]
