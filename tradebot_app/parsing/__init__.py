"""
Trade signal parsing: model, text normalization, the heuristic
extractor and the AI fallback adapter.
"""
from .ai_parser import AiSignalParser
from .extractor import SignalExtractor
from .models import TradeSignal
from .normalizer import normalize_text

__all__ = ["AiSignalParser", "SignalExtractor", "TradeSignal", "normalize_text"]
