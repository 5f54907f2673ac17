"""
Adapter for the external AI signal parser.

The language model itself lives outside this package; callers inject a
``complete(prompt) -> str`` callable (for example a thin wrapper around a
chat-completion client). This module owns the prompt and the mapping of
the model's JSON answer onto ``TradeSignal``. It honours the same
contract as ``SignalExtractor``: a signal, or ``None``.
"""

import re
from typing import Callable, Optional

import orjson
import structlog

from .models import TradeSignal, to_decimal

logger = structlog.get_logger(__name__)

EXTRACTION_PROMPT = """You are a trading signal analyst.
Read the stock recommendation below (it may be written in Arabic or English) and extract:
- the ticker symbol (symbol)
- the entry trigger price (trigger)
- the stop-loss price (stop)
- the targets (targets), if any
Reply with JSON only, exactly in this shape and with no commentary:
{"symbol":"FGNX","trigger":9.16,"stop":8.25,"targets":[10.00,11.16,12.57]}
Text:
"""

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def parse_completion(content: str) -> Optional[TradeSignal]:
    """Map a model answer onto a TradeSignal, None when unusable."""
    if not content:
        return None

    cleaned = _CODE_FENCE.sub("", content).strip()
    try:
        data = orjson.loads(cleaned)
    except orjson.JSONDecodeError:
        logger.warning("AI parser returned non-JSON content", content=cleaned[:200])
        return None

    if not isinstance(data, dict):
        return None

    symbol = data.get("symbol")
    if not isinstance(symbol, str) or not symbol.strip():
        return None

    try:
        trigger = to_decimal(data.get("trigger"))
        stop = to_decimal(data.get("stop"))
    except ValueError:
        return None

    targets = []
    raw_targets = data.get("targets")
    if isinstance(raw_targets, list):
        for raw in raw_targets:
            try:
                targets.append(to_decimal(raw))
            except ValueError:
                continue

    try:
        return TradeSignal(symbol=symbol, trigger=trigger, stop=stop, targets=tuple(targets))
    except ValueError:
        return None


class AiSignalParser:
    """Secondary parser backed by an external language model."""

    def __init__(self, complete: Callable[[str], str], prompt: str = EXTRACTION_PROMPT):
        self._complete = complete
        self.prompt = prompt

    def parse(self, text: str) -> Optional[TradeSignal]:
        """Ask the model to extract a signal; failures yield None."""
        if not text or not text.strip():
            return None

        try:
            content = self._complete(self.prompt + text)
        except Exception as e:
            # The model sits behind a network call; its failure is a parse miss.
            logger.error("AI parser request failed", error=str(e))
            return None

        return parse_completion(content)
