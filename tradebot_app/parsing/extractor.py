"""
Heuristic trade signal extraction from free-text messages.

The extractor works on normalized text (see ``normalizer``) and looks for
four things in a fixed order:

1. Symbol: the first line holding a bare Latin alphanumeric token.
2. Entry trigger: the first entry phrasing in ``ENTRY_MATCHERS`` that
   matches anywhere in the text. The tuple order is a precedence policy;
   earlier phrasings win when several co-occur.
3. Stop-loss: the first stop phrasing in ``STOP_MATCHERS``.
4. Targets: every number after a targets header, if one is present.

Symbol, trigger and stop are required. A message missing any of them is
simply not a signal and ``parse`` returns ``None``; it never raises.
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import structlog

from .models import MAX_SYMBOL_LENGTH, TradeSignal, to_decimal
from .normalizer import normalize_text

logger = structlog.get_logger(__name__)

# Numeric capture is intentionally loose so that malformed numbers such as
# "6..36" are caught by Decimal validation instead of silently truncated.
_NUM = r"(\d[\d.]*)"


@dataclass(frozen=True)
class SignalMatcher:
    """A tagged phrasing strategy for one signal field."""
    tag: str
    pattern: re.Pattern

    def match(self, text: str) -> Optional[str]:
        """Return the captured number token, or None."""
        m = self.pattern.search(text)
        return m.group(1) if m else None


def _matcher(tag: str, prefix: str) -> SignalMatcher:
    return SignalMatcher(tag, re.compile(prefix + _NUM, re.IGNORECASE))


ENTRY_MATCHERS: tuple[SignalMatcher, ...] = (
    _matcher("arabic_breakout", r"(?:بتجاوز|تجاوز|اختراق)\s*[:=]?\s*"),
    _matcher("exceeds", r"\b(?:exceeds?|exceeding|breaks?\s+above|crosses?\s+above|above)\s*[:=@]?\s*"),
    _matcher("breakout_at", r"\bbreak\s*-?\s*out\s*(?:at|@|above|level)?\s*[:=]?\s*"),
    _matcher("entry", r"(?:\b(?:entry|enter|buy)\b|الدخول|دخول|شراء)\s*(?:(?:at|@|price|zone|point)\s*)?[:=]?\s*"),
)

STOP_MATCHERS: tuple[SignalMatcher, ...] = (
    _matcher("stop", r"(?:\bstop(?:\s*-?\s*loss)?\b|\bsl\b|وقف(?:\s*(?:ال)?خسارة)?|ستوب)\s*(?:at|@)?\s*[:=]?\s*"),
)

TARGETS_HEADER = re.compile(
    r"(?:\btargets?\b|\btps?\b|\btp\d\b|الأهداف|الاهداف|أهداف|اهداف|الهدف|هدف)",
    re.IGNORECASE
)

_SYMBOL_TOKEN = re.compile(r"(?<![A-Za-z0-9])[A-Za-z][A-Za-z0-9]{1,10}(?![A-Za-z0-9])")

# Phrase keywords that can never be a ticker.
_KEYWORDS = frozenset({
    "above", "at", "break", "breakout", "breaks", "buy", "cross", "crosses",
    "enter", "entry", "exceed", "exceeds", "exceeding", "level", "loss",
    "out", "point", "price", "sell", "sl", "stop", "target", "targets",
    "tp", "tps", "zone",
})
_TP_LABEL = re.compile(r"tp\d+", re.IGNORECASE)

_TARGET_SPLIT = re.compile(r"[\s/|،؛;\-–]+")
_TARGET_STRIP = ":()[]{}$*+#=@"
_PERCENT_SIGNS = ("%", "\u066a")


@dataclass(frozen=True)
class ExtractionResult:
    """Parsed signal plus which strategies produced it."""
    signal: TradeSignal
    entry_tag: str
    stop_tag: str
    symbol_line: int


def _parse_price(token: Optional[str]) -> Optional[Decimal]:
    if token is None:
        return None
    token = token[:-1] if token.endswith(".") else token
    try:
        value = to_decimal(token)
    except ValueError:
        return None
    return value if value > 0 else None


def find_symbol(text: str) -> Optional[tuple[str, int]]:
    """Return (symbol, line index) for the first line holding a ticker token."""
    for index, line in enumerate(text.splitlines()):
        for m in _SYMBOL_TOKEN.finditer(line):
            token = m.group(0)
            lowered = token.lower()
            if lowered in _KEYWORDS or _TP_LABEL.fullmatch(token):
                continue
            if len(token) > MAX_SYMBOL_LENGTH:
                continue
            return token.upper(), index
    return None


def find_targets(text: str) -> list[Decimal]:
    """Collect every number token after the targets header, skipping bad ones."""
    m = TARGETS_HEADER.search(text)
    if not m:
        return []

    targets = []
    for raw in _TARGET_SPLIT.split(text[m.end():]):
        token = raw.strip(_TARGET_STRIP).rstrip(".")
        # "+8%" annotates the gain to a target, it is not a price
        if token.endswith(_PERCENT_SIGNS) or token.startswith(_PERCENT_SIGNS):
            continue
        if not token or not token[0].isdigit():
            continue
        try:
            value = to_decimal(token)
        except ValueError:
            continue
        if value > 0:
            targets.append(value)
    return targets


def _first_match(matchers: tuple[SignalMatcher, ...], text: str) -> Optional[tuple[str, str]]:
    for matcher in matchers:
        token = matcher.match(text)
        if token is not None:
            return matcher.tag, token
    return None


class SignalExtractor:
    """Parses raw message text into a ``TradeSignal``."""

    def __init__(
        self,
        entry_matchers: tuple[SignalMatcher, ...] = ENTRY_MATCHERS,
        stop_matchers: tuple[SignalMatcher, ...] = STOP_MATCHERS
    ):
        self.entry_matchers = entry_matchers
        self.stop_matchers = stop_matchers

    def parse(self, text: str) -> Optional[TradeSignal]:
        """Parse ``text``; returns None when it is not a trade signal."""
        result = self.parse_with_details(text)
        return result.signal if result else None

    def parse_with_details(self, text: str) -> Optional[ExtractionResult]:
        """Parse ``text`` and report which strategies matched."""
        if not isinstance(text, str) or not text.strip():
            return None

        normalized = normalize_text(text)

        symbol = find_symbol(normalized)
        if symbol is None:
            logger.debug("No symbol token found")
            return None

        entry = _first_match(self.entry_matchers, normalized)
        stop = _first_match(self.stop_matchers, normalized)
        if entry is None or stop is None:
            logger.debug(
                "Missing required signal field",
                symbol=symbol[0],
                has_entry=entry is not None,
                has_stop=stop is not None
            )
            return None

        trigger = _parse_price(entry[1])
        stop_price = _parse_price(stop[1])
        if trigger is None or stop_price is None:
            logger.debug(
                "Malformed trigger or stop value",
                symbol=symbol[0],
                trigger_token=entry[1],
                stop_token=stop[1]
            )
            return None

        try:
            signal = TradeSignal(
                symbol=symbol[0],
                trigger=trigger,
                stop=stop_price,
                targets=tuple(find_targets(normalized)),
            )
        except ValueError:
            return None

        return ExtractionResult(
            signal=signal,
            entry_tag=entry[0],
            stop_tag=stop[0],
            symbol_line=symbol[1],
        )
