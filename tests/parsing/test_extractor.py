"""Tests for heuristic signal extraction."""

from decimal import Decimal

import pytest

from tradebot_app.parsing.extractor import (
    ENTRY_MATCHERS,
    SignalExtractor,
    find_symbol,
    find_targets,
)
from tradebot_app.parsing.models import TradeSignal


@pytest.fixture
def extractor() -> SignalExtractor:
    return SignalExtractor()


class TestArabicSignals:
    """Test parsing of Arabic-language messages."""

    def test_astc_example(self, extractor, astc_message):
        """Symbol line plus Arabic breakout, stop and targets phrasing."""
        signal = extractor.parse(astc_message)

        assert signal == TradeSignal(
            symbol="ASTC",
            trigger=Decimal("6.36"),
            stop=Decimal("5.78"),
            targets=(Decimal("6.86"), Decimal("7.48")),
        )

    def test_arabic_indic_digits_match_latin(self, extractor, astc_message):
        arabic = "ASTC\nبتجاوز ٦٫٣٦\nوقف ٥٫٧٨\nاهداف ٦٫٨٦ ٧٫٤٨"
        assert extractor.parse(arabic) == extractor.parse(astc_message)

    def test_extended_arabic_indic_digits_match_latin(self, extractor, astc_message):
        persian = "ASTC\nبتجاوز ۶٫۳۶\nوقف ۵٫۷۸\nاهداف ۶٫۸۶ ۷٫۴۸"
        assert extractor.parse(persian) == extractor.parse(astc_message)

    def test_stop_loss_long_form(self, extractor):
        signal = extractor.parse("FGNX\nاختراق 9.16\nوقف الخسارة 8.25")

        assert signal.symbol == "FGNX"
        assert signal.trigger == Decimal("9.16")
        assert signal.stop == Decimal("8.25")
        assert signal.targets == ()


class TestEnglishSignals:
    """Test parsing of English-language messages."""

    def test_buy_above_with_targets(self, extractor):
        text = "NVDA\nBuy above 120.5\nStop loss: 115\nTargets: 125 / 130 / 140"
        signal = extractor.parse(text)

        assert signal.symbol == "NVDA"
        assert signal.trigger == Decimal("120.5")
        assert signal.stop == Decimal("115")
        assert signal.targets == (Decimal("125"), Decimal("130"), Decimal("140"))

    def test_entry_and_sl(self, extractor):
        signal = extractor.parse("abc\nentry @ 10.25\nSL 9.80")

        assert signal.symbol == "ABC"
        assert signal.trigger == Decimal("10.25")
        assert signal.stop == Decimal("9.80")

    def test_breakout_at(self, extractor):
        result = extractor.parse_with_details("MSTR breakout at 310\nstop 295")

        assert result.entry_tag == "breakout_at"
        assert result.signal.trigger == Decimal("310")

    def test_keywords_are_not_symbols(self, extractor):
        signal = extractor.parse("Buy XYZ above 5\nstop 4")

        assert signal.symbol == "XYZ"
        assert signal.trigger == Decimal("5")


class TestEntryPrecedence:
    """Earlier entry phrasings win when several co-occur."""

    def test_matcher_order(self):
        assert [m.tag for m in ENTRY_MATCHERS] == [
            "arabic_breakout", "exceeds", "breakout_at", "entry",
        ]

    def test_exceeds_beats_entry(self, extractor):
        result = extractor.parse_with_details("XYZ\nentry 5.00\nabove 5.20\nstop 4.50")

        assert result.entry_tag == "exceeds"
        assert result.signal.trigger == Decimal("5.20")

    def test_arabic_breakout_beats_english(self, extractor):
        result = extractor.parse_with_details("XYZ\nbuy 4.90\nبتجاوز 5.10\nstop 4.50")

        assert result.entry_tag == "arabic_breakout"
        assert result.signal.trigger == Decimal("5.10")


class TestParseMisses:
    """Texts lacking a required field are not signals."""

    def test_missing_stop(self, extractor):
        assert extractor.parse("ABC\nentry 10") is None

    def test_missing_entry(self, extractor):
        assert extractor.parse("ABC\nstop 9") is None

    def test_missing_symbol(self, extractor):
        assert extractor.parse("بتجاوز 6.36\nوقف 5.78") is None

    @pytest.mark.parametrize("text", ["", "   ", None, 42])
    def test_empty_or_non_text(self, extractor, text):
        assert extractor.parse(text) is None

    def test_malformed_trigger_fails_parse(self, extractor):
        assert extractor.parse("ABC\nentry 6..36\nstop 5") is None

    def test_malformed_stop_fails_parse(self, extractor):
        assert extractor.parse("ABC\nentry 6.36\nstop 5..1") is None

    def test_parse_is_deterministic(self, extractor, astc_message):
        assert extractor.parse(astc_message) == extractor.parse(astc_message)


class TestFindSymbol:
    """Test symbol detection."""

    def test_first_line_with_token_wins(self):
        assert find_symbol("بتجاوز 6.36\nTSLA now\nAAPL") == ("TSLA", 1)

    def test_overlong_token_skipped(self):
        assert find_symbol("ABCDEFGHIJK MSFT") == ("MSFT", 0)

    def test_tp_labels_skipped(self):
        assert find_symbol("TP1 TP2 AMD") == ("AMD", 0)

    def test_no_latin_token(self):
        assert find_symbol("سهم ممتاز 12") is None


class TestFindTargets:
    """Test target list collection."""

    def test_no_header_yields_empty(self):
        assert find_targets("ABC entry 5 stop 4") == []

    def test_bad_tokens_skipped(self):
        assert find_targets("Targets: 7.1 abc 8..2 9") == [Decimal("7.1"), Decimal("9")]

    def test_separators(self):
        assert find_targets("الأهداف: 6.86 - 7.48 | 8.10.") == [
            Decimal("6.86"), Decimal("7.48"), Decimal("8.10"),
        ]

    def test_percent_annotations_skipped(self):
        assert find_targets("اهداف 6.86 (+8%) 7.48 (+17٪)") == [Decimal("6.86"), Decimal("7.48")]
