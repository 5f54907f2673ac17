"""Tests for the AI fallback parser adapter."""

from decimal import Decimal
from unittest.mock import Mock

from tradebot_app.parsing.ai_parser import EXTRACTION_PROMPT, AiSignalParser, parse_completion


class TestParseCompletion:
    """Test mapping of model answers onto signals."""

    def test_plain_json(self):
        signal = parse_completion('{"symbol":"fgnx","trigger":9.16,"stop":8.25,"targets":[10.00,11.16]}')

        assert signal.symbol == "FGNX"
        assert signal.trigger == Decimal("9.16")
        assert signal.stop == Decimal("8.25")
        assert signal.targets == (Decimal("10.0"), Decimal("11.16"))

    def test_code_fenced_json(self):
        content = '```json\n{"symbol":"ASTC","trigger":"6.36","stop":"5.78","targets":[]}\n```'
        signal = parse_completion(content)

        assert signal.symbol == "ASTC"
        assert signal.targets == ()

    def test_bad_targets_skipped(self):
        signal = parse_completion('{"symbol":"A","trigger":2,"stop":1,"targets":[3,"x",null]}')
        assert signal.targets == (Decimal("3"),)

    def test_non_json(self):
        assert parse_completion("I could not find a signal.") is None

    def test_missing_stop(self):
        assert parse_completion('{"symbol":"ASTC","trigger":6.36}') is None

    def test_non_positive_trigger(self):
        assert parse_completion('{"symbol":"ASTC","trigger":0,"stop":5}') is None

    def test_empty(self):
        assert parse_completion("") is None


class TestAiSignalParser:
    """Test the parser facade."""

    def test_prompt_prefixes_text(self):
        complete = Mock(return_value='{"symbol":"ASTC","trigger":6.36,"stop":5.78}')
        parser = AiSignalParser(complete)

        signal = parser.parse("some text")

        complete.assert_called_once_with(EXTRACTION_PROMPT + "some text")
        assert signal.symbol == "ASTC"

    def test_model_failure_is_a_miss(self):
        parser = AiSignalParser(Mock(side_effect=TimeoutError("slow model")))
        assert parser.parse("some text") is None

    def test_blank_text_skips_model(self):
        complete = Mock()
        assert AiSignalParser(complete).parse("  ") is None
        complete.assert_not_called()
