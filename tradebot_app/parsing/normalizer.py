"""
Text normalization for multilingual signal messages.

Signal messages mix Arabic and Latin scripts freely. Before any pattern
matching the text is rewritten so that all digits are ASCII and every
decimal or thousands separator is a plain ``.``.
"""

ARABIC_INDIC_ZERO = 0x0660           # ٠..٩
EXTENDED_ARABIC_INDIC_ZERO = 0x06F0  # ۰..۹

ARABIC_DECIMAL_SEPARATOR = "\u066b"    # ٫
ARABIC_THOUSANDS_SEPARATOR = "\u066c"  # ٬
THOUSANDS_MARKER = "\x1f"

# Bidi marks and tatweel carry no meaning for parsing
_DROPPED_CHARS = ("\u200e", "\u200f", "\u061c", "\u0640")

_DIGIT_TABLE = {
    **{ARABIC_INDIC_ZERO + i: str(i) for i in range(10)},
    **{EXTENDED_ARABIC_INDIC_ZERO + i: str(i) for i in range(10)},
}


def normalize_digits(text: str) -> str:
    """Map Arabic-Indic and Extended Arabic-Indic digits to ASCII."""
    return text.translate(_DIGIT_TABLE)


def normalize_separators(text: str) -> str:
    """Map Arabic/Latin numeric separators onto ``.``.

    The Arabic decimal separator becomes ``.`` directly; the Arabic
    thousands separator and the comma go through a thousands marker which
    is then collapsed to ``.`` as well.
    """
    text = text.replace(ARABIC_DECIMAL_SEPARATOR, ".")
    text = text.replace(ARABIC_THOUSANDS_SEPARATOR, THOUSANDS_MARKER)
    text = text.replace(",", THOUSANDS_MARKER)
    return text.replace(THOUSANDS_MARKER, ".")


def normalize_text(text: str) -> str:
    """Apply every normalization step used before signal extraction."""
    if not text:
        return ""
    for ch in _DROPPED_CHARS:
        text = text.replace(ch, "")
    return normalize_separators(normalize_digits(text))
