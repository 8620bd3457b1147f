# indicvoice/nlp/__init__.py
# ===========================
# Text Utilities Layer — IndicVoice
#
#   - normalizer.py: NFC + whitespace normalization, Indic script check
#   - commands.py:   per-language voice command triggers and parser
#
# Operates on transcribed text only; never touches audio or backends.

import logging

from indicvoice.nlp.commands import VOICE_COMMANDS, VoiceCommand, parse_voice_command
from indicvoice.nlp.normalizer import contains_indic_script, normalize_text

logger = logging.getLogger("indicvoice.nlp")


def normalize_and_parse(text: str, language: str) -> VoiceCommand | None:
    """
    Normalize a transcript then parse it as a voice command.

    Backends return text in different Unicode compositions and with stray
    whitespace; normalizing first makes trigger matching stable.

    Args:
        text:     Transcribed utterance.
        language: ISO 639-1 code of the trigger table to use.

    Returns:
        VoiceCommand, or None if the text is not a command.
    """
    command = parse_voice_command(normalize_text(text), language)
    if command is None:
        logger.debug("No voice command in %d-char utterance.", len(text or ""))
    return command


__all__ = [
    "VOICE_COMMANDS",
    "VoiceCommand",
    "contains_indic_script",
    "normalize_and_parse",
    "normalize_text",
    "parse_voice_command",
]
