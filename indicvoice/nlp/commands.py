"""
indicvoice/nlp/commands.py
===========================
Voice Command Parser — IndicVoice

Maps the start of a transcribed utterance onto one of a small set of
editor-style commands (help, search, run, stop, read, write). Each language
has its own trigger phrases; English triggers are accepted in every table
so code-mixed speech ("search config file") still parses.

Matching is prefix-based on the lower-cased, stripped text. Commands are
checked in table order and triggers in list order; the first hit wins.
The remainder of the utterance (stripped) becomes the command arguments.
"""

import logging
from dataclasses import dataclass

from indicvoice.config import DEFAULT_LANGUAGE

logger = logging.getLogger("indicvoice.nlp.commands")


@dataclass(frozen=True)
class VoiceCommand:
    """A recognized command and its argument text."""

    command: str
    args: str


VOICE_COMMANDS: dict[str, dict[str, list[str]]] = {
    "en": {
        "help": ["help", "assist", "what can you do"],
        "search": ["search", "find", "look for"],
        "run": ["run", "execute", "start"],
        "stop": ["stop", "cancel", "abort"],
        "read": ["read", "open", "show"],
        "write": ["write", "create", "make"],
    },
    "hi": {
        "help": ["मदद", "सहायता", "help"],
        "search": ["खोजो", "ढूंढो", "search"],
        "run": ["चलाओ", "शुरू करो", "run"],
        "stop": ["रुको", "बंद करो", "stop"],
        "read": ["पढ़ो", "दिखाओ", "read"],
        "write": ["लिखो", "बनाओ", "write"],
    },
    "ta": {
        "help": ["உதவி", "help"],
        "search": ["தேடு", "search"],
        "run": ["இயக்கு", "run"],
        "stop": ["நிறுத்து", "stop"],
        "read": ["படி", "read"],
        "write": ["எழுது", "write"],
    },
    "te": {
        "help": ["సహాయం", "help"],
        "search": ["వెతుకు", "search"],
        "run": ["అమలు చేయి", "run"],
        "stop": ["ఆపు", "stop"],
        "read": ["చదువు", "read"],
        "write": ["రాయి", "write"],
    },
    "kn": {
        "help": ["ಸಹಾಯ", "help"],
        "search": ["ಹುಡುಕು", "search"],
        "run": ["ರನ್ ಮಾಡು", "run"],
        "stop": ["ನಿಲ್ಲಿಸು", "stop"],
        "read": ["ಓದು", "read"],
        "write": ["ಬರೆ", "write"],
    },
    "mr": {
        "help": ["मदत", "help"],
        "search": ["शोधा", "search"],
        "run": ["चालवा", "run"],
        "stop": ["थांबा", "stop"],
        "read": ["वाचा", "read"],
        "write": ["लिहा", "write"],
    },
    "bn": {
        "help": ["সাহায্য", "help"],
        "search": ["খুঁজুন", "search"],
        "run": ["চালান", "run"],
        "stop": ["থামুন", "stop"],
        "read": ["পড়ুন", "read"],
        "write": ["লিখুন", "write"],
    },
    "gu": {
        "help": ["મદદ", "help"],
        "search": ["શોધો", "search"],
        "run": ["ચલાવો", "run"],
        "stop": ["રોકો", "stop"],
        "read": ["વાંચો", "read"],
        "write": ["લખો", "write"],
    },
    "ml": {
        "help": ["സഹായം", "help"],
        "search": ["തിരയുക", "search"],
        "run": ["പ്രവർത്തിപ്പിക്കുക", "run"],
        "stop": ["നിർത്തുക", "stop"],
        "read": ["വായിക്കുക", "read"],
        "write": ["എഴുതുക", "write"],
    },
    "pa": {
        "help": ["ਮਦਦ", "help"],
        "search": ["ਲੱਭੋ", "search"],
        "run": ["ਚਲਾਓ", "run"],
        "stop": ["ਰੁਕੋ", "stop"],
        "read": ["ਪੜ੍ਹੋ", "read"],
        "write": ["ਲਿਖੋ", "write"],
    },
    "or": {
        "help": ["ସାହାଯ୍ୟ", "help"],
        "search": ["ଖୋଜ", "search"],
        "run": ["ଚଲାଅ", "run"],
        "stop": ["ବନ୍ଦ କର", "stop"],
        "read": ["ପଢ଼", "read"],
        "write": ["ଲେଖ", "write"],
    },
}


def parse_voice_command(text: str, language: str = DEFAULT_LANGUAGE) -> VoiceCommand | None:
    """
    Parse an utterance into a command.

    Args:
        text:     Transcribed utterance.
        language: ISO 639-1 code selecting the trigger table. Unknown codes
                  use the English table.

    Returns:
        VoiceCommand, or None if no trigger prefixes the text.
    """
    commands = VOICE_COMMANDS.get(language, VOICE_COMMANDS[DEFAULT_LANGUAGE])
    text_lower = (text or "").lower().strip()
    if not text_lower:
        return None

    for command, triggers in commands.items():
        for trigger in triggers:
            trigger_lower = trigger.lower()
            if text_lower.startswith(trigger_lower):
                args = text_lower[len(trigger_lower):].strip()
                logger.debug("Voice command '%s' (trigger=%r, args=%r)", command, trigger, args)
                return VoiceCommand(command=command, args=args)

    return None
