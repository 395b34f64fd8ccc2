"""Rule-based detection of image requests in free text.

Rules are evaluated in a fixed order and the first match decides. The order
matters: an explicit drawing verb wins even inside a question ("can you draw
a cat?"), while a plain question beats the looser descriptive heuristics.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)


class Intent(Enum):
    """What a message is asking for."""
    IMAGE = "image"
    TEXT = "text"


@dataclass(frozen=True)
class IntentRule:
    """A single tagged matcher in the classification table."""
    name: str
    intent: Intent
    matcher: Callable[[str], bool]
    description: str

    def matches(self, text: str) -> bool:
        return self.matcher(text)


@dataclass(frozen=True)
class IntentMatch:
    """Outcome of classification and the rule that produced it."""
    intent: Intent
    rule: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.intent is Intent.IMAGE


# Inflected forms match; longer words such as "creature" or "surrender" do not
EXPLICIT_IMAGE_VERBS: Tuple[str, ...] = (
    r"draw(s|n|ing)?",
    r"creat(e|es|ed|ing)",
    r"generat(e|es|ed|ing)",
    r"render(s|ed|ing)?",
    r"visuali[sz](e|es|ed|ing)",
    r"design(s|ed|ing)?",
)

EXPLICIT_IMAGE_PHRASES: Tuple[str, ...] = (
    "show me", "picture of", "image of", "photo of", "illustration of",
    "sketch of", "painting of",
)

INTERROGATIVE_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"^what is\b"),
    re.compile(r"^how (do|does|can|could)\b"),
    re.compile(r"^why (do|does|is|are)\b"),
    re.compile(r"^when (do|does|is|are)\b"),
    re.compile(r"^where (do|does|is|are)\b"),
    re.compile(r"^who (is|are|was|were)\b"),
    re.compile(r"^tell me about\b"),
    re.compile(r"^explain\b"),
    re.compile(r"\?$"),
)

DESCRIPTIVE_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"\ban? (\w+ ){0,3}(scene|landscape|portrait|picture)\b"),
    re.compile(r"\ban? (\w+ ){0,3}(looking|appearing)\b"),
    re.compile(r"\bimagine\b"),
    re.compile(r"\bwhat (would|does) .* look like\b"),
)

DESCRIPTIVE_ADJECTIVES = frozenset({
    "beautiful", "colorful", "colourful", "red", "blue", "green", "yellow",
    "purple", "orange", "black", "white", "pink", "brown", "golden", "silver",
    "large", "small", "tiny", "huge", "giant", "fluffy", "shiny", "furry",
})

# Leading words that turn a short phrase into an instruction or question
INSTRUCTION_WORDS = frozenset({
    "please", "can", "could", "would", "should", "will", "is", "are", "do",
    "does", "did", "write", "translate", "summarize", "list", "give", "help",
    "tell", "find", "calculate", "convert", "fix",
})

SHORT_PHRASE_MAX_WORDS = 5

_WORD = re.compile(r"[a-z']+")


def _phrase_pattern(phrase: str) -> Pattern[str]:
    return re.compile(r"\b" + re.escape(phrase) + r"\b")


_EXPLICIT_PATTERNS = (
    tuple(re.compile(r"\b" + verb + r"\b") for verb in EXPLICIT_IMAGE_VERBS)
    + tuple(_phrase_pattern(p) for p in EXPLICIT_IMAGE_PHRASES)
)


def _has_explicit_verb(text: str) -> bool:
    return any(pattern.search(text) for pattern in _EXPLICIT_PATTERNS)


def _is_interrogative(text: str) -> bool:
    return any(pattern.search(text) for pattern in INTERROGATIVE_PATTERNS)


def _is_descriptive_phrase(text: str) -> bool:
    return any(pattern.search(text) for pattern in DESCRIPTIVE_PATTERNS)


def _is_short_noun_phrase(text: str) -> bool:
    words = text.split()
    if not words or len(words) > SHORT_PHRASE_MAX_WORDS:
        return False
    if words[0] in INSTRUCTION_WORDS:
        return False
    return any(word in DESCRIPTIVE_ADJECTIVES for word in _WORD.findall(text))


RULES: List[IntentRule] = [
    IntentRule(
        name="explicit-verb",
        intent=Intent.IMAGE,
        matcher=_has_explicit_verb,
        description="Contains a drawing/creation verb or a 'picture of' phrase",
    ),
    IntentRule(
        name="interrogative",
        intent=Intent.TEXT,
        matcher=_is_interrogative,
        description="Starts like a question or explanation request, or ends with '?'",
    ),
    IntentRule(
        name="descriptive-phrase",
        intent=Intent.IMAGE,
        matcher=_is_descriptive_phrase,
        description="Describes a scene, a look, or asks to imagine something",
    ),
    IntentRule(
        name="short-noun-phrase",
        intent=Intent.IMAGE,
        matcher=_is_short_noun_phrase,
        description="A few words with a concrete adjective and no instruction",
    ),
]


def _normalize(text: Any) -> str:
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)
    return " ".join(text.lower().split())


def classify_intent(text: Any, rules: Optional[List[IntentRule]] = None) -> IntentMatch:
    """Classify text as an image request or a conversational message.

    Args:
        text: Any value; None and blank strings are conversational
        rules: Rule table to evaluate, defaults to RULES

    Returns:
        IntentMatch with the winning rule name, or no rule if none matched
    """
    normalized = _normalize(text)
    if not normalized:
        return IntentMatch(Intent.TEXT)

    for rule in rules if rules is not None else RULES:
        if rule.matches(normalized):
            logger.debug(f"Intent rule '{rule.name}' matched -> {rule.intent.value}")
            return IntentMatch(rule.intent, rule.name)

    return IntentMatch(Intent.TEXT)


def is_image_request(text: Any) -> bool:
    """Return True if the text asks for an image to be produced."""
    return classify_intent(text).is_image
