"""Voice command parsing for finished transcripts.

A transcript may start with routing keywords that decide what happens to the
rest of the text:

- "clipboard ..."            copy the text instead of typing it
- "claude ..."               have the text rephrased, then type it
- "claude clipboard ..."     rephrase, then copy (either keyword order)

Only the first two words are inspected, so the keywords can be combined in
either order without matching words that occur later in normal speech
("the clipboard contains ...").
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from loguru import logger

PUNCTUATION = ".,!?;:\"'()[]{}"

KEYWORD_WINDOW = 2

DEFAULT_REFINE_KEYWORDS = ("claude", "clawed")
DEFAULT_CLIPBOARD_KEYWORDS = ("clipboard",)


class Command(Enum):
    """Routing decision for a transcript."""

    NONE = "none"
    CLIPBOARD = "clipboard"
    REFINE = "refine"
    REFINE_AND_CLIPBOARD = "refine_and_clipboard"


@dataclass(frozen=True)
class ParsedCommand:
    """A transcript split into its routing command and remaining text."""

    command: Command
    text: str
    original: str

    @property
    def refine(self) -> bool:
        return self.command in (Command.REFINE, Command.REFINE_AND_CLIPBOARD)

    @property
    def to_clipboard(self) -> bool:
        return self.command in (Command.CLIPBOARD, Command.REFINE_AND_CLIPBOARD)


def tokenize(text: str) -> List[str]:
    return text.split()


def normalize_token(token: str) -> str:
    """Strip surrounding punctuation and lowercase a token for comparison."""
    return token.strip(PUNCTUATION).lower()


def _keyword_set(keywords: Iterable[str]) -> set:
    return {normalize_token(k) for k in keywords}


def detect_keyword(
    text: str, keywords: Iterable[str], window: int = KEYWORD_WINDOW
) -> bool:
    """Check whether any keyword appears among the first `window` words.

    Args:
        text: Transcript to inspect
        keywords: Keywords to look for (case-insensitive)
        window: Number of leading words to inspect

    Returns:
        True if one of the leading words matches a keyword
    """
    wanted = _keyword_set(keywords)
    return any(normalize_token(token) in wanted for token in tokenize(text)[:window])


def strip_keywords(
    text: str, keywords: Iterable[str], window: int = KEYWORD_WINDOW
) -> str:
    """Remove keyword words from the first `window` words of the text.

    Only the matching words are removed; every other word keeps its position
    and its own punctuation. Whitespace is collapsed to single spaces.

    Args:
        text: Transcript to clean
        keywords: Keywords to remove (case-insensitive)
        window: Number of leading words eligible for removal

    Returns:
        The remaining text, trimmed
    """
    wanted = _keyword_set(keywords)
    tokens = tokenize(text)
    kept = [
        token
        for index, token in enumerate(tokens)
        if index >= window or normalize_token(token) not in wanted
    ]
    return " ".join(kept)


def parse_command(
    text: str,
    refine_keywords: Iterable[str] = DEFAULT_REFINE_KEYWORDS,
    clipboard_keywords: Iterable[str] = DEFAULT_CLIPBOARD_KEYWORDS,
) -> ParsedCommand:
    """Decide how a transcript should be routed.

    Args:
        text: The transcript
        refine_keywords: Keywords requesting a rephrase
        clipboard_keywords: Keywords requesting clipboard output

    Returns:
        ParsedCommand with the detected command and the stripped text
    """
    refine_keywords = tuple(refine_keywords)
    clipboard_keywords = tuple(clipboard_keywords)

    wants_refine = detect_keyword(text, refine_keywords)
    wants_clipboard = detect_keyword(text, clipboard_keywords)

    if wants_refine and wants_clipboard:
        command = Command.REFINE_AND_CLIPBOARD
        remainder = strip_keywords(text, refine_keywords + clipboard_keywords)
    elif wants_refine:
        command = Command.REFINE
        remainder = strip_keywords(text, refine_keywords)
    elif wants_clipboard:
        command = Command.CLIPBOARD
        remainder = strip_keywords(text, clipboard_keywords)
    else:
        command = Command.NONE
        remainder = text

    logger.debug(
        f"Keyword detection - refine: {wants_refine}, clipboard: {wants_clipboard}"
    )
    return ParsedCommand(command=command, text=remainder, original=text)


class CommandParser:
    """Parser bound to a configured set of keywords."""

    def __init__(
        self,
        refine_keywords: Optional[Iterable[str]] = None,
        clipboard_keywords: Optional[Iterable[str]] = None,
    ):
        # An empty list turns the command off; only None means "use defaults"
        if refine_keywords is None:
            refine_keywords = DEFAULT_REFINE_KEYWORDS
        if clipboard_keywords is None:
            clipboard_keywords = DEFAULT_CLIPBOARD_KEYWORDS
        self.refine_keywords = tuple(refine_keywords)
        self.clipboard_keywords = tuple(clipboard_keywords)

    def parse(self, text: str) -> ParsedCommand:
        return parse_command(text, self.refine_keywords, self.clipboard_keywords)
