"""Wire-protocol limits and the tokenising helpers shared by server and client."""

from __future__ import annotations

MAX_BUFFER_SIZE = 2 * 1024
MAX_USERNAME_SIZE = 32
MAX_CLIENTS = 100
MAX_GUILDS = 50
MAX_CHANNELS_PER_GUILD = 50
MAX_NAME_LENGTH = 64

PORT = 8080


def first_line(text: str) -> str:
    """Return ``text`` up to, not including, its first CR or LF."""
    for index, char in enumerate(text):
        if char in "\r\n":
            return text[:index]
    return text


def take_words(text: str, count: int) -> tuple[list[str], str | None]:
    """Split up to ``count`` space-separated words off the front of ``text``.

    Returns the words found (possibly fewer than ``count``) and the text that
    follows the delimiter after the last word, or ``None`` when nothing is left.
    """
    words: list[str] = []
    remaining = text
    for _ in range(count):
        remaining = remaining.lstrip(" ")
        if not remaining:
            break
        word, _, remaining = remaining.partition(" ")
        words.append(word)
    return words, remaining or None


def strip_one_space(text: str) -> str:
    """Drop a single leading space, if there is one."""
    return text[1:] if text.startswith(" ") else text