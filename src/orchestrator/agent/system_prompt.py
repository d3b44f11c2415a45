"""Persona ("soul") prompt loading.

The soul file gives the agent a persistent identity. Its content is
prepended to the prompt of a fresh exchange only; resumed sessions already
carry it in their history.

Example:
    soul = SoulLoader("~/.tgclaude/soul.md")
    prompt = compose_prompt(soul.load(), "What were we doing?")
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

SOUL_SEPARATOR = "\n\n---\n\nUser message:\n"


def compose_prompt(soul: str, prompt: str) -> str:
    """Prepend the persona text to a user prompt.

    Returns the prompt unchanged when the persona is empty.
    """
    if not soul:
        return prompt
    return f"{soul}{SOUL_SEPARATOR}{prompt}"


class SoulLoader:
    """Loads and caches the persona file."""

    def __init__(self, path: str | Path | None) -> None:
        self._path = Path(path).expanduser() if path else None
        self._cached: str | None = None

    @property
    def path(self) -> Path | None:
        return self._path

    def load(self) -> str:
        """Return the persona text, reading the file on first use.

        A missing or unreadable file yields an empty persona.
        """
        if self._cached is not None:
            return self._cached
        return self.reload()

    def reload(self) -> str:
        """Re-read the persona file from disk."""
        if self._path is None:
            return ""
        try:
            content = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.warning("Soul file not found at %s", self._path)
            return ""
        except OSError as e:
            logger.warning("Failed to load soul from %s: %s", self._path, e)
            return ""
        self._cached = content
        logger.info("Loaded soul from %s (%d chars)", self._path, len(content))
        return content
