"""
Durable storage for the session tokens.
"""

import logging
from pathlib import Path
from typing import Protocol

import anyio
from pydantic import ValidationError

from smappeekit.shared.auth import StoredTokens

logger = logging.getLogger(__name__)


class TokenPersistence(Protocol):
    """Protocol for token persistence implementations."""

    async def load(self) -> StoredTokens:
        """Load stored tokens. Returns empty tokens when nothing is stored."""
        ...

    async def save(self, tokens: StoredTokens) -> None:
        """Store tokens, replacing whatever was stored before."""
        ...

    async def clear(self) -> None:
        """Remove stored tokens."""
        ...


class InMemoryTokenPersistence:
    """Keeps tokens for the lifetime of the process only."""

    def __init__(self, tokens: StoredTokens | None = None):
        self.tokens = tokens or StoredTokens()

    async def load(self) -> StoredTokens:
        return self.tokens

    async def save(self, tokens: StoredTokens) -> None:
        self.tokens = tokens

    async def clear(self) -> None:
        self.tokens = StoredTokens()


class FileTokenPersistence:
    """
    Stores tokens as JSON in a file.

    A missing file loads as empty tokens, and so does a file that cannot be
    parsed; the latter is logged since it usually means someone edited it.
    """

    def __init__(self, path: str | Path):
        self.path = anyio.Path(path)

    async def load(self) -> StoredTokens:
        try:
            content = await self.path.read_bytes()
        except FileNotFoundError:
            return StoredTokens()

        try:
            return StoredTokens.model_validate_json(content)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable token file {self.path}: {e}")
            return StoredTokens()

    async def save(self, tokens: StoredTokens) -> None:
        await self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        await tmp_path.write_text(tokens.model_dump_json(exclude_none=True), encoding="utf-8")
        await tmp_path.chmod(0o600)
        await tmp_path.replace(self.path)
        logger.debug(f"Saved tokens to {self.path}")

    async def clear(self) -> None:
        await self.path.unlink(missing_ok=True)
        logger.debug(f"Removed token file {self.path}")
