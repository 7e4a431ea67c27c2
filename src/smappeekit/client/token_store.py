"""
Single source of truth for the login state of a Smappee session.

All request state machines of one controller share one TokenStore. State
changes happen synchronously between awaits, so on a single event loop every
transition is atomic; only the write-through to persistence suspends, and
those writes are serialized by a lock and always store the latest state.
A failed write is logged and does not undo or fail the transition.
"""

import logging
from collections.abc import Callable

import anyio

from smappeekit.client.login_state import (
    LoggedOut,
    LoginState,
    is_authenticated,
    login_state_from_tokens,
    tokens_from_login_state,
    validate_transition,
)
from smappeekit.client.token_storage import TokenPersistence

logger = logging.getLogger(__name__)

LoginStateObserver = Callable[[LoginState, LoginState], None]


class TokenStore:
    """Holds the current LoginState and optionally persists it."""

    def __init__(self, persistence: TokenPersistence | None = None, state: LoginState | None = None):
        self.persistence = persistence
        self._state: LoginState = state if state is not None else LoggedOut()
        self._observers: list[LoginStateObserver] = []
        self._persist_lock = anyio.Lock()
        self._inflight: dict[LoginState, anyio.Event] = {}
        self.logout_generation = 0
        self._initialized = state is not None or persistence is None

    async def initialize(self) -> None:
        """Load persisted tokens, once."""
        async with self._persist_lock:
            if self._initialized:
                return

            if self.persistence is not None:
                tokens = await self.persistence.load()
                self._state = login_state_from_tokens(tokens)
            self._initialized = True
            logger.debug(f"Restored login state: {self._state}")

    def get(self) -> LoginState:
        return self._state

    def is_authenticated(self) -> bool:
        return is_authenticated(self._state)

    async def set(self, new_state: LoginState) -> None:
        """Transition to new_state and write it through to persistence."""
        old_state = self._state
        validate_transition(old_state, new_state)
        self._apply(old_state, new_state)
        await self._persist()

    async def compare_and_set(self, expected: LoginState, new_state: LoginState) -> bool:
        """
        Transition to new_state only if the current state is still expected.

        Returns False, leaving the state untouched, when another request got
        there first.
        """
        old_state = self._state
        if old_state != expected:
            logger.debug(f"Not moving to {new_state}: state changed concurrently to {old_state}")
            return False
        validate_transition(old_state, new_state)
        self._apply(old_state, new_state)
        await self._persist()
        return True

    async def log_out(self) -> None:
        """
        Force LoggedOut. This implicitly clears the access and refresh tokens.

        Requests in flight stop with NotLoggedInError instead of logging in again.
        """
        self.logout_generation += 1
        old_state = self._state
        if not isinstance(old_state, LoggedOut):
            self._apply(old_state, LoggedOut())
        await self._persist()

    def add_observer(self, observer: LoginStateObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: LoginStateObserver) -> None:
        self._observers.remove(observer)

    def claim(self, state: LoginState) -> anyio.Event | None:
        """
        Claim the token exchange that leaves state.

        Returns None when the caller now owns the exchange and must call
        release() once it is done. Otherwise returns the event of the exchange
        already in flight; the caller waits for it and re-reads the state.
        """
        if (event := self._inflight.get(state)) is not None:
            return event
        self._inflight[state] = anyio.Event()
        return None

    def release(self, state: LoginState) -> None:
        if (event := self._inflight.pop(state, None)) is not None:
            event.set()

    def _apply(self, old_state: LoginState, new_state: LoginState) -> None:
        self._state = new_state
        self._initialized = True
        logger.debug(f"Login state changed from '{old_state}' to '{new_state}'")
        for observer in list(self._observers):
            try:
                observer(old_state, new_state)
            except Exception:
                logger.exception("Login state observer failed")

    async def _persist(self) -> None:
        if self.persistence is None:
            return
        async with self._persist_lock:
            state = self._state
            try:
                if isinstance(state, LoggedOut):
                    await self.persistence.clear()
                else:
                    await self.persistence.save(tokens_from_login_state(state))
            except OSError:
                # the in-memory state stays authoritative; the next write retries
                logger.exception(f"Could not persist login state '{state}'")
