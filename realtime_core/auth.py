"""Single-flight access token refresh and propagation to channels."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from .protocol import DEFAULT_VERSION

if TYPE_CHECKING:
    from .registry import ChannelRegistry

_LOGGER = logging.getLogger(__name__)

AccessTokenProvider = Callable[[], Awaitable[str | None] | str | None]
LogFn = Callable[[str, str, Any], None]


class AuthSynchronizer:
    """Resolves the access token and keeps every channel in step with it.

    Only one auth operation runs at a time. Callers that arrive while one is
    in flight wait for that operation instead of resolving the token again.
    """

    def __init__(
        self,
        registry: ChannelRegistry,
        *,
        access_token: AccessTokenProvider | None = None,
        log: LogFn,
    ) -> None:
        self._registry = registry
        self._access_token = access_token
        self._log = log
        self.access_token_value: str | None = None
        self._auth_task: asyncio.Task[None] | None = None
        self._background_tasks: set[asyncio.Task[None]] = set()

    @property
    def has_provider(self) -> bool:
        return self._access_token is not None

    @property
    def in_flight(self) -> bool:
        return self._auth_task is not None

    async def set_auth(self, token: str | None = None) -> None:
        """Resolve the token and push it to every channel if it changed.

        Args:
            token: Explicit token; takes priority over the provider and the
                stored value.
        """
        task = self._auth_task
        if task is None:
            task = asyncio.create_task(self._run(token))
            self._auth_task = task
            await asyncio.shield(task)
            return

        await asyncio.shield(task)
        # An explicit token never gets dropped because another refresh was in flight.
        if token and token != self.access_token_value:
            await self.set_auth(token)

    async def wait_for_auth_if_needed(self) -> None:
        """Wait for an in-flight auth operation without starting one."""
        task = self._auth_task
        if task is not None:
            await asyncio.wait({task})

    def set_auth_safely(self, context: str = "general") -> None:
        """Refresh auth in a detached task; failures are logged, never raised."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as err:
            self._log("error", f"error setting auth in {context}", err)
            return
        task = loop.create_task(self.set_auth())
        self._background_tasks.add(task)

        def _done(fut: asyncio.Task[None]) -> None:
            self._background_tasks.discard(fut)
            if fut.cancelled():
                return
            err = fut.exception()
            if err is not None:
                self._log("error", f"error setting auth in {context}", err)

        task.add_done_callback(_done)

    async def _run(self, token: str | None) -> None:
        try:
            await self._perform_auth(token)
        finally:
            self._auth_task = None

    async def _perform_auth(self, token: str | None) -> None:
        if token:
            token_to_send: str | None = token
        elif self._access_token is not None:
            # Providers are asked every time; the token may have been rotated.
            result = self._access_token()
            if inspect.isawaitable(result):
                result = await result
            token_to_send = result
        else:
            token_to_send = self.access_token_value

        self._log("auth", "performing auth", {"token": token_to_send})

        if self.access_token_value == token_to_send:
            return

        self.access_token_value = token_to_send
        for channel in self._registry:
            if token_to_send:
                channel.update_join_payload(
                    {"access_token": token_to_send, "version": DEFAULT_VERSION}
                )
            try:
                channel.push_access_token(token_to_send)
                self._log("auth", "pushed access token", {"topic": channel.topic})
            except Exception as err:
                _LOGGER.debug("[%s] Access token push failed: %s", channel.topic, err)
                self._log("auth", "error pushing access token", err)
