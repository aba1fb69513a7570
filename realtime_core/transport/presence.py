"""Default presence feed: keeps presence state from state/diff events."""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .base import PresenceCallback
    from .channel import PhoenixChannel

_LOGGER = logging.getLogger(__name__)

DEFAULT_PRESENCE_EVENTS = {"state": "presence_state", "diff": "presence_diff"}

RawState = dict[str, dict[str, list[dict[str, Any]]]]


def _noop_presence(key: str, current: list[dict[str, Any]], changed: list[dict[str, Any]]) -> None:
    pass


def _noop() -> None:
    pass


def transform_metas(metas: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Replace the server's phx_ref bookkeeping with a single presence_ref."""
    result = []
    for meta in metas:
        item = {k: v for k, v in meta.items() if k not in ("phx_ref", "phx_ref_prev")}
        item["presence_ref"] = meta.get("phx_ref")
        result.append(item)
    return result


class PhoenixPresence:
    """Presence state for one channel, synced from presence_state/presence_diff.

    Diffs that arrive before the state snapshot of the current join are held
    back and applied once the snapshot lands.
    """

    def __init__(self, channel: PhoenixChannel, opts: dict[str, Any] | None = None) -> None:
        events = (opts or {}).get("events") or DEFAULT_PRESENCE_EVENTS
        self.channel = channel
        self._state: RawState = {}
        self._pending_diffs: list[dict[str, Any]] = []
        self._join_ref: str | None = None
        self._on_join: PresenceCallback = _noop_presence
        self._on_leave: PresenceCallback = _noop_presence
        self._on_sync: Callable[[], None] = _noop

        channel.on(events["state"], self._handle_state)
        channel.on(events["diff"], self._handle_diff)

    def on_join(self, callback: PresenceCallback) -> None:
        self._on_join = callback

    def on_leave(self, callback: PresenceCallback) -> None:
        self._on_leave = callback

    def on_sync(self, callback: Callable[[], None]) -> None:
        self._on_sync = callback

    def state(self) -> dict[str, list[dict[str, Any]]]:
        return {key: transform_metas(p["metas"]) for key, p in self._state.items()}

    @property
    def in_pending_sync_state(self) -> bool:
        return self._join_ref is None or self._join_ref != self.channel.join_ref

    def _handle_state(self, new_state: dict[str, Any]) -> None:
        self._join_ref = self.channel.join_ref
        self._state = self._sync_state(self._state, new_state)
        for diff in self._pending_diffs:
            self._state = self._sync_diff(self._state, diff)
        self._pending_diffs = []
        self._on_sync()

    def _handle_diff(self, diff: dict[str, Any]) -> None:
        if self.in_pending_sync_state:
            self._pending_diffs.append(diff)
            return
        self._state = self._sync_diff(self._state, diff)
        self._on_sync()

    def _sync_state(self, current: RawState, new_state: dict[str, Any]) -> RawState:
        state = copy.deepcopy(current)
        joins: RawState = {}
        leaves: RawState = {}

        for key, presence in state.items():
            if key not in new_state:
                leaves[key] = presence

        for key, new_presence in new_state.items():
            current_presence = state.get(key)
            if current_presence is None:
                joins[key] = new_presence
                continue
            new_refs = {m.get("phx_ref") for m in new_presence["metas"]}
            cur_refs = {m.get("phx_ref") for m in current_presence["metas"]}
            joined = [m for m in new_presence["metas"] if m.get("phx_ref") not in cur_refs]
            left = [m for m in current_presence["metas"] if m.get("phx_ref") not in new_refs]
            if joined:
                joins[key] = {**new_presence, "metas": joined}
            if left:
                leaves[key] = {**copy.deepcopy(current_presence), "metas": left}

        return self._sync_diff(state, {"joins": joins, "leaves": leaves})

    def _sync_diff(self, state: RawState, diff: dict[str, Any]) -> RawState:
        diff = copy.deepcopy(diff)

        for key, new_presence in (diff.get("joins") or {}).items():
            current_presence = state.get(key)
            state[key] = copy.deepcopy(new_presence)
            if current_presence is not None:
                joined_refs = {m.get("phx_ref") for m in state[key]["metas"]}
                kept = [
                    m for m in current_presence["metas"] if m.get("phx_ref") not in joined_refs
                ]
                state[key]["metas"] = kept + state[key]["metas"]
            self._notify(
                self._on_join,
                key,
                current_presence["metas"] if current_presence else [],
                new_presence["metas"],
            )

        for key, left_presence in (diff.get("leaves") or {}).items():
            current_presence = state.get(key)
            if current_presence is None:
                continue
            refs_to_remove = {m.get("phx_ref") for m in left_presence["metas"]}
            current_presence["metas"] = [
                m for m in current_presence["metas"] if m.get("phx_ref") not in refs_to_remove
            ]
            self._notify(
                self._on_leave, key, current_presence["metas"], left_presence["metas"]
            )
            if not current_presence["metas"]:
                del state[key]

        return state

    def _notify(
        self,
        callback: PresenceCallback,
        key: str,
        current: list[dict[str, Any]],
        changed: list[dict[str, Any]],
    ) -> None:
        try:
            callback(key, transform_metas(current), transform_metas(changed))
        except Exception as err:
            _LOGGER.exception("[%s] Presence callback error: %s", self.channel.topic, err)
