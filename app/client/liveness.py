"""
Rate-limited typing and presence writes.

TypingDebouncer turns a stream of keystrokes into a few set_typing calls:
at most one write per DEBOUNCE_SECONDS, a refresh while typing continues
(the server forgets a typing signal after two seconds) and a single
"stopped" write once the user goes quiet.

HeartbeatSchedule sends a presence heartbeat every HEARTBEAT_SECONDS.
Heartbeats are idempotent, so a late or duplicate beat is harmless.

Both take a clock so callers (and tests) control time; the default is
time.monotonic.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from client.errors import ChatApiError

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 0.25
TYPING_REFRESH_SECONDS = 1.0
TYPING_IDLE_SECONDS = 2.0
HEARTBEAT_SECONDS = 15.0


class TypingDebouncer:
    """
    Typing indicator writer for one conversation.

    Args:
        send: Called with True/False; typically
            ``lambda typing: api.set_typing(conversation_id, typing)``
        clock: Returns seconds; must be monotonic
    """

    def __init__(
        self,
        send: Callable[[bool], object],
        clock: Callable[[], float] = time.monotonic,
        debounce: float = DEBOUNCE_SECONDS,
        refresh: float = TYPING_REFRESH_SECONDS,
        idle: float = TYPING_IDLE_SECONDS,
    ):
        self._send = send
        self._clock = clock
        self.debounce = debounce
        self.refresh = refresh
        self.idle = idle
        self.is_typing = False
        self._last_write: float | None = None
        self._last_keystroke: float | None = None

    def _write(self, value: bool, now: float) -> None:
        self._last_write = now
        self.is_typing = value
        try:
            self._send(value)
        except ChatApiError as e:
            # A lost typing signal is not worth surfacing; the next keystroke retries
            logger.debug(f"Typing update failed: {e.message}")

    def keystroke(self) -> bool:
        """Record a keystroke. Returns True if a write was sent."""
        now = self._clock()
        self._last_keystroke = now

        if self._last_write is not None:
            since_write = now - self._last_write
            if since_write < self.debounce:
                return False
            if self.is_typing and since_write < self.refresh:
                return False

        self._write(True, now)
        return True

    def poll(self) -> bool:
        """Call periodically. Sends "stopped" once keystrokes have ceased for a while."""
        if not self.is_typing or self._last_keystroke is None:
            return False
        if self._clock() - self._last_keystroke < self.idle:
            return False
        self._write(False, self._clock())
        return True

    def stop(self) -> bool:
        """Message sent or compose box cleared: stop immediately."""
        if not self.is_typing:
            return False
        self._write(False, self._clock())
        return True


class HeartbeatSchedule:
    """Presence heartbeats at a fixed interval."""

    def __init__(
        self,
        send: Callable[[], object],
        clock: Callable[[], float] = time.monotonic,
        interval: float = HEARTBEAT_SECONDS,
    ):
        self._send = send
        self._clock = clock
        self.interval = interval
        self._last_beat: float | None = None

    def due(self) -> bool:
        return self._last_beat is None or self._clock() - self._last_beat >= self.interval

    def tick(self) -> bool:
        """Send a heartbeat if one is due. Returns True if it was sent."""
        if not self.due():
            return False
        self._last_beat = self._clock()
        try:
            self._send()
        except ChatApiError as e:
            logger.warning(f"Heartbeat failed: {e.message}")
            # Try again on the next tick
            self._last_beat = None
            return False
        return True
