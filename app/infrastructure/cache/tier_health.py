"""Fast-tier health: a two-state machine owned by one engine instance.

ENABLED -> DISABLED on any connection error or failed ping (on_tier_error).
DISABLED -> ENABLED only on an explicit successful reconnect (on_reconnect).
There is no retry loop; a single failure fails the tier over to the durable
store until someone reconnects it. Concurrent on_tier_error calls are
idempotent.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from app.shared.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class TierState(str, Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"


class TierHealth:
    """Coarse, engine-wide enabled/disabled flag for the fast tier."""

    def __init__(self, initial: TierState = TierState.DISABLED) -> None:
        self._state = initial
        self._last_error: str | None = None
        self._changed_at = utc_now()
        self._disable_count = 0

    @property
    def state(self) -> TierState:
        return self._state

    @property
    def is_enabled(self) -> bool:
        return self._state is TierState.ENABLED

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def on_tier_error(self, error: BaseException | str) -> bool:
        """Disable the fast tier. Returns True if this call changed the state."""
        self._last_error = str(error)
        if self._state is TierState.DISABLED:
            return False
        self._state = TierState.DISABLED
        self._changed_at = utc_now()
        self._disable_count += 1
        logger.warning(
            "Fast cache tier disabled, falling back to durable store: %s", error
        )
        return True

    def on_reconnect(self) -> bool:
        """Enable the fast tier after a successful (re)connect."""
        if self._state is TierState.ENABLED:
            return False
        self._state = TierState.ENABLED
        self._changed_at = utc_now()
        logger.info("Fast cache tier enabled")
        return True

    def on_disconnect(self) -> bool:
        """Disable the fast tier after an orderly disconnect (no error recorded)."""
        if self._state is TierState.DISABLED:
            return False
        self._state = TierState.DISABLED
        self._changed_at = utc_now()
        return True

    def snapshot(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "last_error": self._last_error,
            "changed_at": self._changed_at.isoformat(),
            "disable_count": self._disable_count,
        }
