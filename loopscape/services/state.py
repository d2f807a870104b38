import logging
from typing import Optional

from loopscape.models.schemas import BackgroundState

logger = logging.getLogger(__name__)


class StatePublisher:
    """
    Holds the background currently being served.

    commit() swaps the whole BackgroundState reference, so readers see either
    the previous state or the new one, never a mix.
    """

    def __init__(self):
        self._state: Optional[BackgroundState] = None

    def commit(self, new_state: BackgroundState):
        self._state = new_state
        logger.info(f"Published background {new_state.active_video_id}: {new_state.active_video_url}")

    def current(self) -> Optional[BackgroundState]:
        """Current state, or None if nothing has been published yet."""
        return self._state

    def is_ready(self) -> bool:
        return self._state is not None
