# -*- coding: utf-8 -*-
import threading
from typing import Optional

from barcmpc.runtime.messages import State


class LatestStateMailbox:
    """
    Single-slot handoff between the estimate callback (writer) and the
    control tick (reader). A new estimate replaces the old one; only the
    freshest value is ever read.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._state: Optional[State] = None

    def put(self, state: State):
        with self._lock:
            self._state = state

    def latest(self) -> Optional[State]:
        """Return the freshest state; None before the first put."""
        with self._lock:
            return self._state
