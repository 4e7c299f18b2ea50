"""Frame sampling gate for the ingest loop.

Two checks, in order, for every car telemetry packet:

1. **Dedup**: reject a frame id equal to the last accepted one.  The very
   first packet has nothing to compare against and skips this check.
2. **Down-sample**: reject unless ``overall_frame_id % every_n == 0``.

State only advances on acceptance, so a rejected frame never becomes the
dedup reference.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class FrameSampler:
    """Dedup + every-Nth-frame filter keyed on the overall frame identifier.

    Usage::

        sampler = FrameSampler(every_n=2)
        if sampler.should_accept(header.overall_frame_identifier, header.session_uid):
            ...  # decode and broadcast

    When *reset_on_new_session* is true, a change of session UID clears the
    dedup state before the check so frame ids restarting in a new session
    are not mistaken for repeats.
    """

    def __init__(self, every_n: int = 2, *, reset_on_new_session: bool = True) -> None:
        if every_n < 1:
            raise ValueError(f"every_n must be >= 1, got {every_n}")
        self._every_n = every_n
        self._reset_on_new_session = reset_on_new_session
        self._last_frame: int | None = None
        self._session_uid: int | None = None

    @property
    def every_n(self) -> int:
        return self._every_n

    @property
    def last_accepted(self) -> int | None:
        """Overall frame id of the last accepted packet, or ``None``."""
        return self._last_frame

    def should_accept(self, overall_frame_id: int, session_uid: int | None = None) -> bool:
        """Return ``True`` if the packet should be decoded and broadcast.

        Records *overall_frame_id* as the last accepted frame on ``True``.
        """
        if (
            self._reset_on_new_session
            and session_uid is not None
            and self._session_uid is not None
            and session_uid != self._session_uid
        ):
            logger.info("Session changed (%#x -> %#x), resetting sampler", self._session_uid, session_uid)
            self.reset()

        if self._last_frame is not None and overall_frame_id == self._last_frame:
            return False
        if overall_frame_id % self._every_n != 0:
            return False

        self._last_frame = overall_frame_id
        if session_uid is not None:
            self._session_uid = session_uid
        return True

    def reset(self) -> None:
        """Forget the last accepted frame and session."""
        self._last_frame = None
        self._session_uid = None
