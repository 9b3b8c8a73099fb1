"""Skip terms already written by a previous invocation."""

from __future__ import annotations

from typing import Optional

from ctsync.models.terminology import ResumeToken


class ResumeFilter:
    """Suppresses terms up to and including the checkpoint, in document order.

    The checkpoint is a position, not a content filter: if no term matches it,
    nothing is ever allowed through.
    """

    def __init__(self, token: Optional[ResumeToken] = None) -> None:
        self.token = token if token is not None and not token.is_empty else None
        self.started = self.token is None
        self.passed_checkpoint = False

    @property
    def matched(self) -> bool:
        return self.passed_checkpoint

    def allow(self, codelist_oid: str, coded_value: str) -> bool:
        if self.started:
            return True
        if (
            codelist_oid == self.token.last_codelist_oid
            and coded_value == self.token.last_coded_value
        ):
            # Persisted by the previous invocation.
            self.passed_checkpoint = True
            return False
        if self.passed_checkpoint:
            self.started = True
            return True
        return False
