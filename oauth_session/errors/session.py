"""Errors raised by the session coordinator.

The coordinator only raises these for its own decisions. Failures coming
from the identity-provider gateway or the credential store propagate as
they were raised (usually one of the ``internal`` errors).
"""

from __future__ import annotations

from ..auth_token.types import ClientOption
from .internal import InternalError


class SessionError(InternalError):
    """Base class for coordinator decisions that stop a status update."""


class BlockedError(SessionError):
    """Resolution halted because the caller did not allow the needed action.

    Retrying with ``requiring`` added to the options is expected to proceed.

    Attributes:
        requiring: The option that would have allowed the coordinator to continue.
    """

    def __init__(self, requiring: ClientOption) -> None:
        super().__init__(
            f"Blocked: requires option {requiring.value}",
            data={"requiring": requiring.value},
        )
        self.requiring = requiring


class InteractivePresentationError(SessionError):
    """No presentation context is available for interactive sign-in."""

    def __init__(self, message: str = "No presentation context available for sign-in") -> None:
        super().__init__(message)


class ImplausibleStateError(SessionError):
    """An internal invariant was violated; indicates a programming error."""


__all__ = [
    "SessionError",
    "BlockedError",
    "InteractivePresentationError",
    "ImplausibleStateError",
]
