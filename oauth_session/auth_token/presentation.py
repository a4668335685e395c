"""Presentation contexts for interactive sign-in."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..utils import format_duration


@dataclass(frozen=True)
class DevicePrompt:
    """What the user needs to complete device authorization.

    Attributes:
        user_code: Code the user types on the verification page.
        verification_uri: Page where the code is entered.
        verification_uri_complete: Page with the code pre-filled, if offered.
        expires_in: Seconds until the device code expires.
    """

    user_code: str
    verification_uri: str
    verification_uri_complete: str | None = None
    expires_in: int | None = None


class PresentationContext(Protocol):
    """Something able to show sign-in instructions to a person."""

    async def present_verification(self, prompt: DevicePrompt) -> None:
        ...

    async def dismiss(self) -> None:
        ...


class ConsolePresenter:
    """Prints device authorization instructions to the terminal."""

    def __init__(self, printer=print) -> None:
        self._print = printer

    async def present_verification(self, prompt: DevicePrompt) -> None:
        self._print("🔑 Sign-in required")
        if prompt.verification_uri_complete:
            self._print(f"👉 Open {prompt.verification_uri_complete}")
            self._print(f"👉 Confirm the code {prompt.user_code}")
        else:
            self._print(f"👉 Open {prompt.verification_uri}")
            self._print(f"👉 Enter the code {prompt.user_code}")
        if prompt.expires_in:
            self._print(f"⏳ The code expires in {format_duration(prompt.expires_in)}")

    async def dismiss(self) -> None:
        self._print("✅ Sign-in flow finished")
