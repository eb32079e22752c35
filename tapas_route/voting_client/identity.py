"""Identity provider interface (OAuth sign-in)."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SignInResult:
    """
    Outcome of starting a sign-in.

    redirected is True when the provider navigated away; the current flow
    ends and the staged vote is picked up by reconciliation later.
    """
    redirected: bool
    error: Optional[str] = None


class IdentityProvider(ABC):
    """OAuth identity source returning a user identifier."""

    @abstractmethod
    async def current_identity(self) -> Optional[str]:
        """Return the signed-in user id, or None. Waits out initial loading."""
        ...

    @abstractmethod
    async def sign_in(self, provider: str = "google", redirect_target: Optional[str] = None) -> SignInResult:
        """Start a sign-in; either redirects or completes inline."""
        ...


class StaticIdentityProvider(IdentityProvider):
    """Identity fixed up front, e.g. passed on the command line."""

    def __init__(self, user_id: Optional[str] = None):
        self.user_id = user_id

    async def current_identity(self) -> Optional[str]:
        return self.user_id

    async def sign_in(self, provider: str = "google", redirect_target: Optional[str] = None) -> SignInResult:
        if self.user_id is None:
            return SignInResult(redirected=False, error="Sign-in is not available here")
        return SignInResult(redirected=False)
