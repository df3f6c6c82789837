"""
Identity and Credential Boundary

The interactive sign-in flow lives outside the core. Whatever runs it
hands us an opaque bearer token and the signed-in user's profile through
a CredentialProvider. A provider with no token means "not ready yet".
"""

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Identity(BaseModel):
    """The signed-in user."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = Field(default="User")
    email: str = Field(default="")
    picture: str = Field(default="")


class CredentialProvider(ABC):
    """Supplies the current bearer credential and identity."""

    @abstractmethod
    def get_credential(self) -> Optional[str]:
        """Current access token, or None if the user is not signed in."""
        pass

    @abstractmethod
    def get_identity(self) -> Optional[Identity]:
        pass

    @abstractmethod
    def invalidate(self) -> None:
        """Forget the credential so the sign-in flow runs again."""
        pass

    @property
    def is_ready(self) -> bool:
        return bool(self.get_credential())


class StaticCredentialProvider(CredentialProvider):
    """Holds a token obtained elsewhere (CLI flag, notebook, test)."""

    def __init__(self, credential: Optional[str] = None, identity: Optional[Identity] = None):
        self._credential = credential
        self._identity = identity

    def get_credential(self) -> Optional[str]:
        return self._credential

    def get_identity(self) -> Optional[Identity]:
        return self._identity

    def invalidate(self) -> None:
        self._credential = None
        self._identity = None
