"""Registration token models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, PrivateAttr

from lxc_runner.errors import TokenExpiredError


class RegistrationToken(BaseModel):
    """A short-lived, single-use agent registration token.

    The secret is handed out exactly once by :meth:`consume`; a failed
    configuration attempt must fetch a fresh token rather than reuse it.
    """

    token: str = Field(..., min_length=1, repr=False)
    expires_at: datetime | None = None

    _used: bool = PrivateAttr(default=False)

    @property
    def used(self) -> bool:
        return self._used

    def consume(self) -> str:
        if self._used:
            raise TokenExpiredError("Registration token has already been used")
        self._used = True
        return self.token
