"""aioboto3 sessions bound to liftoff profiles.

Every profile carries its own credentials, so sessions are created per
profile and replaced whenever the profile's credentials or region change.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, Final

import aioboto3

from liftoff.types import Profile

DEFAULT_REGION: Final[str] = "us-east-1"


class SessionFactory:
    """Creates one aioboto3 session per profile name."""

    def __init__(self) -> None:
        self._sessions: dict[str, tuple[Profile, aioboto3.Session]] = {}

    def __call__(self, profile: Profile) -> aioboto3.Session:
        cached = self._sessions.get(profile.name)
        if cached is not None and cached[0] == profile:
            return cached[1]
        creds = profile.credentials
        session = aioboto3.Session(
            aws_access_key_id=creds.access_key_id,
            aws_secret_access_key=creds.secret_access_key,
            aws_session_token=creds.session_token,
            region_name=region_of(profile),
        )
        self._sessions[profile.name] = (profile, session)
        return session

    def client(self, profile: Profile, service: str) -> AbstractAsyncContextManager[Any]:
        """Service client for profile in the profile's region."""
        @asynccontextmanager
        async def factory() -> AsyncIterator[Any]:
            async with self(profile).client(service, region_name=region_of(profile)) as client:
                yield client
        return factory()


def region_of(profile: Profile) -> str:
    return profile.region or DEFAULT_REGION


__all__ = [
    "DEFAULT_REGION",
    "SessionFactory",
    "region_of",
]
