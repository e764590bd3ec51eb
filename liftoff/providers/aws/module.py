"""DI module binding the AWS adapter.

Usage:
    >>> from injector import Injector
    >>> from liftoff.module import LiftoffModule
    >>> from liftoff.providers.aws import AWSModule
    >>>
    >>> injector = Injector([LiftoffModule(config), AWSModule()])
    >>> provider = injector.get(CloudProvider)
"""

from __future__ import annotations

from injector import Module, provider, singleton

from liftoff.config import LiftoffConfig
from liftoff.profiles import ProfileStore
from liftoff.providers import CloudProvider
from liftoff.providers.aws.clients import SessionFactory
from liftoff.providers.aws.credentials import CredentialsFileStore
from liftoff.providers.aws.provider import AWSProvider


class AWSModule(Module):
    """Provides the AWS CloudProvider and the shared-file profile store."""

    @singleton
    @provider
    def provide_sessions(self) -> SessionFactory:
        return SessionFactory()

    @singleton
    @provider
    def provide_cloud_provider(self, sessions: SessionFactory, config: LiftoffConfig) -> CloudProvider:
        return AWSProvider(
            sessions=sessions,
            config=config.aws,
            stack_name=config.deployment.stack_name,
        )

    @singleton
    @provider
    def provide_profile_store(self, config: LiftoffConfig) -> ProfileStore:
        return CredentialsFileStore(
            credentials_file=config.aws.credentials_file,
            config_file=config.aws.config_file,
        )


__all__ = ["AWSModule"]
