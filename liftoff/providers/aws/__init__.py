"""AWS adapter for liftoff.

Example:
    from liftoff.providers.aws import AWSProvider

    provider = AWSProvider()
    buckets = await provider.list_buckets(profile)
"""

from liftoff.providers.aws.credentials import CredentialsFileStore
from liftoff.providers.aws.module import AWSModule
from liftoff.providers.aws.provider import AWSProvider

__all__ = ["AWSModule", "AWSProvider", "CredentialsFileStore"]
