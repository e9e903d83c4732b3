import os
from dataclasses import dataclass, replace

RANDOM_REGION = 'random'


@dataclass(frozen=True)
class AWSCredentials:
    access_key_id: str = ''
    secret_access_key: str = ''
    profile: str = ''
    region: str = ''

    @classmethod
    def from_env(cls) -> 'AWSCredentials':
        return cls(
            access_key_id=os.getenv('AWS_ACCESS_KEY_ID', ''),
            secret_access_key=os.getenv('AWS_SECRET_ACCESS_KEY', ''),
            profile=os.getenv('AWS_PROFILE', ''),
            region=os.getenv('AWS_REGION', ''),
        )

    def resolve(self) -> 'AWSCredentials':
        """Fall back to the environment when nothing was supplied, then check the result is usable."""
        credentials = AWSCredentials.from_env() if self == AWSCredentials() else self

        if not credentials.profile and not (credentials.access_key_id and credentials.secret_access_key):
            raise ValueError('aws credentials are not supplied, set a profile or an access key pair')

        if not credentials.region:
            raise ValueError('aws region is not supplied')

        return credentials

    def with_region(self, region: str) -> 'AWSCredentials':
        return replace(self, region=region)

    @property
    def is_fedramp(self) -> bool:
        return 'gov' in self.region

    @property
    def is_random_region(self) -> bool:
        return self.region == RANDOM_REGION

    def as_env(self) -> dict[str, str]:
        if self.profile:
            return {'AWS_PROFILE': self.profile}

        if self.access_key_id and self.secret_access_key:
            return {'AWS_ACCESS_KEY_ID': self.access_key_id, 'AWS_SECRET_ACCESS_KEY': self.secret_access_key}

        return {}

    def __repr__(self) -> str:
        return f'AWSCredentials(profile={self.profile!r}, region={self.region!r}, access_key_id=***)'
