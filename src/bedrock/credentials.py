"""
AWS credential resolution.

Providers are tried in order; the first one that returns Credentials wins:

  EnvironmentProvider        AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY / AWS_SESSION_TOKEN,
                             then the BEDROCK_* equivalents
  ContainerMetadataProvider  ECS/App Runner style metadata endpoint

Nothing is cached: every invocation resolves fresh credentials.
"""
import logging
import os
from dataclasses import dataclass

import requests

from src.bedrock.errors import CredentialsUnavailable

logger = logging.getLogger(__name__)

CONTAINER_METADATA_HOST = 'http://169.254.170.2'
METADATA_TIMEOUT = 2


@dataclass(frozen=True)
class Credentials:
    access_key_id: str
    secret_access_key: str
    session_token: str | None = None
    expiration: str | None = None

    def __repr__(self) -> str:
        return f'Credentials(access_key_id={self.access_key_id!r}, session_token={"set" if self.session_token else None})'


class EnvironmentProvider:
    name = 'env'

    KEY_SETS = (
        ('AWS_ACCESS_KEY_ID', 'AWS_SECRET_ACCESS_KEY', 'AWS_SESSION_TOKEN'),
        ('BEDROCK_ACCESS_KEY_ID', 'BEDROCK_SECRET_ACCESS_KEY', 'BEDROCK_SESSION_TOKEN'),
    )

    def __init__(self, environ=None):
        self.environ = os.environ if environ is None else environ

    def resolve(self) -> Credentials | None:
        for key_var, secret_var, token_var in self.KEY_SETS:
            key = (self.environ.get(key_var) or '').strip()
            secret = (self.environ.get(secret_var) or '').strip()
            if key and secret:
                token = (self.environ.get(token_var) or '').strip() or None
                return Credentials(key, secret, token)
        return None


class ContainerMetadataProvider:
    name = 'container'

    def __init__(self, environ=None, session=None, timeout: float = METADATA_TIMEOUT):
        self.environ = os.environ if environ is None else environ
        self.session = session or requests
        self.timeout = timeout

    def metadata_url(self) -> str | None:
        relative = (self.environ.get('AWS_CONTAINER_CREDENTIALS_RELATIVE_URI') or '').strip()
        if relative:
            return f'{CONTAINER_METADATA_HOST}{relative}'
        full = (self.environ.get('AWS_CONTAINER_CREDENTIALS_FULL_URI') or '').strip()
        return full or None

    def resolve(self) -> Credentials | None:
        url = self.metadata_url()
        if not url:
            return None

        headers = {}
        auth_token = (self.environ.get('AWS_CONTAINER_AUTHORIZATION_TOKEN') or '').strip()
        if auth_token:
            headers['Authorization'] = auth_token

        try:
            resp = self.session.get(url, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise CredentialsUnavailable(f'Container credentials request failed: {e}') from e

        if not isinstance(data, dict):
            raise CredentialsUnavailable('Container credentials response is not a JSON object')

        key = data.get('AccessKeyId')
        secret = data.get('SecretAccessKey')
        if not key or not secret:
            raise CredentialsUnavailable('Container credentials response missing AccessKeyId/SecretAccessKey')

        return Credentials(
            access_key_id=key,
            secret_access_key=secret,
            session_token=data.get('Token') or None,
            expiration=data.get('Expiration'),
        )


def default_providers(environ=None, session=None) -> list:
    return [
        EnvironmentProvider(environ),
        ContainerMetadataProvider(environ, session=session),
    ]


def resolve_credentials(providers=None) -> Credentials:
    """
    Return the first Credentials produced by the provider chain.
    Raises CredentialsUnavailable when no provider yields any.
    """
    for provider in providers if providers is not None else default_providers():
        creds = provider.resolve()
        if creds is not None:
            logger.debug('Resolved AWS credentials from %s provider', provider.name)
            return creds

    raise CredentialsUnavailable(
        'No AWS credentials found: set AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY '
        'or run with container credentials'
    )


def credential_sources(environ=None) -> dict:
    """Which credential sources are configured. Booleans only, never values."""
    env = os.environ if environ is None else environ
    return {
        'hasContainerCreds': bool(
            env.get('AWS_CONTAINER_CREDENTIALS_RELATIVE_URI')
            or env.get('AWS_CONTAINER_CREDENTIALS_FULL_URI')
        ),
        'hasEnvKeys': bool(env.get('AWS_ACCESS_KEY_ID') and env.get('AWS_SECRET_ACCESS_KEY')),
        'hasBedrockKeys': bool(env.get('BEDROCK_ACCESS_KEY_ID') and env.get('BEDROCK_SECRET_ACCESS_KEY')),
    }
