import pytest
import requests

from conftest import FakeSession, make_response
from src.bedrock.credentials import (
    ContainerMetadataProvider,
    Credentials,
    EnvironmentProvider,
    credential_sources,
    default_providers,
    resolve_credentials,
)
from src.bedrock.errors import CredentialsUnavailable

CONTAINER_BODY = {
    'AccessKeyId': 'ASIACONTAINER',
    'SecretAccessKey': 'container-secret',
    'Token': 'container-token',
    'Expiration': '2024-03-15T18:30:45Z',
}


def test_env_provider_reads_aws_keys():
    env = {'AWS_ACCESS_KEY_ID': 'AKID', 'AWS_SECRET_ACCESS_KEY': 'secret', 'AWS_SESSION_TOKEN': 'tok'}
    assert EnvironmentProvider(env).resolve() == Credentials('AKID', 'secret', 'tok')


def test_env_provider_falls_back_to_bedrock_keys():
    env = {'AWS_ACCESS_KEY_ID': 'AKID', 'BEDROCK_ACCESS_KEY_ID': 'BKID', 'BEDROCK_SECRET_ACCESS_KEY': 'bsecret'}
    assert EnvironmentProvider(env).resolve() == Credentials('BKID', 'bsecret', None)


def test_env_provider_ignores_blank_values():
    env = {'AWS_ACCESS_KEY_ID': '  ', 'AWS_SECRET_ACCESS_KEY': 'secret'}
    assert EnvironmentProvider(env).resolve() is None


def test_container_relative_uri_uses_link_local_host():
    provider = ContainerMetadataProvider({'AWS_CONTAINER_CREDENTIALS_RELATIVE_URI': '/v2/credentials/abc'})
    assert provider.metadata_url() == 'http://169.254.170.2/v2/credentials/abc'


def test_container_full_uri_used_verbatim():
    provider = ContainerMetadataProvider({'AWS_CONTAINER_CREDENTIALS_FULL_URI': 'http://localhost:9911/creds'})
    assert provider.metadata_url() == 'http://localhost:9911/creds'


def test_container_provider_maps_fields():
    session = FakeSession(make_response(200, CONTAINER_BODY))
    env = {
        'AWS_CONTAINER_CREDENTIALS_RELATIVE_URI': '/v2/credentials/abc',
        'AWS_CONTAINER_AUTHORIZATION_TOKEN': 'auth-token',
    }

    creds = ContainerMetadataProvider(env, session=session).resolve()

    assert creds == Credentials('ASIACONTAINER', 'container-secret', 'container-token', '2024-03-15T18:30:45Z')
    assert session.calls[0]['url'] == 'http://169.254.170.2/v2/credentials/abc'
    assert session.calls[0]['headers'] == {'Authorization': 'auth-token'}
    assert session.calls[0]['timeout'] == 2


def test_container_provider_without_uri_returns_none():
    session = FakeSession()
    assert ContainerMetadataProvider({}, session=session).resolve() is None
    assert session.calls == []


def test_container_http_error_is_credentials_unavailable():
    session = FakeSession(make_response(500, 'boom'))
    provider = ContainerMetadataProvider({'AWS_CONTAINER_CREDENTIALS_FULL_URI': 'http://x/creds'}, session=session)
    with pytest.raises(CredentialsUnavailable):
        provider.resolve()


def test_container_network_error_is_credentials_unavailable():
    session = FakeSession(requests.ConnectionError('no route'))
    provider = ContainerMetadataProvider({'AWS_CONTAINER_CREDENTIALS_FULL_URI': 'http://x/creds'}, session=session)
    with pytest.raises(CredentialsUnavailable, match='no route'):
        provider.resolve()


def test_container_body_missing_keys():
    session = FakeSession(make_response(200, {'Token': 'only-token'}))
    provider = ContainerMetadataProvider({'AWS_CONTAINER_CREDENTIALS_FULL_URI': 'http://x/creds'}, session=session)
    with pytest.raises(CredentialsUnavailable, match='AccessKeyId'):
        provider.resolve()


def test_env_wins_over_container():
    session = FakeSession()
    env = {
        'AWS_ACCESS_KEY_ID': 'AKID',
        'AWS_SECRET_ACCESS_KEY': 'secret',
        'AWS_CONTAINER_CREDENTIALS_RELATIVE_URI': '/v2/credentials/abc',
    }
    creds = resolve_credentials(default_providers(env, session=session))
    assert creds.access_key_id == 'AKID'
    assert session.calls == []


def test_chain_falls_through_to_container():
    session = FakeSession(make_response(200, CONTAINER_BODY))
    env = {'AWS_CONTAINER_CREDENTIALS_RELATIVE_URI': '/v2/credentials/abc'}
    assert resolve_credentials(default_providers(env, session=session)).access_key_id == 'ASIACONTAINER'


def test_nothing_configured_raises(clean_env):
    with pytest.raises(CredentialsUnavailable):
        resolve_credentials()


def test_reads_process_environment(clean_env):
    clean_env.setenv('AWS_ACCESS_KEY_ID', 'AKID')
    clean_env.setenv('AWS_SECRET_ACCESS_KEY', 'secret')
    assert resolve_credentials().access_key_id == 'AKID'


def test_repr_hides_secret():
    assert 'secret-value' not in repr(Credentials('AKID', 'secret-value', 'tok'))


def test_credential_sources_are_booleans():
    env = {'AWS_ACCESS_KEY_ID': 'AKID', 'AWS_SECRET_ACCESS_KEY': 'secret'}
    assert credential_sources(env) == {
        'hasContainerCreds': False,
        'hasEnvKeys': True,
        'hasBedrockKeys': False,
    }


@pytest.mark.parametrize('body', [['AccessKeyId'], 'a string', 42])
def test_container_body_not_an_object(body):
    session = FakeSession(make_response(200, body))
    provider = ContainerMetadataProvider({'AWS_CONTAINER_CREDENTIALS_FULL_URI': 'http://x/creds'}, session=session)
    with pytest.raises(CredentialsUnavailable, match='JSON object'):
        provider.resolve()
