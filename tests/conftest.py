import json
from datetime import datetime, timezone

import pytest
import requests

from src.bedrock.credentials import Credentials
from src.config import Settings

ENV_VARS = [
    'AWS_ACCESS_KEY_ID', 'AWS_SECRET_ACCESS_KEY', 'AWS_SESSION_TOKEN',
    'BEDROCK_ACCESS_KEY_ID', 'BEDROCK_SECRET_ACCESS_KEY', 'BEDROCK_SESSION_TOKEN',
    'AWS_CONTAINER_CREDENTIALS_RELATIVE_URI', 'AWS_CONTAINER_CREDENTIALS_FULL_URI',
    'AWS_CONTAINER_AUTHORIZATION_TOKEN',
    'BEDROCK_REGION', 'AWS_REGION', 'AWS_DEFAULT_REGION',
    'BEDROCK_INFERENCE_PROFILE_ARN', 'BEDROCK_MODEL_ID', 'BEDROCK_MODEL_ARN',
    'BEDROCK_KB_ID', 'BEDROCK_KB_STRATEGY', 'BEDROCK_KB_MAX_RESULTS',
    'BEDROCK_TIMEOUT', 'BEDROCK_MAX_RETRIES',
]

FIXED_NOW = datetime(2024, 3, 15, 12, 30, 45, tzinfo=timezone.utc)


def make_response(status: int = 200, body='', headers: dict | None = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    if not isinstance(body, (str, bytes)):
        body = json.dumps(body)
    resp._content = body.encode('utf-8') if isinstance(body, str) else body
    resp.encoding = 'utf-8'
    resp.headers.update(headers or {})
    return resp


class FakeSession:
    """Plays back queued responses (or raises queued exceptions) and records calls."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append({'method': method, 'url': url, **kwargs})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def post(self, url, **kwargs):
        return self._next('POST', url, kwargs)

    def get(self, url, **kwargs):
        return self._next('GET', url, kwargs)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def settings():
    return Settings(region='us-east-1', model_id='anthropic.claude-3-5-haiku-20241022-v1:0')


@pytest.fixture
def creds():
    return Credentials('AKIDEXAMPLE', 'wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY')


@pytest.fixture
def session_creds():
    return Credentials('ASIAEXAMPLE', 'wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY', 'session-token-value')
