"""
Bedrock runtime InvokeModel client.

One invocation:

  build payload → resolve credentials → sign → POST
      ├─ 2xx                       → extract text, done
      ├─ timeout / 5xx / throttled → back off, re-sign, POST again (up to max_retries)
      └─ other 4xx                 → FatalServiceError

The payload bytes are built once; each retry signs them again with a fresh
timestamp.
"""
import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timezone

import requests

from src.bedrock.credentials import resolve_credentials
from src.bedrock.errors import (
    CredentialsUnavailable,
    FatalServiceError,
    InvocationTimeout,
    ResponseParseError,
    TransientServiceError,
)
from src.bedrock.signer import sign
from src.config import BEDROCK_SERVICE, Settings, load_settings
from src.metrics import bedrock_invocations, bedrock_latency, bedrock_retries

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = 'bedrock-2023-05-31'
MAX_HISTORY = 20
ROLES = ('user', 'assistant')
NO_TEXT = '[sem texto]'
BACKOFF_BASE = 0.2  # seconds
BACKOFF_FACTOR = 3


@dataclass(frozen=True)
class InvokeOptions:
    max_tokens: int = 1000
    temperature: float = 0.2
    top_p: float = 0.9
    # None: use the client's Settings values
    timeout: float | None = None
    max_retries: int | None = None


@dataclass(frozen=True)
class InvocationRequest:
    model_id: str
    payload: bytes
    region: str
    host: str
    path: str

    @property
    def url(self) -> str:
        return f'https://{self.host}{self.path}'


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after failed attempt number `attempt` (0-based)."""
    return BACKOFF_BASE * BACKOFF_FACTOR ** attempt


def normalize_history(history) -> list[dict]:
    """
    Drop entries with an unknown role or blank content and keep the
    most recent MAX_HISTORY, oldest first.
    """
    cleaned = []
    for entry in history or []:
        if isinstance(entry, Mapping):
            role, content = entry.get('role'), entry.get('content')
        else:
            role, content = getattr(entry, 'role', None), getattr(entry, 'content', None)

        if role not in ROLES or not isinstance(content, str) or not content.strip():
            continue
        cleaned.append({'role': role, 'content': content})

    return cleaned[-MAX_HISTORY:]


def build_payload(message: str, history=None, system: str | None = None,
                  options: InvokeOptions | None = None) -> bytes:
    options = options or InvokeOptions()
    body = {
        'anthropic_version': ANTHROPIC_VERSION,
        'max_tokens': options.max_tokens,
        'temperature': options.temperature,
        'top_p': options.top_p,
    }
    if system and system.strip():
        body['system'] = system
    body['messages'] = normalize_history(history) + [{'role': 'user', 'content': message}]
    return json.dumps(body, ensure_ascii=False).encode('utf-8')


# --- Response text extraction ---

def _join_text_blocks(blocks) -> str | None:
    if not isinstance(blocks, list):
        return None
    texts = [
        block['text'] for block in blocks
        if isinstance(block, dict) and isinstance(block.get('text'), str)
    ]
    return ''.join(texts).strip() or None


def _from_content_blocks(data: dict) -> str | None:
    return _join_text_blocks(data.get('content'))


def _from_message_content(data: dict) -> str | None:
    output = data.get('output')
    message = output.get('message') if isinstance(output, dict) else None
    if not isinstance(message, dict):
        return None
    return _join_text_blocks(message.get('content'))


def _from_output_text(data: dict) -> str | None:
    candidates = [data.get('outputText')]
    output = data.get('output')
    if isinstance(output, dict):
        candidates.append(output.get('text'))
    results = data.get('results')
    if isinstance(results, list) and results and isinstance(results[0], dict):
        candidates.append(results[0].get('outputText'))

    for text in candidates:
        if isinstance(text, str) and text.strip():
            return text.strip()
    return None


def _from_completion(data: dict) -> str | None:
    text = data.get('completion')
    if isinstance(text, str) and text.strip():
        return text.strip()
    return None


# Tried in order; the first non-empty result wins.
EXTRACTORS = (
    _from_content_blocks,
    _from_message_content,
    _from_output_text,
    _from_completion,
)


def _parse_json(body: str) -> dict:
    try:
        data = json.loads(body)
    except ValueError as e:
        raise ResponseParseError(f'Response is not JSON: {e}') from e
    if not isinstance(data, dict):
        raise ResponseParseError(f'Response is a JSON {type(data).__name__}, expected an object')
    return data


def extract_text(raw: str | None) -> str:
    """
    Pull the generated text out of an InvokeModel response body.
    Falls back to the raw trimmed body; never raises.
    """
    body = (raw or '').strip()
    if not body:
        return NO_TEXT

    try:
        data = _parse_json(body)
    except ResponseParseError as e:
        logger.warning(f"{e}; returning raw body ({len(body)} chars)")
        return body

    for extractor in EXTRACTORS:
        text = extractor(data)
        if text:
            return text

    logger.warning('No known text field in Bedrock response, returning raw body')
    return body


# --- Error classification ---

def _upstream_message(resp: requests.Response) -> str:
    text = (resp.text or '').strip()
    try:
        data = resp.json()
    except ValueError:
        return text
    if isinstance(data, dict):
        message = data.get('message') or data.get('Message')
        if isinstance(message, str) and message.strip():
            return message.strip()
    return text


def _error_type(resp: requests.Response) -> str:
    """AWS error code from the x-amzn-ErrorType header or the JSON __type field."""
    error_type = resp.headers.get('x-amzn-ErrorType') or ''
    if not error_type:
        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and isinstance(data.get('__type'), str):
            error_type = data['__type']
    # 'ThrottlingException:http://internal.amazon.com/...' or 'com.amazon...#ThrottlingException'
    return error_type.split(':')[0].split('#')[-1]


def is_throttling(resp: requests.Response) -> bool:
    if resp.status_code == 429:
        return True
    error_type = _error_type(resp).lower()
    return 'throttl' in error_type or 'toomanyrequests' in error_type


def is_retryable(resp: requests.Response) -> bool:
    return resp.status_code >= 500 or is_throttling(resp)


class BedrockClient:
    """
    Signed InvokeModel client bound to one Settings instance.

    session, credential_resolver, sleep and clock are injectable so the
    retry loop can run without network or real waiting.
    """

    def __init__(self, settings: Settings, session=None, credential_resolver=None,
                 sleep=None, clock=None):
        self.settings = settings
        self.session = session or requests.Session()
        self.credential_resolver = credential_resolver or resolve_credentials
        self.sleep = sleep or time.sleep
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.default_options = InvokeOptions(
            timeout=settings.timeout,
            max_retries=settings.max_retries,
        )

    def options(self, **overrides) -> InvokeOptions:
        return replace(self.default_options, **overrides)

    def resolve_options(self, options: InvokeOptions | None) -> InvokeOptions:
        """Fill timeout and max_retries left as None from Settings."""
        if options is None:
            return self.default_options
        return replace(
            options,
            timeout=self.settings.timeout if options.timeout is None else options.timeout,
            max_retries=self.settings.max_retries if options.max_retries is None else options.max_retries,
        )

    def build_request(self, message: str, history=None, system: str | None = None,
                      options: InvokeOptions | None = None) -> InvocationRequest:
        return InvocationRequest(
            model_id=self.settings.model_id,
            payload=build_payload(message, history, system, options or self.default_options),
            region=self.settings.region,
            host=self.settings.host,
            path=self.settings.invoke_path,
        )

    def _send(self, request: InvocationRequest, credentials, timeout: float) -> str:
        headers = sign(
            'POST', request.path, request.host, request.region, BEDROCK_SERVICE,
            request.payload, credentials, now=self.clock(),
        )
        headers['accept'] = 'application/json'

        try:
            resp = self.session.post(request.url, data=request.payload, headers=headers, timeout=timeout)
        except requests.Timeout as e:
            raise InvocationTimeout(f'Bedrock did not answer within {timeout}s') from e
        except requests.ConnectionError as e:
            raise TransientServiceError(0, f'connection failed: {e}') from e

        if 200 <= resp.status_code < 300:
            return resp.text

        error = _upstream_message(resp)
        if is_retryable(resp):
            raise TransientServiceError(resp.status_code, error)
        raise FatalServiceError(resp.status_code, error)

    def invoke(self, message: str, history=None, system: str | None = None,
               options: InvokeOptions | None = None) -> str:
        """
        Send one chat turn to the model and return the generated text.

        Raises:
            CredentialsUnavailable: no credential provider produced keys
            InvocationTimeout: last attempt timed out
            TransientServiceError: 5xx/throttling persisted past max_retries
            FatalServiceError: non-retryable 4xx
        """
        options = self.resolve_options(options)
        request = self.build_request(message, history, system, options)

        try:
            credentials = self.credential_resolver()
        except CredentialsUnavailable:
            bedrock_invocations.labels(outcome='credentials').inc()
            raise

        start = time.time()
        attempts = options.max_retries + 1
        try:
            for attempt in range(attempts):
                try:
                    body = self._send(request, credentials, options.timeout)
                except (InvocationTimeout, TransientServiceError) as e:
                    if attempt + 1 >= attempts:
                        raise
                    if isinstance(e, InvocationTimeout):
                        reason = 'timeout'
                    else:
                        reason = 'status' if e.status else 'connection'
                    bedrock_retries.labels(reason=reason).inc()
                    delay = backoff_delay(attempt)
                    logger.warning(
                        'Bedrock attempt %d/%d failed (%s), retrying in %.1fs',
                        attempt + 1, attempts, e, delay,
                    )
                    self.sleep(delay)
                    continue

                bedrock_invocations.labels(outcome='success').inc()
                logger.info(f"Bedrock answered in {time.time() - start:.1f}s (attempt {attempt + 1})")
                return extract_text(body)

        except InvocationTimeout:
            bedrock_invocations.labels(outcome='timeout').inc()
            raise
        except TransientServiceError:
            bedrock_invocations.labels(outcome='transient').inc()
            raise
        except FatalServiceError:
            bedrock_invocations.labels(outcome='fatal').inc()
            raise
        finally:
            bedrock_latency.observe(time.time() - start)


def invoke(message: str, history=None, system: str | None = None,
           options: InvokeOptions | None = None) -> str:
    """Invoke with a client built from the current environment."""
    return BedrockClient(load_settings()).invoke(message, history, system, options)
