import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from dotenv import load_dotenv

load_dotenv()

# Base paths
BASE_DIR = Path(__file__).parent.parent
SRC_DIR = Path(__file__).parent

# Bedrock
DEFAULT_REGION = 'us-east-1'
DEFAULT_MODEL_ID = 'anthropic.claude-3-5-haiku-20241022-v1:0'
DEFAULT_MODEL_ARN = (
    'arn:aws:bedrock:us-east-1::foundation-model/'
    'anthropic.claude-3-5-haiku-20241022-v1:0'
)
BEDROCK_SERVICE = 'bedrock'

# Knowledge base: retrieve = fold chunks into the prompt, generate = retrieve-and-generate
KB_STRATEGY_RETRIEVE = 'retrieve'
KB_STRATEGY_GENERATE = 'generate'

# Invocation defaults
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 2

# Logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


def _first(environ, *names: str) -> str | None:
    for name in names:
        value = (environ.get(name) or '').strip()
        if value:
            return value
    return None


@dataclass(frozen=True)
class Settings:
    """
    Process-wide configuration, read once at startup.

    model_id is the inference profile ARN when one is configured, otherwise
    the plain model id.
    """
    region: str = DEFAULT_REGION
    model_id: str = DEFAULT_MODEL_ID
    model_arn: str = DEFAULT_MODEL_ARN
    inference_profile_arn: str | None = None
    kb_id: str | None = None
    kb_max_results: int = 8
    kb_strategy: str = KB_STRATEGY_RETRIEVE
    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES

    @property
    def host(self) -> str:
        return f'bedrock-runtime.{self.region}.amazonaws.com'

    @property
    def invoke_path(self) -> str:
        return f"/model/{quote(self.model_id, safe='')}/invoke"

    @property
    def invoke_url(self) -> str:
        return f'https://{self.host}{self.invoke_path}'


def load_settings(environ=None) -> Settings:
    """Build Settings from environment variables (os.environ by default)."""
    env = os.environ if environ is None else environ

    region = _first(env, 'BEDROCK_REGION', 'AWS_REGION', 'AWS_DEFAULT_REGION') or DEFAULT_REGION
    profile_arn = _first(env, 'BEDROCK_INFERENCE_PROFILE_ARN')
    model_id = profile_arn or _first(env, 'BEDROCK_MODEL_ID') or DEFAULT_MODEL_ID

    return Settings(
        region=region,
        model_id=model_id,
        model_arn=_first(env, 'BEDROCK_MODEL_ARN') or DEFAULT_MODEL_ARN,
        inference_profile_arn=profile_arn,
        kb_id=_first(env, 'BEDROCK_KB_ID'),
        kb_max_results=int(_first(env, 'BEDROCK_KB_MAX_RESULTS') or 8),
        kb_strategy=(_first(env, 'BEDROCK_KB_STRATEGY') or KB_STRATEGY_RETRIEVE).lower(),
        timeout=float(_first(env, 'BEDROCK_TIMEOUT') or DEFAULT_TIMEOUT),
        max_retries=int(_first(env, 'BEDROCK_MAX_RETRIES') or DEFAULT_MAX_RETRIES),
    )


def feature_flags(environ=None) -> dict:
    """Which Bedrock settings were set explicitly. Booleans only."""
    env = os.environ if environ is None else environ
    return {
        'hasKbId': bool(_first(env, 'BEDROCK_KB_ID')),
        'hasInferenceProfile': bool(_first(env, 'BEDROCK_INFERENCE_PROFILE_ARN')),
        'hasModelId': bool(_first(env, 'BEDROCK_MODEL_ID')),
        'hasRegion': bool(_first(env, 'BEDROCK_REGION', 'AWS_REGION', 'AWS_DEFAULT_REGION')),
    }
