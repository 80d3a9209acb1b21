"""
Chat service — FastAPI app.
Runs on port 5006.

Start with:
    uvicorn src.chat.main:app --port 5006 --reload
"""
import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from pydantic import BaseModel

from src import config
from src.bedrock.client import BedrockClient
from src.bedrock.credentials import credential_sources
from src.chat.chat_logic import answer, validate_request
from src.chat.prompts import DEFAULT_MODE, MODES
from src.metrics import chat_requests

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title='Talent Match Chat', version='0.1.0')
app.mount('/metrics', make_asgi_app())

settings = config.load_settings()
INVALID_MODE_LABEL = 'invalid'
_client = None


def _get_client() -> BedrockClient:
    global _client
    if _client is None:
        _client = BedrockClient(settings)
    return _client


# --- Request / Response models ---

class ChatRequest(BaseModel):
    message: str = ''
    history: Any = None
    mode: str | None = None
    system: str | None = None


class ChatReply(BaseModel):
    reply: str


@app.exception_handler(RequestValidationError)
def bad_request(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={'error': f'requisição inválida: {exc.errors()}'})


# --- Routes ---

@app.get('/health')
def health():
    return {'status': 'ok', 'service': 'chat'}


@app.get('/chat')
def chat_health():
    return {'ok': True}


@app.post('/chat', response_model=ChatReply)
def chat(req: ChatRequest):
    """
    Answer one chat turn.

    - 200: {reply}
    - 400: {error} empty message or unknown mode, nothing sent upstream
    - 500: {error, reply} credentials, timeout or Bedrock failure
    """
    history = req.history if isinstance(req.history, list) else []
    mode = DEFAULT_MODE if req.mode is None else req.mode

    try:
        message, mode = validate_request(req.message, mode)
    except ValueError as e:
        label = mode if mode in MODES else INVALID_MODE_LABEL
        chat_requests.labels(mode=label, status='400').inc()
        return JSONResponse(status_code=400, content={'error': str(e)})

    try:
        reply = answer(message, history, mode, settings, _get_client(), system=req.system)
    except Exception as e:
        logger.exception(f"Chat failed (mode={mode})")
        chat_requests.labels(mode=mode, status='500').inc()
        msg = str(e) or 'erro'
        return JSONResponse(status_code=500, content={'error': msg, 'reply': f'Erro do servidor: {msg}'})

    chat_requests.labels(mode=mode, status='200').inc()
    return ChatReply(reply=reply)


@app.get('/debug-creds')
def debug_creds():
    """Which credential sources and Bedrock settings are present. Never the values."""
    return {
        **credential_sources(),
        **config.feature_flags(),
        'region': settings.region,
    }
