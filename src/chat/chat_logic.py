"""
Chat core logic. Framework-agnostic.
"""
import logging

from src.bedrock.client import BedrockClient
from src.bedrock.knowledge_base import format_context, rag_with_kb, retrieve_from_kb
from src.chat.prompts import MODES, build_system_prompt
from src.config import KB_STRATEGY_GENERATE, Settings

logger = logging.getLogger(__name__)


class EmptyMessageError(ValueError):
    pass


class InvalidModeError(ValueError):
    pass


def validate_request(message, mode) -> tuple[str, str]:
    """Return (message, mode) trimmed, or raise before anything goes upstream."""
    text = ('' if message is None else str(message)).strip()
    if not text:
        raise EmptyMessageError('message vazio')

    mode = (mode or '').strip()
    if mode not in MODES:
        raise InvalidModeError(f"mode inválido: {mode!r} (use {' ou '.join(MODES)})")

    return text, mode


def _kb_context(message: str, settings: Settings, kb_client=None) -> str | None:
    try:
        chunks = retrieve_from_kb(
            message,
            kb_id=settings.kb_id,
            region=settings.region,
            max_results=settings.kb_max_results,
            client=kb_client,
        )
    except Exception as e:
        logger.warning(f"Knowledge base retrieval failed, answering without context: {e}")
        return None
    return format_context(chunks) or None


def answer(message: str, history, mode: str, settings: Settings, client: BedrockClient,
           system: str | None = None, kb_client=None) -> str:
    """
    Answer one chat turn. Expects validated message and mode.

    With BEDROCK_KB_STRATEGY=generate the knowledge base answers directly
    (history is not sent); otherwise retrieved chunks are folded into the
    system prompt of a signed InvokeModel call.
    """
    if settings.kb_id and settings.kb_strategy == KB_STRATEGY_GENERATE:
        result = rag_with_kb(message, settings, client=kb_client)
        if result.citations:
            return result.text + '\n\n' + '\n'.join(result.citations)
        return result.text

    context = _kb_context(message, settings, kb_client) if settings.kb_id else None
    system_prompt = build_system_prompt(mode, system=system, context=context)
    return client.invoke(message, history=history, system=system_prompt)
