"""
Bedrock Knowledge Base helpers (bedrock-agent-runtime via boto3).

retrieve_from_kb  vector search only; chunks are folded into the system prompt
rag_with_kb       managed retrieve-and-generate, returns text plus citations
"""
import logging
from dataclasses import dataclass, field

import boto3

from src.bedrock.errors import KnowledgeBaseNotConfigured
from src.config import Settings
from src.metrics import kb_retrievals

logger = logging.getLogger(__name__)

NO_TEXT = '[sem texto]'
MAX_CHUNK_CHARS = 1500


@dataclass
class RetrievedChunk:
    text: str
    source: str | None = None


@dataclass
class RagResult:
    text: str
    citations: list[str] = field(default_factory=list)


def _agent_client(region: str):
    return boto3.client('bedrock-agent-runtime', region_name=region)


def _as_string(value) -> str | None:
    """Best-effort string from a metadata value (str, number, list or dict)."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, bool)):
        return str(value)
    if isinstance(value, list):
        return next((v for v in value if isinstance(v, str)), None)
    if isinstance(value, dict):
        for key in ('text', 'title', 'value', 'url', 'uri'):
            if isinstance(value.get(key), str):
                return value[key]
    return None


def _location_uri(location: dict | None) -> str | None:
    location = location or {}
    return (
        (location.get('webLocation') or {}).get('url')
        or (location.get('s3Location') or {}).get('uri')
    )


def retrieve_from_kb(query: str, kb_id: str, region: str, max_results: int = 12,
                     min_score: float = 0.0, client=None) -> list[RetrievedChunk]:
    """Return the KB chunks scoring at least min_score, empty ones dropped."""
    if not kb_id:
        raise KnowledgeBaseNotConfigured('BEDROCK_KB_ID is not configured')

    client = client or _agent_client(region)
    try:
        resp = client.retrieve(
            knowledgeBaseId=kb_id,
            retrievalQuery={'text': query},
            retrievalConfiguration={
                'vectorSearchConfiguration': {'numberOfResults': max_results},
            },
        )
    except Exception:
        kb_retrievals.labels(outcome='error').inc()
        raise

    chunks = []
    for item in resp.get('retrievalResults') or []:
        if (item.get('score') or 0) < min_score:
            continue
        text = (item.get('content') or {}).get('text') or ''
        if not text.strip():
            continue
        source = _location_uri(item.get('location')) or _as_string((item.get('metadata') or {}).get('title'))
        chunks.append(RetrievedChunk(text=text, source=source))

    kb_retrievals.labels(outcome='success').inc()
    logger.info(f"Retrieved {len(chunks)} chunks from knowledge base {kb_id}")
    return chunks


def format_context(chunks: list[RetrievedChunk]) -> str:
    """Numbered context block for the system instruction."""
    lines = []
    for i, chunk in enumerate(chunks, 1):
        header = f"[{i}] {chunk.source}" if chunk.source else f"[{i}]"
        lines.append(f"{header}\n{chunk.text.strip()[:MAX_CHUNK_CHARS]}")
    return '\n\n'.join(lines)


def rag_with_kb(query: str, settings: Settings, max_tokens: int = 1024,
                temperature: float = 0.2, top_p: float = 0.9, client=None) -> RagResult:
    """Retrieve-and-generate against the configured knowledge base."""
    if not settings.kb_id:
        raise KnowledgeBaseNotConfigured('BEDROCK_KB_ID is not configured')

    kb_config = {
        'knowledgeBaseId': settings.kb_id,
        'modelArn': settings.inference_profile_arn or settings.model_arn,
    }

    client = client or _agent_client(settings.region)
    resp = client.retrieve_and_generate(
        input={'text': query},
        retrieveAndGenerateConfiguration={
            'type': 'KNOWLEDGE_BASE',
            'knowledgeBaseConfiguration': {
                **kb_config,
                'generationConfiguration': {
                    'inferenceConfig': {
                        'textInferenceConfig': {
                            'maxTokens': max_tokens,
                            'temperature': temperature,
                            'topP': top_p,
                        },
                    },
                },
            },
        },
    )

    text = (resp.get('output') or {}).get('text') or NO_TEXT

    citations = []
    for i, citation in enumerate(resp.get('citations') or [], 1):
        for ref in citation.get('retrievedReferences') or []:
            title = _as_string((ref.get('metadata') or {}).get('title'))
            uri = _location_uri(ref.get('location'))
            citations.append(f"[#{i}] {title or uri or 'fonte'}")

    return RagResult(text=text.strip(), citations=citations)
