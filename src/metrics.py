from prometheus_client import Counter, Histogram

# Bedrock invocation
bedrock_invocations = Counter(
    'bedrock_invocations_total',
    'Bedrock InvokeModel calls by final outcome',
    ['outcome']  # success, timeout, transient, fatal, credentials
)

bedrock_retries = Counter(
    'bedrock_invocation_retries_total',
    'Bedrock InvokeModel retries',
    ['reason']  # timeout, connection, status
)

bedrock_latency = Histogram(
    'bedrock_invocation_latency_seconds',
    'Bedrock InvokeModel latency including retries',
    buckets=(0.5, 1, 2, 5, 10, 30, 60)
)

# Knowledge base
kb_retrievals = Counter(
    'knowledge_base_retrievals_total',
    'Knowledge base retrieval calls',
    ['outcome']
)

# Chat API
chat_requests = Counter(
    'chat_requests_total',
    'Chat requests handled',
    ['mode', 'status']
)
