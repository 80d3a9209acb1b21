"""
Error taxonomy for Bedrock credential resolution and model invocation.
"""


class BedrockError(Exception):
    pass


class CredentialsUnavailable(BedrockError):
    pass


class InvocationTimeout(BedrockError):
    pass


class ServiceError(BedrockError):
    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        if status:
            super().__init__(f'Bedrock {status}: {body}')
        else:
            super().__init__(f'Bedrock unreachable: {body}')


class TransientServiceError(ServiceError):
    """5xx or throttling. Retried with backoff until the budget runs out."""


class FatalServiceError(ServiceError):
    """4xx other than throttling. Never retried."""


class ResponseParseError(BedrockError):
    pass


class KnowledgeBaseNotConfigured(BedrockError):
    pass
