"""
AWS Signature Version 4 for a single queryless request, via botocore.

Signed headers are content-type, host, x-amz-date and, when the
credentials carry a session token, x-amz-security-token. botocore orders
them and double-encodes the path (%3A -> %253A) as the protocol requires.
"""
from datetime import datetime, timezone

from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials as BotoCredentials

ALGORITHM = 'AWS4-HMAC-SHA256'


def format_timestamps(now: datetime) -> tuple[str, str]:
    """Return (amz_date, date_stamp), e.g. ('20240131T235959Z', '20240131')."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.strftime('%Y%m%dT%H%M%SZ'), now.strftime('%Y%m%d')


def sign(method: str, path: str, host: str, region: str, service: str,
         payload: bytes, credentials, now: datetime | None = None,
         content_type: str = 'application/json') -> dict[str, str]:
    """
    Sign a request and return the headers to send with it.

    `credentials` needs access_key_id, secret_access_key and session_token.
    `now` defaults to the current UTC time; naive datetimes are taken as UTC.
    """
    amz_date, _ = format_timestamps(now or datetime.now(timezone.utc))

    headers = {
        'content-type': content_type.strip(),
        'host': host.strip(),
        'x-amz-date': amz_date,
    }
    if credentials.session_token:
        headers['x-amz-security-token'] = credentials.session_token.strip()

    request = AWSRequest(method=method.upper(), url=f'https://{host}{path}', data=payload, headers=headers)
    # add_auth() would stamp its own clock; pin the timestamp to `now` instead
    request.context['timestamp'] = amz_date

    auth = SigV4Auth(
        BotoCredentials(credentials.access_key_id, credentials.secret_access_key, credentials.session_token),
        service,
        region,
    )
    string_to_sign = auth.string_to_sign(request, auth.canonical_request(request))
    signature = auth.signature(string_to_sign, request)
    signed_headers = auth.signed_headers(auth.headers_to_sign(request))

    headers['authorization'] = (
        f'{ALGORITHM} Credential={auth.scope(request)}, '
        f'SignedHeaders={signed_headers}, Signature={signature}'
    )
    return headers
