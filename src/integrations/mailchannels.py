"""
MailChannels transactional send API client.

This module serializes an OutboundRequest and posts it to the provider's send
endpoint. There is no retry: one attempt is made and the outcome is returned
or raised.

Usage:
    from integrations import mailchannels

    body = mailchannels.serialize_request(request)
    result = mailchannels.send_request(body, config)
"""

import json
import logging
import re
import time
from typing import Dict, Optional

import requests

from domain.errors import (
    ApiError,
    MalformedHeaderValueError,
    SerializationError,
    TransportError,
)
from domain.models import DeliveryResult, OutboundRequest

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.mailchannels.net/tx/v1/send"
API_KEY_HEADER = 'X-Api-Key'

# Same rule requests applies to header values
_VALID_HEADER_VALUE = re.compile(r'^\S[^\r\n]*$')


# ============================================================================
# Request Preparation
# ============================================================================

def _check_header_value(name: str, value: str) -> str:
    if not isinstance(value, str) or not _VALID_HEADER_VALUE.match(value):
        raise MalformedHeaderValueError(f"{name} is not a valid header value")
    try:
        value.encode('latin-1')
    except UnicodeEncodeError:
        raise MalformedHeaderValueError(f"{name} contains characters outside latin-1")
    return value


def build_headers(api_key: str) -> Dict[str, str]:
    """
    Build the HTTP headers for a send request.

    Raises:
        MalformedHeaderValueError: If the API key cannot be sent as a header
    """
    return {
        'Content-Type': 'application/json',
        'Accept': 'application/json',
        API_KEY_HEADER: _check_header_value(API_KEY_HEADER, api_key),
    }


def serialize_request(request: OutboundRequest) -> str:
    """
    Encode the request as the provider's JSON body.

    Key order follows the model's rendering, so equal requests always
    serialize to identical strings.

    Raises:
        SerializationError: If the request contains values JSON cannot encode
    """
    try:
        body = json.dumps(request.to_dict())
    except (TypeError, ValueError) as e:
        logger.error(f"Failed to serialize request: {e}")
        raise SerializationError(f"request could not be serialized: {e}") from e

    logger.debug(f"json body: {body}")
    return body


# ============================================================================
# Send
# ============================================================================

def send_request(
    body: str,
    api_key: str,
    api_url: str = DEFAULT_API_URL,
    timeout: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> DeliveryResult:
    """
    POST a serialized request to the send endpoint.

    Args:
        body: JSON body from serialize_request()
        api_key: Provider API key
        api_url: Send endpoint
        timeout: Seconds to wait, None to wait indefinitely
        session: Optional requests session (a fresh call is made otherwise)

    Returns:
        DeliveryResult for a 200 (sandbox) or 202 (queued) response

    Raises:
        MalformedHeaderValueError: If a header value is rejected
        TransportError: On network or TLS failure
        ApiError: On any other status code, with the response body
    """
    headers = build_headers(api_key)
    http = session if session is not None else requests
    start_time = time.time()

    logger.info(f"Sending request: url={api_url}, size={len(body):,} chars")

    try:
        response = http.post(api_url, headers=headers, data=body.encode('utf-8'), timeout=timeout)
    except requests.exceptions.InvalidHeader as e:
        raise MalformedHeaderValueError(f"invalid header value: {e}") from e
    except requests.exceptions.RequestException as e:
        logger.error(f"Transport failure posting to {api_url}: {e}")
        raise TransportError(f"request to {api_url} failed: {e}") from e

    elapsed = time.time() - start_time

    if response.status_code == 200:
        logger.info(f"received sandbox 200 ok ({elapsed:.2f}s)")
    elif response.status_code == 202:
        logger.info(f"Successfully sent mail. ({elapsed:.2f}s)")
    else:
        logger.error(
            f"received non-200 status code {response.status_code}. mail was probably not sent..."
        )
        raise ApiError(response.status_code, response.text)

    logger.debug(f"response text:\n--\n{response.text}\n--")
    return DeliveryResult(status_code=response.status_code, response_text=response.text)
