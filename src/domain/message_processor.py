"""
Message delivery pipeline - core business logic.

This module turns one raw message into a provider send request and submits it:
1. Parse the MIME message
2. Classify headers into reserved and pass-through sets
3. Resolve From, To, Cc, Bcc and Reply-To addresses
4. Load the DKIM key for the sender domain
5. Extract body entries and attachments
6. Assemble and validate the OutboundRequest
7. Serialize and send it

Every step raises an MdaError subclass on failure; nothing is sent unless the
whole request was assembled.
"""

import logging
from dataclasses import dataclass
from email import errors as email_errors
from email import policy
from typing import List, Optional

import requests

from config import MdaConfig
from domain.errors import MissingHeaderError, TooManyHeadersError
from domain.models import (
    Address,
    Attachment,
    ContentEntry,
    DeliveryResult,
    DkimInfo,
    OutboundRequest,
    Personalization,
    TrackingSettings,
)
from integrations import mailchannels
from services import addresses as address_service
from services import email as email_service
from services.dkim import KeyStore, load_dkim_info
from services.headers import ClassifiedHeaders, ReservedHeader, classify_headers, is_reserved

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedAddresses:
    """Structured addresses taken from the reserved headers."""
    from_address: Address
    to: List[Address]
    cc: Optional[List[Address]] = None
    bcc: Optional[List[Address]] = None
    reply_to: Optional[Address] = None


def resolve_addresses(classified: ClassifiedHeaders) -> ResolvedAddresses:
    """
    Resolve every address header of a message.

    Raises:
        InvalidFromError: If From is not exactly one address
        MissingHeaderError: If To is absent or yields no address
        TooManyHeadersError: If Reply-To has more than one address
    """
    return ResolvedAddresses(
        from_address=address_service.resolve_from(classified.values(ReservedHeader.FROM)),
        to=address_service.resolve_recipients(classified.values(ReservedHeader.TO)),
        cc=address_service.resolve_optional(ReservedHeader.CC, classified.values(ReservedHeader.CC)),
        bcc=address_service.resolve_optional(ReservedHeader.BCC, classified.values(ReservedHeader.BCC)),
        reply_to=address_service.resolve_reply_to(classified.values(ReservedHeader.REPLY_TO)),
    )


def resolve_subject(values: Optional[List[str]]) -> str:
    """
    Resolve the single, non-empty subject line.

    RFC 2047 encoded words are decoded.

    Raises:
        MissingHeaderError: If there is no Subject or its text is empty
        TooManyHeadersError: If Subject occurs more than once
    """
    if not values:
        raise MissingHeaderError("need a Subject!", header="Subject")
    if len(values) > 1:
        raise TooManyHeadersError("must have only one Subject!", header="Subject")

    try:
        subject = str(policy.default.header_factory('Subject', values[0]))
    except (email_errors.HeaderParseError, IndexError, ValueError) as e:
        raise MissingHeaderError("Subject is empty or missing!", header="Subject") from e

    if not subject.strip():
        raise MissingHeaderError("Subject is empty or missing!", header="Subject")
    return subject


def build_outbound_request(
    classified: ClassifiedHeaders,
    addresses: ResolvedAddresses,
    dkim: DkimInfo,
    contents: List[ContentEntry],
    attachments: List[Attachment],
    tracking_settings: Optional[TrackingSettings] = None,
    transactional: Optional[bool] = None,
) -> OutboundRequest:
    """
    Assemble the provider request from the pipeline's outputs.

    Args:
        classified: Reserved and pass-through headers
        addresses: Resolved addresses
        dkim: DKIM material for the sender domain
        contents: Body entries, HTML first
        attachments: Named attachments
        tracking_settings: Optional tracking switches
        transactional: Optional transactional flag

    Returns:
        OutboundRequest with exactly one personalization

    Raises:
        MissingHeaderError: If Subject is missing or empty
        TooManyHeadersError: If Subject repeats
    """
    subject = resolve_subject(classified.values(ReservedHeader.SUBJECT))

    passthrough = {name: value for name, value in classified.passthrough.items() if not is_reserved(name)}

    personalization = Personalization(
        to=list(addresses.to),
        cc=addresses.cc,
        bcc=addresses.bcc,
    )

    return OutboundRequest(
        from_address=addresses.from_address,
        subject=subject,
        dkim=dkim,
        content=list(contents),
        personalizations=[personalization],
        attachments=list(attachments) if attachments else None,
        headers=passthrough or None,
        reply_to=addresses.reply_to,
        tracking_settings=tracking_settings,
        transactional=transactional,
    )


class MessageProcessor:
    """
    Runs the delivery pipeline for one message.

    Transformation is separate from sending so the request can be built and
    inspected without any network access.
    """

    def __init__(
        self,
        config: MdaConfig,
        key_store: Optional[KeyStore] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            config: Process configuration
            key_store: DKIM key source (default: the one config selects)
            session: Optional requests session for the send call
        """
        self.config = config
        self.key_store = key_store if key_store is not None else config.key_store()
        self.session = session

    def transform(self, email_content: bytes) -> OutboundRequest:
        """
        Build the outbound request for a raw message.

        Args:
            email_content: Raw MIME bytes

        Returns:
            OutboundRequest ready to serialize

        Raises:
            MdaError: The first failure encountered
        """
        msg = email_service.parse_message(email_content)
        classified = classify_headers(msg)

        addresses = resolve_addresses(classified)
        logger.info(
            f"Resolved: from={addresses.from_address.email}, to={len(addresses.to)}, "
            f"cc={len(addresses.cc or [])}, bcc={len(addresses.bcc or [])}"
        )

        dkim = load_dkim_info(addresses.from_address.email, self.config.dkim_selector, self.key_store)
        contents, attachments = email_service.extract_content(msg)

        return build_outbound_request(
            classified,
            addresses,
            dkim,
            contents,
            attachments,
            tracking_settings=self.config.tracking_settings(),
            transactional=self.config.transactional,
        )

    def process(self, email_content: bytes) -> DeliveryResult:
        """
        Transform a raw message and submit it to the provider.

        Args:
            email_content: Raw MIME bytes

        Returns:
            DeliveryResult for an accepted request

        Raises:
            MdaError: The first failure encountered; nothing is sent if
                transformation fails
        """
        request = self.transform(email_content)
        body = mailchannels.serialize_request(request)

        result = mailchannels.send_request(
            body,
            api_key=self.config.api_key,
            api_url=self.config.api_url,
            timeout=self.config.timeout,
            session=self.session,
        )
        self._log_delivery(request, result)
        return result

    def _log_delivery(self, request: OutboundRequest, result: DeliveryResult) -> None:
        """Log delivery summary."""
        state = "accepted by sandbox" if result.is_sandbox else "queued"
        logger.info(
            f"Message {state}: from={request.from_address.email}, "
            f"subject={request.subject!r}, recipients={len(request.recipients)}, "
            f"content={len(request.content)}, attachments={len(request.attachments or [])}"
        )
