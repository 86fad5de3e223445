"""
Data models for the outbound delivery request.

These type-safe data structures mirror the provider's JSON schema. Each model
renders itself with ``to_dict()``; optional fields that are unset are left out
of the rendered dict, except ``transactional`` on the root request which is
always present.
"""

import base64
from dataclasses import dataclass
from typing import List, Optional, Dict, Any

ATTACHMENT_MIMETYPE = "text/plain"


@dataclass(frozen=True)
class Address:
    """
    A single mailbox.

    Attributes:
        email: Address spec, e.g. "alice@example.com" (never empty)
        name: Display name, if the header carried one
    """
    email: str
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.name:
            result['name'] = self.name
        result['email'] = self.email
        return result


@dataclass(frozen=True)
class DkimInfo:
    """
    DKIM material the provider signs with after submission.

    Attributes:
        domain: Sender domain the key belongs to
        private_key: Base64 key body without PEM envelope or newlines
        selector: DKIM selector from process configuration
    """
    domain: str
    private_key: str
    selector: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'dkim_domain': self.domain,
            'dkim_private_key': self.private_key,
            'dkim_selector': self.selector,
        }

    def __repr__(self) -> str:
        return f"DkimInfo(domain={self.domain}, selector={self.selector}, private_key=<{len(self.private_key)} chars>)"


@dataclass(frozen=True)
class ContentEntry:
    """
    One text or HTML body.

    Attributes:
        content_type: "type/subtype" (or bare "type") of the body part
        value: Decoded body text
        template_type: Provider template type (never set by this pipeline)
    """
    content_type: str
    value: str
    template_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.template_type is not None:
            result['template_type'] = self.template_type
        result['type'] = self.content_type
        result['value'] = self.value
        return result


@dataclass(frozen=True)
class Attachment:
    """
    Named binary attachment.

    Attributes:
        filename: Original filename (required)
        content: Raw bytes, base64-encoded on the wire
        mimetype: Always "text/plain"; the part's own type is not inspected
    """
    filename: str
    content: bytes
    mimetype: str = ATTACHMENT_MIMETYPE

    @property
    def size(self) -> int:
        return len(self.content)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'content': base64.b64encode(self.content).decode('ascii'),
            'filename': self.filename,
            'type': self.mimetype,
        }


@dataclass(frozen=True)
class TrackingSettings:
    """Click and open tracking switches; None means provider default."""
    click_tracking: Optional[bool] = None
    open_tracking: Optional[bool] = None

    @property
    def is_set(self) -> bool:
        return self.click_tracking is not None or self.open_tracking is not None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.click_tracking is not None:
            result['click_tracking'] = {'enable': self.click_tracking}
        if self.open_tracking is not None:
            result['open_tracking'] = {'enable': self.open_tracking}
        return result


@dataclass(frozen=True)
class Personalization:
    """
    Recipients of the message plus optional per-recipient overrides.

    The pipeline only fills ``to``, ``cc`` and ``bcc``; the override fields
    exist so the schema is complete.
    """
    to: List[Address]
    cc: Optional[List[Address]] = None
    bcc: Optional[List[Address]] = None
    reply_to: Optional[Address] = None
    subject: Optional[str] = None
    from_address: Optional[Address] = None
    headers: Optional[Dict[str, str]] = None
    dkim: Optional[DkimInfo] = None
    dynamic_template_data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.bcc is not None:
            result['bcc'] = [a.to_dict() for a in self.bcc]
        if self.cc is not None:
            result['cc'] = [a.to_dict() for a in self.cc]
        if self.dkim is not None:
            result.update(self.dkim.to_dict())
        if self.dynamic_template_data is not None:
            result['dynamic_template_data'] = dict(self.dynamic_template_data)
        if self.from_address is not None:
            result['from'] = self.from_address.to_dict()
        if self.headers is not None:
            result['headers'] = dict(self.headers)
        if self.reply_to is not None:
            result['reply_to'] = self.reply_to.to_dict()
        if self.subject is not None:
            result['subject'] = self.subject
        result['to'] = [a.to_dict() for a in self.to]
        return result


@dataclass(frozen=True)
class OutboundRequest:
    """
    Root object posted to the provider's send endpoint.

    Attributes:
        from_address: Single sender
        subject: Non-empty subject line
        dkim: Signing material, flattened into the root object on the wire
        content: Body entries, HTML first then plain text
        personalizations: Exactly one Personalization in this pipeline
        attachments: Named attachments, None when the message had none
        headers: Pass-through headers, None when there were none
        reply_to: At most one reply-to address
        tracking_settings: Optional tracking switches
        transactional: Always serialized, null when unset
    """
    from_address: Address
    subject: str
    dkim: DkimInfo
    content: List[ContentEntry]
    personalizations: List[Personalization]
    attachments: Optional[List[Attachment]] = None
    headers: Optional[Dict[str, str]] = None
    reply_to: Optional[Address] = None
    tracking_settings: Optional[TrackingSettings] = None
    transactional: Optional[bool] = None

    @property
    def recipients(self) -> List[Address]:
        """All To addresses across personalizations, in order."""
        return [a for p in self.personalizations for a in p.to]

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.attachments is not None:
            result['attachments'] = [a.to_dict() for a in self.attachments]
        result['content'] = [c.to_dict() for c in self.content]
        result.update(self.dkim.to_dict())
        result['from'] = self.from_address.to_dict()
        if self.headers is not None:
            result['headers'] = dict(self.headers)
        result['personalizations'] = [p.to_dict() for p in self.personalizations]
        if self.reply_to is not None:
            result['reply_to'] = self.reply_to.to_dict()
        result['subject'] = self.subject
        if self.tracking_settings is not None and self.tracking_settings.is_set:
            result['tracking_settings'] = self.tracking_settings.to_dict()
        result['transactional'] = self.transactional
        return result


@dataclass
class DeliveryResult:
    """
    Outcome of a successful send.

    Attributes:
        status_code: HTTP status returned by the provider (200 or 202)
        response_text: Raw response body
    """
    status_code: int
    response_text: str = ""

    @property
    def is_sandbox(self) -> bool:
        """200 means the provider accepted the request without queueing it."""
        return self.status_code == 200

    @property
    def is_queued(self) -> bool:
        return self.status_code == 202

    def __repr__(self) -> str:
        state = "sandbox" if self.is_sandbox else "queued"
        return f"DeliveryResult(status_code={self.status_code}, state={state})"
