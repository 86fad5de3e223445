"""
Header classification for outbound messages.

The provider refuses a fixed set of headers as custom headers; those are
consumed to build structured request fields instead. Everything else is
forwarded verbatim.

Reserved headers (provider restrictions):
    Arc-Authentication-Results     discarded
    Bcc, Cc, To                    personalization recipients
    Content-Transfer-Encoding      superseded by content entries
    Content-Type                   superseded by content entries
    DKIM-Signature                 discarded, the provider signs after submission
    From, Reply-To, Subject        top-level request fields
    Message-Id, Received           discarded
"""

import logging
import re
from dataclasses import dataclass, field
from email.message import Message
from enum import Enum
from typing import Dict, List, Optional

from domain.errors import InvalidUtf8Error

logger = logging.getLogger(__name__)

_FOLD_RE = re.compile(r'\r?\n(?=[ \t])')


class Disposition(str, Enum):
    """What happens to a reserved header's value."""
    DISCARDED = "discarded"
    RECIPIENTS = "recipients"
    CONTENT = "content"
    TOP_LEVEL = "top_level"


class ReservedHeader(str, Enum):
    """Header names never forwarded as pass-through; values are lower-case."""
    ARC_AUTHENTICATION_RESULTS = "arc-authentication-results"
    BCC = "bcc"
    CC = "cc"
    CONTENT_TRANSFER_ENCODING = "content-transfer-encoding"
    CONTENT_TYPE = "content-type"
    DKIM_SIGNATURE = "dkim-signature"
    FROM = "from"
    MESSAGE_ID = "message-id"
    RECEIVED = "received"
    REPLY_TO = "reply-to"
    SUBJECT = "subject"
    TO = "to"

    @property
    def display_name(self) -> str:
        """Canonical spelling used in log and error messages."""
        return _DISPLAY_NAMES[self]

    @property
    def disposition(self) -> Disposition:
        return RESERVED_DISPOSITIONS[self]

    @classmethod
    def lookup(cls, name: str) -> Optional['ReservedHeader']:
        """Return the member for ``name`` (any case), or None if not reserved."""
        try:
            return cls(name.strip().lower())
        except ValueError:
            return None


RESERVED_DISPOSITIONS: Dict[ReservedHeader, Disposition] = {
    ReservedHeader.ARC_AUTHENTICATION_RESULTS: Disposition.DISCARDED,
    ReservedHeader.BCC: Disposition.RECIPIENTS,
    ReservedHeader.CC: Disposition.RECIPIENTS,
    ReservedHeader.CONTENT_TRANSFER_ENCODING: Disposition.CONTENT,
    ReservedHeader.CONTENT_TYPE: Disposition.CONTENT,
    ReservedHeader.DKIM_SIGNATURE: Disposition.DISCARDED,
    ReservedHeader.FROM: Disposition.TOP_LEVEL,
    ReservedHeader.MESSAGE_ID: Disposition.DISCARDED,
    ReservedHeader.RECEIVED: Disposition.DISCARDED,
    ReservedHeader.REPLY_TO: Disposition.TOP_LEVEL,
    ReservedHeader.SUBJECT: Disposition.TOP_LEVEL,
    ReservedHeader.TO: Disposition.RECIPIENTS,
}

_DISPLAY_NAMES: Dict[ReservedHeader, str] = {
    ReservedHeader.ARC_AUTHENTICATION_RESULTS: "Arc-Authentication-Results",
    ReservedHeader.BCC: "Bcc",
    ReservedHeader.CC: "Cc",
    ReservedHeader.CONTENT_TRANSFER_ENCODING: "Content-Transfer-Encoding",
    ReservedHeader.CONTENT_TYPE: "Content-Type",
    ReservedHeader.DKIM_SIGNATURE: "DKIM-Signature",
    ReservedHeader.FROM: "From",
    ReservedHeader.MESSAGE_ID: "Message-Id",
    ReservedHeader.RECEIVED: "Received",
    ReservedHeader.REPLY_TO: "Reply-To",
    ReservedHeader.SUBJECT: "Subject",
    ReservedHeader.TO: "To",
}


def is_reserved(name: str) -> bool:
    """Check whether a header name belongs to the reserved set."""
    return ReservedHeader.lookup(name) is not None


@dataclass
class ClassifiedHeaders:
    """
    A message's headers split into reserved and pass-through sets.

    Attributes:
        reserved: Reserved header -> every raw value, in message order
        passthrough: Header name -> unfolded raw value, first-seen order,
            last value wins for repeated names
    """
    reserved: Dict[ReservedHeader, List[str]] = field(default_factory=dict)
    passthrough: Dict[str, str] = field(default_factory=dict)

    def values(self, header: ReservedHeader) -> Optional[List[str]]:
        """Raw values of a reserved header, or None if the message lacks it."""
        return self.reserved.get(header)


def unfold(value: str) -> str:
    """
    Undo RFC 5322 folding: drop line breaks that precede continuation whitespace.

    Example:
        >>> unfold("first part\\r\\n second part")
        'first part second part'
    """
    return _FOLD_RE.sub('', value).rstrip('\r\n')


def decode_raw_value(name: str, value: str) -> str:
    """
    Recover UTF-8 text from a raw header value.

    The bytes parser keeps undecodable header bytes as surrogate escapes;
    they are turned back into bytes and decoded as UTF-8 once.

    Raises:
        InvalidUtf8Error: If the header's 8-bit bytes are not valid UTF-8

    Example:
        >>> decode_raw_value("X-Note", "na\\udcc3\\udcafve")
        'naïve'
    """
    try:
        raw = value.encode('ascii', 'surrogateescape')
    except UnicodeEncodeError:
        # already text, e.g. a message parsed from str
        return value

    try:
        return raw.decode('utf-8')
    except UnicodeDecodeError as e:
        logger.error(f"Header {name} is not valid UTF-8: {e}")
        raise InvalidUtf8Error(f"{name} header is not valid utf-8", header=name) from e


def classify_headers(msg: Message) -> ClassifiedHeaders:
    """
    Partition the message's top-level headers.

    Args:
        msg: Parsed message

    Returns:
        ClassifiedHeaders with raw reserved values and pass-through values,
        8-bit bytes decoded as UTF-8

    Raises:
        InvalidUtf8Error: If a header carries 8-bit bytes that are not UTF-8
    """
    classified = ClassifiedHeaders()

    for name, raw_value in msg.raw_items():
        value = decode_raw_value(name, raw_value)
        header = ReservedHeader.lookup(name)
        if header is not None:
            classified.reserved.setdefault(header, []).append(value)
        else:
            classified.passthrough[name] = unfold(value)

    if logger.isEnabledFor(logging.DEBUG):
        for header, values in classified.reserved.items():
            logger.debug(f"reserved {header.display_name} ({header.disposition.value}): {values!r}")
        for name, value in classified.passthrough.items():
            logger.debug(f"pass-through {name}: {value!r}")

    return classified
