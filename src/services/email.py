"""
Email parsing and content extraction for the delivery filter.

This module turns raw MIME bytes into a parsed message and splits its leaf
parts into text/HTML body entries and named attachments.
"""

import logging
from email import policy
from email.message import EmailMessage, Message
from email.parser import BytesParser
from typing import Iterator, List, Optional, Tuple

from domain.errors import AttachmentIssueError, InvalidUtf8Error, NoHeadersError
from domain.models import Attachment, ContentEntry

logger = logging.getLogger(__name__)

BODY_TYPES = ('text/html', 'text/plain')

# Charsets decoded with strict UTF-8
_UTF8_COMPATIBLE = {'utf-8', 'utf8', 'us-ascii', 'ascii'}


def parse_message(email_content: bytes) -> EmailMessage:
    """
    Parse raw email (MIME format) into a message object.

    Args:
        email_content: Raw email bytes as read from standard input

    Returns:
        EmailMessage parsed with the default (RFC 5322) policy

    Raises:
        NoHeadersError: If the input is empty or carries no headers

    Example:
        >>> msg = parse_message(b"From: sender@example.com\\r\\n\\r\\nHello World")
        >>> msg['From']
        'sender@example.com'
    """
    if not email_content or not email_content.strip():
        raise NoHeadersError("message is empty")

    msg = BytesParser(policy=policy.default).parsebytes(email_content)

    if not msg.keys():
        raise NoHeadersError("message has no headers")

    logger.info(f"Parsed message: {len(email_content):,} bytes, {len(msg.keys())} headers")
    return msg


def stringify_content_type(part: Message) -> Optional[str]:
    """
    Render the declared type of a part as "type/subtype".

    A declared type without a subtype renders as the bare type. Parameters
    such as charset are dropped.

    Args:
        part: Message part

    Returns:
        The content-type string, or None when the part declares no type

    Example:
        >>> stringify_content_type(part)  # Content-Type: text/html; charset=utf-8
        'text/html'
    """
    declared = part.get('Content-Type')
    if declared is None:
        return None

    value = str(declared).split(';', 1)[0].strip().lower()
    maintype, _, subtype = value.partition('/')
    maintype = maintype.strip()
    subtype = subtype.strip()

    if not maintype:
        return None
    if subtype:
        return f"{maintype}/{subtype}"
    return maintype


def _leaf_parts(part: Message) -> Iterator[Message]:
    """Yield non-multipart parts depth-first; attached messages are leaves."""
    if part.get_content_maintype() == 'multipart' and part.is_multipart():
        for subpart in part.get_payload():
            yield from _leaf_parts(subpart)
    else:
        yield part


def _is_body(part: Message) -> bool:
    return (
        part.get_content_type() in BODY_TYPES
        and part.get_content_disposition() != 'attachment'
    )


def _decode_body(part: Message, content_type: str) -> str:
    """
    Decode a body part's transfer-decoded bytes to text.

    Raises:
        InvalidUtf8Error: If the bytes are not valid in their charset
    """
    payload = part.get_payload(decode=True) or b''
    charset = (part.get_content_charset() or 'utf-8').lower()

    if charset in _UTF8_COMPATIBLE:
        charset = 'utf-8'

    try:
        return payload.decode(charset)
    except (UnicodeDecodeError, LookupError) as e:
        logger.error(f"Failed to decode {content_type} body as {charset}: {e}")
        raise InvalidUtf8Error(
            f"{content_type} body is not valid {charset}",
            content_type=content_type,
        ) from e


def _source_linesep(msg: Message) -> str:
    """Line ending used by the message source, judged from its leaf payloads."""
    for part in msg.walk():
        payload = part.get_payload()
        if isinstance(payload, str) and '\r\n' in payload:
            return '\r\n'
    return '\n'


def _attachment_bytes(part: Message, linesep: str = '\n') -> bytes:
    if part.get_content_maintype() == 'message' and part.is_multipart():
        # Raw header source and source line endings, nothing refolded
        verbatim = policy.default.clone(refold_source='none', linesep=linesep)
        return part.get_payload(0).as_bytes(policy=verbatim)
    return part.get_payload(decode=True) or b''


def extract_attachment(part: Message, linesep: str = '\n') -> Attachment:
    """
    Build an attachment from a non-body part.

    The part's own content type is not inspected; every attachment goes out
    with the constant mimetype.

    Raises:
        AttachmentIssueError: If the part has no filename
    """
    filename = part.get_filename()
    if not filename:
        logger.error(f"Attachment of type {part.get_content_type()} has no filename")
        raise AttachmentIssueError("attachment is missing filename")

    return Attachment(filename=filename, content=_attachment_bytes(part, linesep))


def extract_body(part: Message) -> ContentEntry:
    """
    Build a content entry from a text or HTML body part.

    Raises:
        AttachmentIssueError: If the part declares no content type
        InvalidUtf8Error: If the body cannot be decoded
    """
    content_type = stringify_content_type(part)
    if content_type is None:
        kind = 'html' if part.get_content_type() == 'text/html' else 'plain text'
        raise AttachmentIssueError(f"presumed {kind} body missing content type")

    return ContentEntry(content_type=content_type, value=_decode_body(part, content_type))


def extract_content(msg: Message) -> Tuple[List[ContentEntry], List[Attachment]]:
    """
    Split a message into body entries and attachments.

    HTML bodies come first, then plain-text bodies, each group in part order.
    Attachments keep part order.

    Args:
        msg: Parsed message

    Returns:
        Tuple of (content entries, attachments)

    Raises:
        AttachmentIssueError: Attachment without filename, or body without type
        InvalidUtf8Error: Body bytes that cannot be decoded
    """
    html_parts: List[Message] = []
    text_parts: List[Message] = []
    attachments: List[Attachment] = []
    linesep = _source_linesep(msg)

    for part in _leaf_parts(msg):
        if _is_body(part):
            if part.get_content_type() == 'text/html':
                html_parts.append(part)
            else:
                text_parts.append(part)
        else:
            attachments.append(extract_attachment(part, linesep))

    contents = [extract_body(part) for part in html_parts + text_parts]

    logger.info(
        f"Extracted content: html={len(html_parts)}, text={len(text_parts)}, "
        f"attachments={len(attachments)}"
    )
    return contents, attachments
