"""
Address resolution for From, To, Cc, Bcc and Reply-To headers.

Raw header values are parsed with the ``email`` package's header registry and
flattened into ``Address`` models. Group syntax ("Team: a@x, b@y;") is
expanded into its members and the group label is dropped.
"""

import logging
from email import errors as email_errors
from email import policy
from email.headerregistry import AddressHeader
from typing import List, Optional

from domain.errors import InvalidFromError, MissingHeaderError, TooManyHeadersError
from domain.models import Address
from services.headers import ReservedHeader

logger = logging.getLogger(__name__)


def _parse(header: ReservedHeader, raw: str) -> AddressHeader:
    """
    Parse a raw value into a structured address header.

    Raises:
        ValueError: If the value does not parse as an address header
    """
    try:
        parsed = policy.default.header_factory(header.display_name, raw)
    except (email_errors.HeaderParseError, IndexError, ValueError) as e:
        raise ValueError(f"{header.display_name} value {raw!r} is not an address list: {e}") from e

    if not isinstance(parsed, AddressHeader):
        raise ValueError(f"{header.display_name} value {raw!r} is not an address list")
    return parsed


def _to_address(header: ReservedHeader, mailbox) -> Address:
    # headerregistry renders an empty mailbox as "<>"
    if not mailbox.username:
        raise MissingHeaderError(
            f"{header.display_name} contains an address without an email",
            header=header.display_name,
        )
    return Address(email=mailbox.addr_spec, name=mailbox.display_name or None)


def flatten_addresses(header: ReservedHeader, values: List[str]) -> List[Address]:
    """
    Flatten every address in the given header values, in order.

    Args:
        header: Which address header the values came from
        values: Raw header values (a header may repeat)

    Returns:
        List of addresses with groups expanded

    Raises:
        MissingHeaderError: If a value does not parse or an entry has no email
    """
    addresses: List[Address] = []
    for raw in values:
        try:
            parsed = _parse(header, raw)
        except ValueError as e:
            logger.error(str(e))
            raise MissingHeaderError(str(e), header=header.display_name) from e

        for group in parsed.groups:
            addresses.extend(_to_address(header, mailbox) for mailbox in group.addresses)
    return addresses


def resolve_from(values: Optional[List[str]]) -> Address:
    """
    Resolve the single sender.

    Raises:
        InvalidFromError: If From is missing, empty, a group, a list of more
            than one address, or an address without an email
    """
    if not values:
        raise InvalidFromError("'From' address missing")

    mailboxes = []
    for raw in values:
        try:
            parsed = _parse(ReservedHeader.FROM, raw)
        except ValueError as e:
            raise InvalidFromError(f"'From' header does not parse as an address: {raw!r}") from e

        for group in parsed.groups:
            if group.display_name is not None:
                logger.error(f"looking for single From address, got group: {group.display_name!r}")
                raise InvalidFromError("'From' address is a group. this is unsupported")
            mailboxes.extend(group.addresses)

    if len(mailboxes) > 1:
        raise InvalidFromError(
            "'From' address is a list of addresses. this is unsupported. supply only a single address"
        )
    if not mailboxes:
        raise InvalidFromError("'From' header appears empty")

    mailbox = mailboxes[0]
    if not mailbox.username:
        raise InvalidFromError("'From' header appears to be missing an email address")
    return Address(email=mailbox.addr_spec, name=mailbox.display_name or None)


def resolve_reply_to(values: Optional[List[str]]) -> Optional[Address]:
    """
    Resolve the optional reply-to address.

    Raises:
        TooManyHeadersError: If more than one address is present
    """
    if values is None:
        return None

    addresses = flatten_addresses(ReservedHeader.REPLY_TO, values)
    if len(addresses) > 1:
        raise TooManyHeadersError("should only have one Reply-To address!", header="Reply-To")
    return addresses[0] if addresses else None


def resolve_recipients(values: Optional[List[str]]) -> List[Address]:
    """
    Resolve the To recipients.

    Raises:
        MissingHeaderError: If there is no To header or it yields no address
    """
    if values is None:
        raise MissingHeaderError("No recipient!!", header="To")

    addresses = flatten_addresses(ReservedHeader.TO, values)
    if not addresses:
        raise MissingHeaderError("'To' header has no addresses", header="To")
    return addresses


def resolve_optional(header: ReservedHeader, values: Optional[List[str]]) -> Optional[List[Address]]:
    """Resolve Cc or Bcc; None when the header is absent."""
    if values is None:
        return None
    return flatten_addresses(header, values)
