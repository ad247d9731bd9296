"""MIME Parser for staged messages.

Decodes raw MIME into the ParsedMail schema: lower-cased headers, the text and
HTML bodies, and attachment metadata. Supports RFC 2047 encoded filenames and
nested multipart messages.
"""

import email.policy
import hashlib
import logging
from email.message import EmailMessage, Message
from email.parser import BytesFeedParser
from typing import AsyncIterator, Dict, List, Optional, Union

from ...domain.mail.envelope import AttachmentMetadata, ParsedMail
from ...domain.mail.ports.staging_store_port import StagingError

logger = logging.getLogger(__name__)


class MailParseError(Exception):
    """Raised when a staged message cannot be decoded."""
    pass


async def parse_mime_stream(chunks: AsyncIterator[bytes]) -> EmailMessage:
    """Feed a chunked message into the incremental parser.

    Args:
        chunks: Async iterator over the raw message bytes, in order

    Returns:
        EmailMessage: Parsed MIME message

    Raises:
        MailParseError: If MIME parsing fails
    """
    parser = BytesFeedParser(policy=email.policy.default)
    try:
        async for chunk in chunks:
            parser.feed(chunk)
        return parser.close()
    except StagingError:
        raise
    except Exception as e:
        logger.error(f"Failed to parse MIME stream: {e}")
        raise MailParseError(f"Invalid MIME message: {e}") from e


def extract_headers(msg: Message) -> Dict[str, Union[str, List[str]]]:
    """Collect headers with lower-cased names.

    Repeated headers (Received, DKIM-Signature, ...) become lists in
    arrival order.
    """
    headers: Dict[str, Union[str, List[str]]] = {}
    for name, value in msg.items():
        key = name.lower()
        value = str(value)
        if key not in headers:
            headers[key] = value
        elif isinstance(headers[key], list):
            headers[key].append(value)
        else:
            headers[key] = [headers[key], value]
    return headers


def _body_content(msg: EmailMessage, subtype: str) -> Optional[str]:
    part = msg.get_body(preferencelist=(subtype,))
    if part is None or part.get_content_type() != f"text/{subtype}":
        return None
    try:
        content = part.get_content()
    except (LookupError, UnicodeError) as e:
        # Unknown or lying charset
        logger.warning(f"Could not decode text/{subtype} body: {e}")
        payload = part.get_payload(decode=True) or b""
        content = payload.decode("utf-8", errors="replace")
    # Line breaks closing the part belong to the MIME framing, not the body
    return content.rstrip("\r\n")


def extract_bodies(msg: EmailMessage) -> Dict[str, Optional[str]]:
    """Return the text and HTML bodies, None where the message has none."""
    return {
        "text": _body_content(msg, "plain"),
        "html": _body_content(msg, "html"),
    }


def extract_attachments(msg: Message) -> List[AttachmentMetadata]:
    """Describe all file attachments of a MIME message.

    Walks the entire MIME tree. Skips:
    - Multipart containers
    - Body parts (no filename and not explicitly an attachment)

    Args:
        msg: Parsed email message

    Returns:
        List[AttachmentMetadata]: One entry per attachment
    """
    attachments = []

    for part in msg.walk():
        if part.get_content_maintype() == 'multipart':
            continue

        disposition = part.get_content_disposition()
        filename = part.get_filename()
        if not filename and disposition != 'attachment':
            continue

        content = part.get_payload(decode=True) or b""
        attachments.append(AttachmentMetadata(
            file_name=filename,
            content_type=part.get_content_type(),
            content_disposition=disposition,
            content_id=part.get('Content-ID'),
            length=len(content),
            checksum=hashlib.md5(content).hexdigest(),
        ))

        logger.debug(
            f"Found attachment: {filename} ({part.get_content_type()}, {len(content)} bytes)"
        )

    return attachments


def to_parsed_mail(msg: EmailMessage) -> ParsedMail:
    """Convert a parsed MIME message into the ParsedMail schema.

    Raises:
        MailParseError: If the message structure cannot be decoded
    """
    try:
        bodies = extract_bodies(msg)
        return ParsedMail(
            headers=extract_headers(msg),
            subject=_header(msg, 'Subject'),
            from_=_header(msg, 'From'),
            to=_header(msg, 'To'),
            cc=_header(msg, 'Cc'),
            date=_header(msg, 'Date'),
            message_id=_header(msg, 'Message-ID'),
            text=bodies["text"],
            html=bodies["html"],
            attachments=extract_attachments(msg),
        )
    except MailParseError:
        raise
    except Exception as e:
        logger.error(f"Failed to decode MIME structure: {e}")
        raise MailParseError(f"Invalid MIME structure: {e}") from e


def _header(msg: Message, name: str) -> Optional[str]:
    value = msg.get(name)
    return str(value) if value is not None else None


async def parse_staged_mail(chunks: AsyncIterator[bytes]) -> ParsedMail:
    """Parse a staged message streamed from the staging store.

    Raises:
        MailParseError: If the message cannot be decoded
    """
    msg = await parse_mime_stream(chunks)
    return to_parsed_mail(msg)
