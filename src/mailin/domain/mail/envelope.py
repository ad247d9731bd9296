"""Pydantic schemas for the parsed and delivered mail.

The webhook receives MailEnvelope serialized with its aliases (camelCase keys
such as ``messageId`` and ``fileName``).
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

PASS = "pass"
FAILED = "failed"


def verdict_label(passed: bool) -> str:
    """Render a boolean verdict the way the webhook expects it."""
    return PASS if passed else FAILED


@dataclass(frozen=True)
class AuthenticationResult:
    """Two independent verdicts, computed once per message."""
    dkim: bool
    spf: bool


@dataclass(frozen=True)
class LanguageCandidate:
    """One ranked guess from the language detector."""
    language: str
    confidence: float


class AttachmentMetadata(BaseModel):
    """Attachment description (content is not forwarded)"""
    model_config = ConfigDict(populate_by_name=True)

    file_name: Optional[str] = Field(None, alias="fileName")
    content_type: str = Field(..., alias="contentType")
    content_disposition: Optional[str] = Field(None, alias="contentDisposition")
    content_id: Optional[str] = Field(None, alias="contentId")
    length: int = Field(..., description="Decoded size in bytes")
    checksum: str = Field(..., description="MD5 of the decoded content (hex)")


class ParsedMail(BaseModel):
    """Decoded MIME message before the body policy is applied"""
    model_config = ConfigDict(populate_by_name=True)

    headers: Dict[str, Union[str, List[str]]] = Field(default_factory=dict)
    subject: Optional[str] = None
    from_: Optional[str] = Field(None, alias="from")
    to: Optional[str] = None
    cc: Optional[str] = None
    date: Optional[str] = None
    message_id: Optional[str] = Field(None, alias="messageId")
    text: Optional[str] = None
    html: Optional[str] = None
    attachments: List[AttachmentMetadata] = Field(default_factory=list)


class NormalizedMail(ParsedMail):
    """Parsed mail whose text and html bodies are always present"""
    text: str
    html: str


class MailEnvelope(NormalizedMail):
    """Finished envelope posted to the webhook"""
    dkim: str = Field(..., description="pass or failed")
    spf: str = Field(..., description="pass or failed")
    language: str = Field("", description="Detected language, empty if unknown")

    @classmethod
    def compose(
        cls,
        mail: NormalizedMail,
        auth: AuthenticationResult,
        language: str,
    ) -> "MailEnvelope":
        """Merge verdicts and detected language into the normalized mail."""
        return cls(
            **mail.model_dump(by_alias=True),
            dkim=verdict_label(auth.dkim),
            spf=verdict_label(auth.spf),
            language=language,
        )

    def to_payload(self) -> str:
        return self.model_dump_json(by_alias=True)
