"""
Content types exchanged with the generative model.

A request or response turn is a list of parts; each part is either text or
a binary blob. Model responses carry one or more candidates.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Union


@dataclass(frozen=True)
class Blob:
    data: bytes
    mime_type: str

    @property
    def subtype(self) -> str:
        """MIME subtype, e.g. "png" for "image/png"."""
        return self.mime_type.split(";")[0].split("/")[-1].strip()


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class BlobPart:
    blob: Blob


Part = Union[TextPart, BlobPart]


class Role(Enum):
    """Conversation roles (values are Bedrock Converse role names)."""
    USER = "user"
    MODEL = "assistant"


@dataclass
class Turn:
    role: Role
    parts: List[Part] = field(default_factory=list)


@dataclass
class Candidate:
    parts: List[Part] = field(default_factory=list)


@dataclass
class GenerateResponse:
    candidates: List[Candidate] = field(default_factory=list)


def build_parts(text: str, blobs: List[Blob]) -> List[Part]:
    """One text part (when non-empty) followed by one part per blob."""
    parts: List[Part] = []
    if text:
        parts.append(TextPart(text))
    parts.extend(BlobPart(blob) for blob in blobs)
    return parts
