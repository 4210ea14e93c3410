"""Domain models for the quarry database layer."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import Enum


class SourceKind(str, Enum):
    NOTE = "NOTE"
    URL = "URL"


@dataclass
class Document:
    id: int
    source: SourceKind
    title: str
    url: str | None
    content: str
    created_at: str | None = None


@dataclass
class Citation:
    """A reference from an answer back to a retrieved chunk's source."""

    number: int
    title: str
    url: str | None
    source_type: str

    @classmethod
    def from_dict(cls, data: dict) -> Citation:
        return cls(
            number=int(data["number"]),
            title=str(data.get("title", "")),
            url=data.get("url"),
            source_type=str(data.get("source_type", "")),
        )


@dataclass
class Conversation:
    id: int
    title: str
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Message:
    id: int
    conversation_id: int
    role: str  # user | assistant
    content: str
    citations: list[Citation] = field(default_factory=list)
    created_at: str | None = None


@dataclass
class ConversationThread:
    """A conversation together with its messages, oldest first."""

    conversation: Conversation
    messages: list[Message] = field(default_factory=list)


def citations_to_json(citations: list[Citation]) -> str:
    return json.dumps([asdict(c) for c in citations])


def citations_from_json(raw: str | None) -> list[Citation]:
    if not raw:
        return []
    return [Citation.from_dict(item) for item in json.loads(raw)]
