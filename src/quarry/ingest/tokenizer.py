"""Token-counting oracle used by the chunker."""

from __future__ import annotations

from typing import Protocol, Sequence

import tiktoken


class TokenCounter(Protocol):
    """Exact token accounting; ``decode(encode(text)) == text``."""

    def count(self, text: str) -> int: ...

    def encode(self, text: str) -> list[int]: ...

    def decode(self, tokens: Sequence[int]) -> str: ...


class TiktokenCounter:
    """TokenCounter backed by a tiktoken encoding (default ``cl100k_base``)."""

    def __init__(self, encoding: str = "cl100k_base") -> None:
        self.encoding_name = encoding
        self._encoding = tiktoken.get_encoding(encoding)

    def count(self, text: str) -> int:
        return len(self._encoding.encode(text, disallowed_special=()))

    def encode(self, text: str) -> list[int]:
        return self._encoding.encode(text, disallowed_special=())

    def decode(self, tokens: Sequence[int]) -> str:
        return self._encoding.decode(list(tokens))
