"""Token-budgeted chunker — paragraph packing with sentence and token fallbacks.

Strategy:
- Split the text on blank lines into paragraphs.
- A paragraph within budget is packed whole; an oversized one is split into
  sentences (terminated by ``.``, ``!`` or ``?``; a trailing unterminated
  sentence is kept).
- Units are packed greedily into a buffer. Paragraph units are joined with a
  blank line, sentences of the same paragraph with a single space. The budget
  is checked against the joined text.
- A sentence that alone exceeds the budget is cut into budget-sized token
  slices. This is the only path that may cut mid-word.
"""

from __future__ import annotations

import re
from typing import Iterator

from quarry.ingest.tokenizer import TokenCounter

MAX_CHUNK_TOKENS = 500

_PARAGRAPH_SPLIT_RE = re.compile(r"\n[^\S\n]*\n")
_SENTENCE_RE = re.compile(r"[^.!?]*[.!?]+|[^.!?]+$")


class TokenChunker:
    """Split normalized text into chunks of at most ``max_tokens`` tokens.

    Args:
        counter: Token oracle used for counting and for the hard split.
        max_tokens: Token budget per chunk.
    """

    def __init__(self, counter: TokenCounter, max_tokens: int = MAX_CHUNK_TOKENS) -> None:
        if max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        self.counter = counter
        self.max_tokens = max_tokens

    def chunk(self, text: str) -> Iterator[str]:
        """Yield chunks of *text* in document order.

        The result is a generator and can be consumed once. Identical input
        always yields the identical sequence.
        """
        buffer = ""
        for paragraph in self.split_paragraphs(text):
            if self.counter.count(paragraph) <= self.max_tokens:
                units = [paragraph]
            else:
                units = self.split_sentences(paragraph)

            for position, unit in enumerate(units):
                if self.counter.count(unit) > self.max_tokens:
                    if buffer:
                        yield buffer
                        buffer = ""
                    yield from self._hard_split(unit)
                    continue

                if not buffer:
                    buffer = unit
                    continue

                separator = "\n\n" if position == 0 else " "
                candidate = f"{buffer}{separator}{unit}"
                if self.counter.count(candidate) > self.max_tokens:
                    yield buffer
                    buffer = unit
                else:
                    buffer = candidate

        if buffer:
            yield buffer

    @staticmethod
    def split_paragraphs(text: str) -> list[str]:
        """Split on blank lines; paragraphs are stripped, empty ones dropped."""
        return [p.strip() for p in _PARAGRAPH_SPLIT_RE.split(text) if p.strip()]

    @staticmethod
    def split_sentences(paragraph: str) -> list[str]:
        """Split *paragraph* after each run of terminal punctuation."""
        return [s.strip() for s in _SENTENCE_RE.findall(paragraph) if s.strip()]

    def _hard_split(self, text: str) -> Iterator[str]:
        tokens = self.counter.encode(text)
        for start in range(0, len(tokens), self.max_tokens):
            yield self.counter.decode(tokens[start : start + self.max_tokens])
