"""Prompt assembly: numbered context block + grounded-answer instructions."""

from __future__ import annotations

from quarry.rag.retriever import RetrievedChunk

FALLBACK_SENTENCE = (
    "I don't have enough information in your saved content to answer that question."
)

SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions using only the "
    "provided context from the user's saved notes and web pages. "
    "Never use outside knowledge. Cite every supporting context entry with "
    "its bracketed number, for example [1] or [2]."
)

_PROMPT_TEMPLATE = """\
Answer the question using ONLY the numbered context below.

Rules:
- Cite the context entries that support each statement with their bracketed numbers, e.g. [1].
- Do not cite numbers that are not in the context.
- If the context does not contain the answer, reply exactly: "{fallback}"

Context:
{context}

Question: {question}

Answer:"""


def build_context(chunks: list[RetrievedChunk]) -> str:
    """Return one ``[n] <chunk text>`` line per chunk, numbered from 1."""
    return "\n".join(f"[{i}] {chunk.text}" for i, chunk in enumerate(chunks, start=1))


def build_prompt(question: str, chunks: list[RetrievedChunk]) -> str:
    """Compose the user prompt for *question* over *chunks*."""
    return _PROMPT_TEMPLATE.format(
        fallback=FALLBACK_SENTENCE,
        context=build_context(chunks),
        question=question.strip(),
    )
