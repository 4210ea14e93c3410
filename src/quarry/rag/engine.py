"""Retrieval & answer engine — one question in, one cited answer out.

Per call:
  conversation (new or existing) → record user turn → embed + retrieve →
  filter → (fixed "no relevant information" answer | prompt + complete) →
  extract citations and renumber the answer's markers → record assistant
  turn → return.

When nothing survives filtering the language model is not called. Any
failure after the conversation is resolved yields ``Answer(success=False)``
carrying the conversation id; a provider outage is never reported as the
"no relevant information" answer.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from quarry.db.models import Citation, Conversation, ConversationThread
from quarry.db.repository import Repository
from quarry.rag.assembler import SYSTEM_PROMPT, build_prompt
from quarry.rag.citations import extract_citations, renumber_markers
from quarry.rag.llm_client import Completer
from quarry.rag.retriever import Retriever

NO_RELEVANT_INFO_ANSWER = (
    "I couldn't find any relevant information in your saved content to answer that question."
)
NO_RESPONSE_ANSWER = "No response generated."
CONVERSATION_TITLE_LENGTH = 50


@dataclass
class Answer:
    success: bool
    answer: str = ""
    citations: list[Citation] = field(default_factory=list)
    conversation_id: int | None = None
    message: str = ""


class ConversationNotFound(LookupError):
    """Raised when a conversation id does not exist."""


class AnswerEngine:
    """Answer questions over the indexed content, recording every turn.

    Args:
        repo:      Relational persistence for conversations and messages.
        retriever: Embeds the question and returns filtered context chunks.
        completer: Language-model completion client.
    """

    def __init__(self, repo: Repository, retriever: Retriever, completer: Completer) -> None:
        self._repo = repo
        self._retriever = retriever
        self._completer = completer

    async def answer_question(
        self, question: str, conversation_id: int | None = None
    ) -> Answer:
        """Answer *question*, in conversation *conversation_id* or a new one. Never raises."""
        question = question.strip()
        if not question:
            return Answer(
                success=False,
                conversation_id=conversation_id,
                message="Question must not be empty",
            )

        try:
            conversation = await self._resolve_conversation(question, conversation_id)
        except ConversationNotFound as exc:
            return Answer(success=False, message=str(exc))
        except Exception as exc:
            logger.exception("Could not open conversation")
            return Answer(
                success=False,
                conversation_id=conversation_id,
                message=str(exc) or exc.__class__.__name__,
            )

        try:
            return await self._answer(conversation, question)
        except Exception as exc:
            logger.exception("Failed to answer question in conversation {}", conversation.id)
            return Answer(
                success=False,
                conversation_id=conversation.id,
                message=str(exc) or exc.__class__.__name__,
            )

    async def get_conversation(self, conversation_id: int) -> ConversationThread | None:
        """Return the conversation and its messages (oldest first), or None."""
        conversation = await self._repo.get_conversation(conversation_id)
        if conversation is None:
            return None
        messages = await self._repo.list_messages(conversation_id)
        return ConversationThread(conversation=conversation, messages=messages)

    async def list_conversations(self) -> list[Conversation]:
        """Return all conversations, most recently updated first."""
        return await self._repo.list_conversations()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _resolve_conversation(
        self, question: str, conversation_id: int | None
    ) -> Conversation:
        if conversation_id is None:
            conversation = await self._repo.create_conversation(
                title=question[:CONVERSATION_TITLE_LENGTH]
            )
            logger.debug("Created conversation {}", conversation.id)
            return conversation

        conversation = await self._repo.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFound(f"Conversation {conversation_id} not found")
        return conversation

    async def _answer(self, conversation: Conversation, question: str) -> Answer:
        await self._repo.add_message(conversation.id, "user", question)
        await self._repo.touch_conversation(
            conversation.id, title=question[:CONVERSATION_TITLE_LENGTH]
        )

        chunks = await self._retriever.retrieve(question)
        if not chunks:
            logger.info("No relevant chunks for question in conversation {}", conversation.id)
            answer_text = NO_RELEVANT_INFO_ANSWER
            citations: list[Citation] = []
        else:
            completion = await self._completer.complete(
                SYSTEM_PROMPT, build_prompt(question, chunks)
            )
            answer_text = (completion or "").strip() or NO_RESPONSE_ANSWER
            citations = extract_citations(answer_text, chunks)
            answer_text = renumber_markers(answer_text, chunks)
            logger.info(
                "Answered from {} chunks with {} citations", len(chunks), len(citations)
            )

        await self._repo.add_message(conversation.id, "assistant", answer_text, citations)
        await self._repo.touch_conversation(conversation.id)

        return Answer(
            success=True,
            answer=answer_text,
            citations=citations,
            conversation_id=conversation.id,
        )
