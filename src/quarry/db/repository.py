"""Repository pattern for quarry's relational data.

Single interface for: documents, conversations, messages. Every method is a
coroutine; the SQL itself runs in a worker thread via AsyncConnection.
"""

from __future__ import annotations

import sqlite3

from quarry.db.connection import AsyncConnection
from quarry.db.models import (
    Citation,
    Conversation,
    Document,
    Message,
    SourceKind,
    citations_from_json,
    citations_to_json,
)

_DOCUMENT_COLUMNS = "id, source, title, url, content, created_at"
_CONVERSATION_COLUMNS = "id, title, created_at, updated_at"
_MESSAGE_COLUMNS = "id, conversation_id, role, content, citations, created_at"


class Repository:
    """Data access layer for documents, conversations and messages.

    Wraps an AsyncConnection owned by the caller; the connection must be
    closed after use.
    """

    def __init__(self, db: AsyncConnection) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def add_document(
        self, source: SourceKind, title: str, url: str | None, content: str
    ) -> Document:
        """Insert a document and return it with its generated id."""

        def _insert(conn: sqlite3.Connection) -> Document:
            cur = conn.execute(
                "INSERT INTO documents (source, title, url, content) VALUES (?, ?, ?, ?)",
                (source.value, title, url, content),
            )
            conn.commit()
            row = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?", (cur.lastrowid,)
            ).fetchone()
            return _row_to_document(row)

        return await self._db.run(_insert)

    async def get_document(self, document_id: int) -> Document | None:
        """Return a document by id, or None if not found."""

        def _get(conn: sqlite3.Connection) -> Document | None:
            row = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
            return _row_to_document(row) if row else None

        return await self._db.run(_get)

    async def delete_document(self, document_id: int) -> bool:
        """Delete a document row. Returns True if it existed."""

        def _delete(conn: sqlite3.Connection) -> bool:
            cur = conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            conn.commit()
            return cur.rowcount > 0

        return await self._db.run(_delete)

    async def list_documents(self, source: SourceKind | None = None) -> list[Document]:
        """Return documents newest first, optionally filtered by source kind."""

        def _list(conn: sqlite3.Connection) -> list[Document]:
            if source is None:
                rows = conn.execute(
                    f"SELECT {_DOCUMENT_COLUMNS} FROM documents ORDER BY created_at DESC, id DESC"
                ).fetchall()
            else:
                rows = conn.execute(
                    f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE source = ? "
                    "ORDER BY created_at DESC, id DESC",
                    (source.value,),
                ).fetchall()
            return [_row_to_document(r) for r in rows]

        return await self._db.run(_list)

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def create_conversation(self, title: str = "") -> Conversation:
        def _insert(conn: sqlite3.Connection) -> Conversation:
            cur = conn.execute("INSERT INTO conversations (title) VALUES (?)", (title,))
            conn.commit()
            row = conn.execute(
                f"SELECT {_CONVERSATION_COLUMNS} FROM conversations WHERE id = ?",
                (cur.lastrowid,),
            ).fetchone()
            return _row_to_conversation(row)

        return await self._db.run(_insert)

    async def get_conversation(self, conversation_id: int) -> Conversation | None:
        def _get(conn: sqlite3.Connection) -> Conversation | None:
            row = conn.execute(
                f"SELECT {_CONVERSATION_COLUMNS} FROM conversations WHERE id = ?",
                (conversation_id,),
            ).fetchone()
            return _row_to_conversation(row) if row else None

        return await self._db.run(_get)

    async def list_conversations(self) -> list[Conversation]:
        """Return all conversations, most recently updated first."""

        def _list(conn: sqlite3.Connection) -> list[Conversation]:
            rows = conn.execute(
                f"SELECT {_CONVERSATION_COLUMNS} FROM conversations "
                "ORDER BY updated_at DESC, id DESC"
            ).fetchall()
            return [_row_to_conversation(r) for r in rows]

        return await self._db.run(_list)

    async def touch_conversation(self, conversation_id: int, title: str | None = None) -> None:
        """Bump updated_at; set *title* only if the conversation has none yet."""

        def _update(conn: sqlite3.Connection) -> None:
            conn.execute(
                """
                UPDATE conversations
                SET updated_at = strftime('%Y-%m-%d %H:%M:%f', 'now'),
                    title = CASE WHEN title = '' AND ? IS NOT NULL THEN ? ELSE title END
                WHERE id = ?
                """,
                (title, title, conversation_id),
            )
            conn.commit()

        await self._db.run(_update)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def add_message(
        self,
        conversation_id: int,
        role: str,
        content: str,
        citations: list[Citation] | None = None,
    ) -> Message:
        """Append a message to a conversation. Messages are never updated."""

        def _insert(conn: sqlite3.Connection) -> Message:
            cur = conn.execute(
                "INSERT INTO messages (conversation_id, role, content, citations) "
                "VALUES (?, ?, ?, ?)",
                (conversation_id, role, content, citations_to_json(citations or [])),
            )
            conn.commit()
            row = conn.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = ?", (cur.lastrowid,)
            ).fetchone()
            return _row_to_message(row)

        return await self._db.run(_insert)

    async def list_messages(self, conversation_id: int) -> list[Message]:
        """Return the messages of a conversation in insertion order."""

        def _list(conn: sqlite3.Connection) -> list[Message]:
            rows = conn.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE conversation_id = ? ORDER BY id",
                (conversation_id,),
            ).fetchall()
            return [_row_to_message(r) for r in rows]

        return await self._db.run(_list)


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        source=SourceKind(row["source"]),
        title=row["title"],
        url=row["url"],
        content=row["content"],
        created_at=row["created_at"],
    )


def _row_to_conversation(row: sqlite3.Row) -> Conversation:
    return Conversation(
        id=row["id"],
        title=row["title"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        conversation_id=row["conversation_id"],
        role=row["role"],
        content=row["content"],
        citations=citations_from_json(row["citations"]),
        created_at=row["created_at"],
    )
