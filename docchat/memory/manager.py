"""Conversation memory manager.

Keeps chat sessions and their messages in process memory for multi-turn
chat. Nothing survives a restart.
"""
import uuid
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional
import structlog

from docchat import config

logger = structlog.get_logger()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConversationManager:
    """Manages chat sessions and conversation history."""

    def __init__(self, context_window_size: int = None):
        """Initialize the conversation manager.

        Args:
            context_window_size: Number of recent messages to include in context
        """
        self.context_window_size = context_window_size or config.CONTEXT_WINDOW_SIZE
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._messages: Dict[str, List[Dict[str, Any]]] = {}

    def create_session(self, title: Optional[str] = None) -> str:
        """Create a new chat session.

        Args:
            title: Optional title for the session

        Returns:
            The created session ID
        """
        session_id = str(uuid.uuid4())
        self._sessions[session_id] = {
            "id": session_id,
            "title": title,
            "created_at": _now(),
        }
        self._messages[session_id] = []
        logger.info("conversation_session_created", session_id=session_id)
        return session_id

    def has_session(self, session_id: str) -> bool:
        return session_id in self._sessions

    def add_message(
        self,
        session_id: str,
        role: str,
        content: str,
        sources: Optional[List[Dict[str, Any]]] = None,
    ) -> int:
        """Add a message to a session.

        Args:
            session_id: The session to add the message to
            role: Message role ('user' or 'assistant')
            content: The message content
            sources: Optional list of source chunks used for RAG

        Returns:
            Position of the message within the session

        Raises:
            KeyError: If the session does not exist
        """
        messages = self._messages[session_id]
        messages.append(
            {
                "role": role,
                "content": content,
                "sources": sources or [],
                "created_at": _now(),
            }
        )
        message_id = len(messages) - 1

        if role == "user" and not self._sessions[session_id]["title"]:
            self._sessions[session_id]["title"] = self._make_title(content)

        logger.info(
            "conversation_message_added",
            session_id=session_id,
            role=role,
            message_id=message_id,
        )
        return message_id

    def get_all_messages(self, session_id: str) -> List[Dict[str, Any]]:
        """Get all messages for a session in chronological order."""
        return list(self._messages.get(session_id, []))

    def format_conversation_history(self, session_id: str) -> List[Dict[str, str]]:
        """Format recent conversation history for LLM context.

        Args:
            session_id: The session ID to format history for

        Returns:
            List of message dictionaries with 'role' and 'content' keys
        """
        messages = self._messages.get(session_id, [])[-self.context_window_size :]

        # Only role and content, no sources or metadata
        return [{"role": m["role"], "content": m["content"]} for m in messages]

    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Get session details, or None if not found."""
        session = self._sessions.get(session_id)
        return dict(session) if session else None

    def list_sessions(self) -> List[Dict[str, Any]]:
        """List all sessions, most recent first."""
        return [dict(s) for s in reversed(list(self._sessions.values()))]

    def delete_session(self, session_id: str) -> bool:
        """Delete a session and all its messages.

        Returns:
            True if deleted, False if not found
        """
        if session_id not in self._sessions:
            return False
        del self._sessions[session_id]
        del self._messages[session_id]
        logger.info("conversation_session_deleted", session_id=session_id)
        return True

    @staticmethod
    def _make_title(first_message: str) -> str:
        # A concise title from the first message (max 50 chars)
        title = first_message[:50]
        if len(first_message) > 50:
            title = title.rsplit(" ", 1)[0] + "..."
        return title
