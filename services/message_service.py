"""
Customer portal messaging.

A portal user is mapped to their customers row by email. Threads and
messages are only visible to the customer that owns them.
"""

from datetime import datetime
from typing import Optional
import structlog

from config import get_supabase_client
from exceptions import CustomerNotFoundError, DatabaseError, ThreadNotFoundError
from models.message import MessageCreate, ThreadCreate
from models.user import UserContext

logger = structlog.get_logger(__name__)


PREVIEW_LENGTH = 100


def preview(content: Optional[str]) -> Optional[str]:
    """First 100 characters, with '...' when truncated."""
    if content is None:
        return None
    if len(content) > PREVIEW_LENGTH:
        return content[:PREVIEW_LENGTH] + "..."
    return content


def summarize_thread(thread: dict) -> dict:
    """Replace the embedded messages with unread_count and last_message."""
    messages = thread.get("messages") or []

    unread = sum(
        1 for m in messages
        if m.get("sender_type") == "staff" and not m.get("read_at")
    )
    latest = max(messages, key=lambda m: m.get("created_at") or "", default=None)

    summary = {k: v for k, v in thread.items() if k != "messages"}
    summary["unread_count"] = unread
    summary["last_message"] = preview(latest.get("content")) if latest else None
    return summary


class MessageService:
    """
    Portal message threads for the signed-in customer.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.threads_table = "message_threads"
        self.messages_table = "messages"

    def _customer_id(self, user: UserContext) -> str:
        try:
            result = (
                self.db.table("customers")
                .select("id")
                .eq("email", user.email)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("portal_customer_lookup_failed", error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise CustomerNotFoundError(user.email)
        return result.data[0]["id"]

    def _owned_thread(self, thread_id: str, customer_id: str) -> dict:
        try:
            result = (
                self.db.table(self.threads_table)
                .select("id, subject, status")
                .eq("id", thread_id)
                .eq("customer_id", customer_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("thread_lookup_failed", thread_id=thread_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise ThreadNotFoundError(thread_id)
        return result.data[0]

    def _record(self, customer_id: str, activity: dict, notification: dict) -> None:
        """Activity log and staff notification via database functions."""
        try:
            self.db.rpc("log_activity", {"p_customer_id": customer_id, **activity}).execute()
            self.db.rpc("create_notification", {
                "p_customer_id": customer_id,
                "p_category": "system",
                "p_priority": "normal",
                **notification,
            }).execute()
        except Exception as e:
            logger.warning("portal_activity_log_failed", customer_id=customer_id, error=str(e))

    def list_threads(self, user: UserContext) -> list[dict]:
        """Threads of the caller, most recent activity first."""
        customer_id = self._customer_id(user)

        try:
            result = (
                self.db.table(self.threads_table)
                .select(
                    "*, order:orders(order_number), "
                    "messages(id, content, sender_type, sender_name, read_at, created_at)"
                )
                .eq("customer_id", customer_id)
                .order("last_message_at", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error("list_threads_failed", customer_id=customer_id, error=str(e))
            raise DatabaseError("select", str(e))

        return [summarize_thread(thread) for thread in result.data or []]

    def create_thread(self, user: UserContext, data: ThreadCreate) -> dict:
        """
        Open a thread and post its first customer message.

        Returns:
            Dict with thread and first_message
        """
        customer_id = self._customer_id(user)
        now = datetime.utcnow().isoformat()

        logger.info("creating_thread", customer_id=customer_id, priority=data.priority)

        try:
            thread = self.db.table(self.threads_table).insert({
                "customer_id": customer_id,
                "order_id": data.order_id,
                "subject": data.subject,
                "status": "open",
                "priority": data.priority,
                "last_message_at": now,
            }).execute().data[0]

            first_message = self.db.table(self.messages_table).insert({
                "thread_id": thread["id"],
                "sender_type": "customer",
                "sender_id": customer_id,
                "sender_name": user.email or "Customer",
                "sender_email": user.email,
                "content": data.message,
            }).execute().data[0]

        except Exception as e:
            logger.error("create_thread_failed", customer_id=customer_id, error=str(e))
            raise DatabaseError("insert", str(e))

        self._record(
            customer_id,
            {
                "p_activity_type": "message_sent",
                "p_entity_type": "message",
                "p_entity_id": thread["id"],
                "p_description": f"Started new conversation: {data.subject}",
                "p_metadata": {"thread_id": thread["id"], "order_id": data.order_id, "priority": data.priority},
            },
            {
                "p_type": "new_message_thread",
                "p_title": "New message thread created",
                "p_message": f"Customer started a new conversation: {data.subject}",
                "p_metadata": {"thread_id": thread["id"], "subject": data.subject},
            },
        )

        logger.info("thread_created", thread_id=thread["id"])
        return {"thread": thread, "first_message": first_message}

    def get_messages(self, user: UserContext, thread_id: str) -> list[dict]:
        """
        Messages of a thread, oldest first. Unread staff messages are
        marked read.

        Raises:
            ThreadNotFoundError: Thread missing or owned by someone else
        """
        customer_id = self._customer_id(user)
        self._owned_thread(thread_id, customer_id)

        try:
            messages = (
                self.db.table(self.messages_table)
                .select("*")
                .eq("thread_id", thread_id)
                .order("created_at")
                .execute()
            ).data or []

            (
                self.db.table(self.messages_table)
                .update({"read_at": datetime.utcnow().isoformat()})
                .eq("thread_id", thread_id)
                .eq("sender_type", "staff")
                .is_("read_at", "null")
                .execute()
            )

        except Exception as e:
            logger.error("get_messages_failed", thread_id=thread_id, error=str(e))
            raise DatabaseError("select", str(e))

        return messages

    def post_message(self, user: UserContext, thread_id: str, data: MessageCreate) -> dict:
        """
        Add a customer message. A resolved thread is reopened.
        """
        customer_id = self._customer_id(user)
        thread = self._owned_thread(thread_id, customer_id)
        now = datetime.utcnow().isoformat()

        try:
            message = self.db.table(self.messages_table).insert({
                "thread_id": thread_id,
                "sender_type": "customer",
                "sender_id": customer_id,
                "sender_name": user.email or "Customer",
                "sender_email": user.email,
                "content": data.content,
                "attachments": data.attachments,
            }).execute().data[0]

            thread_updates = {"last_message_at": now}
            if thread.get("status") == "resolved":
                thread_updates["status"] = "open"

            self.db.table(self.threads_table).update(thread_updates).eq("id", thread_id).execute()

        except Exception as e:
            logger.error("post_message_failed", thread_id=thread_id, error=str(e))
            raise DatabaseError("insert", str(e))

        self._record(
            customer_id,
            {
                "p_activity_type": "message_sent",
                "p_entity_type": "message",
                "p_entity_id": message["id"],
                "p_description": f"Sent message in thread: {thread.get('subject')}",
                "p_metadata": {"thread_id": thread_id, "message_length": len(data.content)},
            },
            {
                "p_type": "new_message",
                "p_title": "New message received",
                "p_message": f"Customer sent a message in: {thread.get('subject')}",
                "p_metadata": {"thread_id": thread_id, "message_id": message["id"]},
            },
        )

        logger.info("message_posted", thread_id=thread_id, message_id=message["id"])
        return message


# Singleton instance
_message_service: Optional[MessageService] = None


def get_message_service() -> MessageService:
    """Get or create MessageService instance."""
    global _message_service
    if _message_service is None:
        _message_service = MessageService()
    return _message_service
