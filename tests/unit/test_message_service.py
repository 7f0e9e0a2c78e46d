"""
Unit tests for portal messaging.

Run: pytest tests/unit/test_message_service.py -v
"""

import pytest
from unittest.mock import patch

from services.message_service import MessageService, preview, summarize_thread
from models.message import MessageCreate, ThreadCreate
from models.user import UserRole
from exceptions import CustomerNotFoundError, ThreadNotFoundError
from tests.conftest import make_user


@pytest.fixture
def customer():
    return make_user(UserRole.CLIENT, email="buyer@oakline.test")


@pytest.fixture
def mock_db_portal(mock_supabase):
    mock_supabase.set_table_data("customers", [{"id": "c1"}])
    with patch("services.message_service.get_supabase_client", return_value=mock_supabase):
        yield mock_supabase


class TestPreview:

    def test_short_content_unchanged(self):
        assert preview("Where is my order?") == "Where is my order?"

    def test_long_content_truncated(self):
        result = preview("x" * 150)

        assert result == "x" * 100 + "..."

    def test_exactly_one_hundred(self):
        assert preview("y" * 100) == "y" * 100

    def test_none(self):
        assert preview(None) is None


class TestSummarizeThread:

    def test_unread_counts_staff_only(self):
        summary = summarize_thread({
            "id": "t1",
            "subject": "Delivery",
            "messages": [
                {"sender_type": "staff", "read_at": None, "content": "Shipped", "created_at": "2025-01-02"},
                {"sender_type": "staff", "read_at": "2025-01-03", "content": "Any update?", "created_at": "2025-01-01"},
                {"sender_type": "customer", "read_at": None, "content": "Thanks!", "created_at": "2025-01-04"},
            ],
        })

        assert "messages" not in summary
        assert summary["unread_count"] == 1
        assert summary["last_message"] == "Thanks!"

    def test_thread_without_messages(self):
        summary = summarize_thread({"id": "t2", "messages": []})

        assert summary["unread_count"] == 0
        assert summary["last_message"] is None


class TestMessageService:

    def test_unknown_customer(self, mock_db_portal, customer):
        mock_db_portal.set_table_data("customers", [])

        with pytest.raises(CustomerNotFoundError):
            MessageService().list_threads(customer)

    def test_create_thread_posts_first_message(self, mock_db_portal, customer):
        result = MessageService().create_thread(
            customer, ThreadCreate(subject="Delivery date", message="When will it ship?")
        )

        thread = mock_db_portal.inserted["message_threads"][0]
        assert thread["status"] == "open"
        assert thread["customer_id"] == "c1"

        message = mock_db_portal.inserted["messages"][0]
        assert message["sender_type"] == "customer"
        assert message["sender_name"] == "buyer@oakline.test"
        assert result["first_message"]["content"] == "When will it ship?"

        assert [name for name, _ in mock_db_portal.rpc_calls] == ["log_activity", "create_notification"]

    def test_messages_of_foreign_thread(self, mock_db_portal, customer):
        with pytest.raises(ThreadNotFoundError):
            MessageService().get_messages(customer, "t-other")

    def test_get_messages_marks_staff_messages_read(self, mock_db_portal, customer):
        mock_db_portal.set_table_data("message_threads", [{"id": "t1", "subject": "Delivery", "status": "open"}])
        mock_db_portal.set_table_data("messages", [{"id": "m1", "sender_type": "staff"}])

        messages = MessageService().get_messages(customer, "t1")

        assert len(messages) == 1
        assert "read_at" in mock_db_portal.updated["messages"][0]

    def test_reply_reopens_resolved_thread(self, mock_db_portal, customer):
        mock_db_portal.set_table_data("message_threads", [{"id": "t1", "subject": "Delivery", "status": "resolved"}])

        MessageService().post_message(customer, "t1", MessageCreate(content="  One more thing  "))

        assert mock_db_portal.inserted["messages"][0]["content"] == "One more thing"
        assert mock_db_portal.updated["message_threads"][0]["status"] == "open"

    def test_reply_leaves_open_thread_status(self, mock_db_portal, customer):
        mock_db_portal.set_table_data("message_threads", [{"id": "t1", "subject": "Delivery", "status": "open"}])

        MessageService().post_message(customer, "t1", MessageCreate(content="Hello"))

        assert "status" not in mock_db_portal.updated["message_threads"][0]
