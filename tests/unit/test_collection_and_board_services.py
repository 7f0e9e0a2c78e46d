"""
Unit tests for product collections and design boards.

Run: pytest tests/unit/test_collection_and_board_services.py -v
"""

import pytest
from unittest.mock import patch

from services.collection_service import CollectionService, row_to_collection
from services.design_board_service import DesignBoardService
from models.collection import CollectionCreate, CollectionUpdate
from models.design_board import DEFAULT_BOARD_SETTINGS, BoardCreate, BoardParticipantInvite
from models.user import UserRole
from exceptions import CollectionNotFoundError, DatabaseError, InvalidChoiceError
from tests.conftest import make_user


class PostgrestError(Exception):
    """Stand-in for a client error carrying a Postgres code."""

    def __init__(self, code, message):
        super().__init__(message)
        self.code = code


# ===================
# COLLECTIONS
# ===================

@pytest.fixture
def mock_db_collections(mock_supabase):
    with patch("services.collection_service.get_supabase_client", return_value=mock_supabase):
        yield mock_supabase


class TestRowToCollection:

    def test_designer_from_metadata(self):
        collection = row_to_collection({
            "id": 7,
            "name": "Harbor",
            "prefix": "HB",
            "display_order": 3,
            "metadata": {"designer": "Ana Ruiz"},
        })

        assert collection.id == "7"
        assert collection.designer == "Ana Ruiz"
        assert collection.display_order == 3

    def test_display_defaults(self):
        collection = row_to_collection({"id": "c1", "name": "Plain", "display_order": None, "is_active": None})

        assert collection.prefix == ""
        assert collection.description == ""
        assert collection.image_url == ""
        assert collection.display_order == 1
        assert collection.is_active is True
        assert collection.designer == ""

    def test_explicitly_inactive(self):
        assert row_to_collection({"id": "c1", "is_active": False}).is_active is False


class TestCollectionService:

    def test_get_all(self, mock_db_collections):
        mock_db_collections.set_table_data("collections", [
            {"id": "c1", "name": "Harbor", "display_order": 1},
            {"id": "c2", "name": "Summit", "display_order": 2},
        ])

        collections = CollectionService().get_all()

        assert [c.name for c in collections] == ["Harbor", "Summit"]

    def test_create_defaults_designer_to_caller(self, mock_db_collections):
        collection = CollectionService().create(
            CollectionCreate(name="Harbor", prefix="HB"), created_by="ana@oak.test"
        )

        row = mock_db_collections.inserted["collections"][0]
        assert row["metadata"] == {"designer": "ana@oak.test"}
        assert "designer" not in row
        assert row["display_order"] == 1
        assert row["is_active"] is True
        assert collection.designer == "ana@oak.test"

    def test_create_keeps_named_designer(self, mock_db_collections):
        CollectionService().create(
            CollectionCreate(name="Harbor", designer="Lee Park"), created_by="ana@oak.test"
        )

        assert mock_db_collections.inserted["collections"][0]["metadata"] == {"designer": "Lee Park"}

    def test_get_missing(self, mock_db_collections):
        with pytest.raises(CollectionNotFoundError):
            CollectionService().get_by_id("missing")

    def test_update_writes_only_provided_fields(self, mock_db_collections):
        mock_db_collections.set_table_data("collections", [{"id": "c1", "name": "Old", "metadata": {"designer": "Ana"}}])

        collection = CollectionService().update("c1", CollectionUpdate(name="New"))

        written = mock_db_collections.updated["collections"][0]
        assert written["name"] == "New"
        assert "metadata" not in written
        assert "display_order" not in written
        assert collection.designer == "Ana"

    def test_update_designer_rewrites_metadata(self, mock_db_collections):
        mock_db_collections.set_table_data("collections", [{"id": "c1", "name": "Harbor"}])

        collection = CollectionService().update("c1", CollectionUpdate(designer="Lee Park"))

        assert mock_db_collections.updated["collections"][0]["metadata"] == {"designer": "Lee Park"}
        assert collection.designer == "Lee Park"

    def test_update_missing(self, mock_db_collections):
        with pytest.raises(CollectionNotFoundError):
            CollectionService().update("missing", CollectionUpdate(name="X"))

    def test_delete(self, mock_db_collections):
        assert CollectionService().delete("c1") is True
        assert mock_db_collections.deleted == ["collections"]

    def test_database_error(self, mock_db_collections):
        mock_db_collections.set_table_error("collections", RuntimeError("boom"))

        with pytest.raises(DatabaseError):
            CollectionService().get_all()


# ===================
# DESIGN BOARDS
# ===================

@pytest.fixture
def mock_db_boards(mock_supabase):
    with patch("services.design_board_service.get_supabase_client", return_value=mock_supabase):
        yield mock_supabase


class TestDesignBoardService:

    def test_list_counts_participants(self, mock_db_boards):
        mock_db_boards.set_table_data("design_boards", [
            {"id": "b1", "name": "Lobby", "board_permissions": [{"count": 3}]},
            {"id": "b2", "name": "Suite", "board_permissions": []},
        ])

        boards, table_exists = DesignBoardService().list_boards()

        assert table_exists is True
        assert [b["participants_count"] for b in boards] == [3, 0]
        assert "board_permissions" not in boards[0]

    def test_missing_table_lists_empty(self, mock_db_boards):
        mock_db_boards.set_table_error(
            "design_boards", PostgrestError("42P01", 'relation "design_boards" does not exist')
        )

        assert DesignBoardService().list_boards() == ([], False)

    def test_other_errors_raise(self, mock_db_boards):
        mock_db_boards.set_table_error("design_boards", RuntimeError("timeout"))

        with pytest.raises(DatabaseError):
            DesignBoardService().list_boards()

    def test_create_sets_default_settings(self, mock_db_boards):
        user = make_user(UserRole.EMPLOYEE)

        board = DesignBoardService().create_board(BoardCreate(name="Lobby", description="Ground floor"), user)

        row = mock_db_boards.inserted["design_boards"][0]
        assert row["settings"] == DEFAULT_BOARD_SETTINGS
        assert row["settings"]["gridSize"] == 20
        assert row["status"] == "active"
        assert row["created_by"] == user.id
        assert row["is_public"] is False
        assert row["is_template"] is False
        assert board["id"] == "test-uuid-123"

    def test_participants_tolerate_recursive_policy(self, mock_db_boards):
        mock_db_boards.set_table_error(
            "board_permissions", PostgrestError("42P17", "infinite recursion detected in policy")
        )

        assert DesignBoardService().list_participants("b1") == []

    def test_invite_participant(self, mock_db_boards):
        participant = DesignBoardService().invite_participant(
            "b1", BoardParticipantInvite(email="sam@oak.test", role="editor")
        )

        row = mock_db_boards.inserted["board_permissions"][0]
        assert row["board_id"] == "b1"
        assert row["user_email"] == "sam@oak.test"
        assert participant["role"] == "editor"

    def test_invite_unknown_role(self, mock_db_boards):
        with pytest.raises(InvalidChoiceError):
            DesignBoardService().invite_participant("b1", BoardParticipantInvite(email="sam@oak.test", role="boss"))
