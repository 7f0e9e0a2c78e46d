"""
Client service for CRUD operations.

The clients table uses its own column names (client_id, client_name,
contact_name, credit_terms); the dashboard sees camelCase. Both directions
of the mapping live here.
"""

from datetime import datetime
from typing import Optional
import structlog

from config import get_supabase_client
from exceptions import ClientNotFoundError, DatabaseError
from models.client import ClientCreate, ClientUpdate, ClientResponse
from utils.filters import ilike_any

logger = structlog.get_logger(__name__)


# Frontend field -> clients column
FIELD_TO_COLUMN = {
    "name": "client_name",
    "contactName": "contact_name",
    "email": "email",
    "phone": "phone",
    "status": "status",
    "creditTerms": "credit_terms",
}

SEARCH_COLUMNS = ["client_name", "email", "contact_name"]


def row_to_client(row: dict) -> ClientResponse:
    """Map a clients row to the dashboard shape."""
    return ClientResponse(
        id=str(row["client_id"]),
        name=row.get("client_name"),
        contactName=row.get("contact_name"),
        email=row.get("email"),
        phone=row.get("phone"),
        status=row.get("status"),
        creditTerms=row.get("credit_terms"),
        createdAt=row.get("created_at"),
        updatedAt=row.get("updated_at"),
    )


def client_to_row(fields: dict) -> dict:
    """Map dashboard fields to clients columns, dropping unknown keys."""
    return {
        FIELD_TO_COLUMN[key]: value
        for key, value in fields.items()
        if key in FIELD_TO_COLUMN
    }


class ClientService:
    """
    Client business logic.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "clients"

    def get_all(
        self,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> list[ClientResponse]:
        """
        List clients.

        Args:
            search: Case-insensitive match on name, email or contact name
            limit: Page size
            offset: Rows to skip
        """
        logger.info("getting_clients", search=search, limit=limit, offset=offset)

        try:
            query = (
                self.db.table(self.table)
                .select("*")
                .range(offset, offset + limit - 1)
            )

            if search:
                query = query.or_(ilike_any(SEARCH_COLUMNS, search))

            result = query.execute()
            return [row_to_client(row) for row in result.data or []]

        except Exception as e:
            logger.error("get_clients_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def create(self, data: ClientCreate) -> ClientResponse:
        logger.info("creating_client", name=data.name)

        now = datetime.utcnow().isoformat()
        row = client_to_row(data.model_dump())
        row["created_at"] = now
        row["updated_at"] = now

        try:
            result = self.db.table(self.table).insert(row).execute()
            logger.info("client_created", client_id=result.data[0].get("client_id"))
            return row_to_client(result.data[0])

        except Exception as e:
            logger.error("create_client_failed", error=str(e))
            raise DatabaseError("insert", str(e))

    def update(self, data: ClientUpdate) -> ClientResponse:
        """Write only the fields present in the request."""
        fields = data.model_dump(exclude_unset=True)
        client_id = fields.pop("id")

        logger.info("updating_client", client_id=client_id, fields=list(fields.keys()))

        row = client_to_row(fields)
        row["updated_at"] = datetime.utcnow().isoformat()

        try:
            result = (
                self.db.table(self.table)
                .update(row)
                .eq("client_id", client_id)
                .execute()
            )
        except Exception as e:
            logger.error("update_client_failed", client_id=client_id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            raise ClientNotFoundError(client_id)

        return row_to_client(result.data[0])

    def delete(self, client_id: str) -> bool:
        logger.info("deleting_client", client_id=client_id)

        try:
            self.db.table(self.table).delete().eq("client_id", client_id).execute()
            return True

        except Exception as e:
            logger.error("delete_client_failed", client_id=client_id, error=str(e))
            raise DatabaseError("delete", str(e))


# Singleton instance
_client_service: Optional[ClientService] = None


def get_client_service() -> ClientService:
    """Get or create ClientService instance."""
    global _client_service
    if _client_service is None:
        _client_service = ClientService()
    return _client_service
