"""
Product collection service.

Collections group products under a SKU prefix. The designer lives in
collections.metadata and is flattened into the response.
"""

from datetime import datetime
from typing import Optional
import structlog

from config import get_supabase_client
from exceptions import CollectionNotFoundError, DatabaseError
from models.collection import CollectionCreate, CollectionResponse, CollectionUpdate

logger = structlog.get_logger(__name__)


def row_to_collection(row: dict) -> CollectionResponse:
    """Map a collections row, filling display defaults for missing values."""
    metadata = row.get("metadata") or {}
    return CollectionResponse(
        id=str(row["id"]),
        name=row.get("name"),
        prefix=row.get("prefix") or "",
        description=row.get("description") or "",
        image_url=row.get("image_url") or "",
        display_order=row.get("display_order") or 1,
        is_active=row.get("is_active") is not False,
        designer=metadata.get("designer") or "",
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class CollectionService:
    """
    Collection business logic.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "collections"

    def get_all(self) -> list[CollectionResponse]:
        """Collections by display_order, unordered ones last."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .order("display_order", desc=False, nullsfirst=False)
                .execute()
            )
            return [row_to_collection(row) for row in result.data or []]

        except Exception as e:
            logger.error("get_collections_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_by_id(self, collection_id: str) -> CollectionResponse:
        """
        Raises:
            CollectionNotFoundError: No collection with that id
        """
        try:
            result = self.db.table(self.table).select("*").eq("id", collection_id).execute()
        except Exception as e:
            logger.error("get_collection_failed", collection_id=collection_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise CollectionNotFoundError(collection_id)
        return row_to_collection(result.data[0])

    def create(self, data: CollectionCreate, created_by: str) -> CollectionResponse:
        """
        Args:
            data: Collection fields
            created_by: Caller email; the designer when none is given
        """
        logger.info("creating_collection", name=data.name, prefix=data.prefix)

        now = datetime.utcnow().isoformat()
        row = data.model_dump(exclude={"designer"})
        row["metadata"] = {"designer": data.designer or created_by}
        row["created_at"] = now
        row["updated_at"] = now

        try:
            result = self.db.table(self.table).insert(row).execute()
            collection = row_to_collection(result.data[0])
            logger.info("collection_created", collection_id=collection.id)
            return collection

        except Exception as e:
            logger.error("create_collection_failed", error=str(e))
            raise DatabaseError("insert", str(e))

    def update(self, collection_id: str, data: CollectionUpdate) -> CollectionResponse:
        """
        Write only the fields present in the request. A new designer
        replaces the stored metadata block.

        Raises:
            CollectionNotFoundError: No collection with that id
        """
        updates = data.model_dump(exclude_unset=True)
        designer = updates.pop("designer", None)
        if designer is not None:
            updates["metadata"] = {"designer": designer}
        updates["updated_at"] = datetime.utcnow().isoformat()

        logger.info("updating_collection", collection_id=collection_id, fields=sorted(updates))

        try:
            result = (
                self.db.table(self.table)
                .update(updates)
                .eq("id", collection_id)
                .execute()
            )
        except Exception as e:
            logger.error("update_collection_failed", collection_id=collection_id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            raise CollectionNotFoundError(collection_id)

        return row_to_collection(result.data[0])

    def delete(self, collection_id: str) -> bool:
        logger.info("deleting_collection", collection_id=collection_id)

        try:
            self.db.table(self.table).delete().eq("id", collection_id).execute()
            return True

        except Exception as e:
            logger.error("delete_collection_failed", collection_id=collection_id, error=str(e))
            raise DatabaseError("delete", str(e))


# Singleton instance
_collection_service: Optional[CollectionService] = None


def get_collection_service() -> CollectionService:
    """Get or create CollectionService instance."""
    global _collection_service
    if _collection_service is None:
        _collection_service = CollectionService()
    return _collection_service
