"""
Task service for CRUD operations.

Some deployments have not created the tasks table yet; listing then
returns an empty result flagged tableExists=False instead of failing.
"""

from datetime import datetime
from typing import Optional
import structlog

from config import get_supabase_client
from exceptions import DatabaseError, TableMissingError, TaskNotFoundError
from models.task import TaskCreate, TaskUpdate, TaskFilters

logger = structlog.get_logger(__name__)


# Postgres "undefined_table" and PostgREST "relation not in schema cache"
MISSING_TABLE_CODES = ("42P01", "PGRST205")

# camelCase request field -> tasks column
FIELD_TO_COLUMN = {
    "title": "title",
    "description": "description",
    "status": "status",
    "priority": "priority",
    "assignedTo": "assigned_to",
    "dueDate": "due_date",
    "projectId": "project_id",
    "department": "department",
    "visibility": "visibility",
    "mentioned_users": "mentioned_users",
}


def is_missing_table(error: Exception) -> bool:
    """True when a client error says the table does not exist."""
    code = getattr(error, "code", None)
    if code in MISSING_TABLE_CODES:
        return True
    return any(c in str(error) for c in MISSING_TABLE_CODES)


class TaskService:
    """
    Task business logic.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "tasks"

    def get_all(self, filters: Optional[TaskFilters] = None) -> tuple[list[dict], bool]:
        """
        List tasks, newest first.

        Returns:
            Tuple of (tasks, table_exists)
        """
        filters = filters or TaskFilters()
        logger.info(
            "getting_tasks",
            status=filters.status,
            assigned_to=filters.assigned_to,
            priority=filters.priority
        )

        try:
            query = (
                self.db.table(self.table)
                .select("*")
                .order("created_at", desc=True)
            )

            # "all" means no filter
            if filters.status and filters.status != "all":
                query = query.eq("status", filters.status)
            if filters.assigned_to and filters.assigned_to != "all":
                query = query.eq("assigned_to", filters.assigned_to)
            if filters.priority and filters.priority != "all":
                query = query.eq("priority", filters.priority)

            result = query.execute()
            return result.data or [], True

        except Exception as e:
            if is_missing_table(e):
                logger.warning("tasks_table_missing")
                return [], False
            logger.error("get_tasks_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def create(self, data: TaskCreate, created_by: str) -> dict:
        """
        Create a task.

        Args:
            data: Task fields
            created_by: Caller email; also the default assignee
        """
        logger.info("creating_task", title=data.title)

        now = datetime.utcnow().isoformat()
        row = {
            "title": data.title,
            "description": data.description,
            "status": data.status or "todo",
            "priority": data.priority or "medium",
            "assigned_to": data.assignedTo or created_by,
            "created_by": created_by,
            "due_date": data.dueDate.isoformat() if data.dueDate else None,
            "project_id": data.projectId,
            "department": data.department or "admin",
            "visibility": data.visibility or "company",
            "mentioned_users": data.mentioned_users,
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = self.db.table(self.table).insert(row).execute()
            task = result.data[0]
            logger.info("task_created", task_id=task.get("id"))
            return task

        except Exception as e:
            if is_missing_table(e):
                raise TableMissingError(self.table)
            logger.error("create_task_failed", error=str(e))
            raise DatabaseError("insert", str(e))

    def update(self, data: TaskUpdate) -> dict:
        """Write only the fields present in the request."""
        fields = data.model_dump(exclude_unset=True)
        task_id = fields.pop("id")

        logger.info("updating_task", task_id=task_id, fields=list(fields.keys()))

        row = {
            FIELD_TO_COLUMN[key]: value
            for key, value in fields.items()
            if key in FIELD_TO_COLUMN
        }
        if row.get("due_date") is not None:
            row["due_date"] = row["due_date"].isoformat()
        row["updated_at"] = datetime.utcnow().isoformat()

        try:
            result = (
                self.db.table(self.table)
                .update(row)
                .eq("id", task_id)
                .execute()
            )
        except Exception as e:
            if is_missing_table(e):
                raise TableMissingError(self.table)
            logger.error("update_task_failed", task_id=task_id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            raise TaskNotFoundError(task_id)

        return result.data[0]

    def delete(self, task_id: str) -> bool:
        logger.info("deleting_task", task_id=task_id)

        try:
            self.db.table(self.table).delete().eq("id", task_id).execute()
            return True

        except Exception as e:
            logger.error("delete_task_failed", task_id=task_id, error=str(e))
            raise DatabaseError("delete", str(e))


# Singleton instance
_task_service: Optional[TaskService] = None


def get_task_service() -> TaskService:
    """Get or create TaskService instance."""
    global _task_service
    if _task_service is None:
        _task_service = TaskService()
    return _task_service
