"""
Collection-level access for users, projects and notifications.

Each Project document holds its applications and progress updates, so a
project is always read and written as one unit.
"""

import logging
from typing import Callable, List, Optional
from uuid import UUID

from freelance_hub.core.config import get_settings
from freelance_hub.core.errors import InvalidState, NotFound
from freelance_hub.db.firebase_ops import FirestoreBaseModel
from freelance_hub.models.schemas import Notification, Project, ProjectStatus, Role, User, utcnow

logger = logging.getLogger(__name__)


class IdentityStore:
    def __init__(self, firestore_ops: FirestoreBaseModel, collection_name: Optional[str] = None):
        self.ops = firestore_ops
        self.collection = collection_name or get_settings().users_collection

    def get_user(self, user_id) -> Optional[User]:
        return self.ops.get(collection_name=self.collection, document_id=str(user_id), pydantic_model=User)

    def require_user(self, user_id) -> User:
        user = self.get_user(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def list_users(self, role: Optional[Role] = None) -> List[User]:
        """Active users, optionally of one role, ordered by username."""
        if role is None:
            users = self.ops.get_all(collection_name=self.collection, pydantic_model=User)
        else:
            users = self.ops.query(
                collection_name=self.collection, field="role", operator="==",
                value=role.value, pydantic_model=User,
            )
        return sorted((u for u in users if u.is_active), key=lambda u: u.username)


class ProjectStore:
    def __init__(self, firestore_ops: FirestoreBaseModel, collection_name: Optional[str] = None):
        self.ops = firestore_ops
        self.collection = collection_name or get_settings().projects_collection

    def add(self, project: Project) -> Project:
        self.ops.save(
            collection_name=self.collection,
            data_model=project.to_document(),
            document_id=str(project.project_id),
        )
        return project

    def get(self, project_id: UUID) -> Optional[Project]:
        return self.ops.get(collection_name=self.collection, document_id=str(project_id), pydantic_model=Project)

    def require(self, project_id: UUID) -> Project:
        project = self.get(project_id)
        if project is None:
            raise NotFound("Project not found")
        return project

    def list(self, status: Optional[ProjectStatus] = None) -> List[Project]:
        if status is None:
            projects = self.ops.get_all(collection_name=self.collection, pydantic_model=Project)
        else:
            projects = self.ops.query(
                collection_name=self.collection, field="status", operator="==",
                value=status.value, pydantic_model=Project,
            )
        return _newest_first(projects)

    def list_by_client(self, client_id: UUID) -> List[Project]:
        projects = self.ops.query(
            collection_name=self.collection, field="client_user_id", operator="==",
            value=str(client_id), pydantic_model=Project,
        )
        return _newest_first(projects)

    def list_by_freelancer(self, freelancer_id: UUID) -> List[Project]:
        projects = self.ops.query(
            collection_name=self.collection, field="freelancer_user_id", operator="==",
            value=str(freelancer_id), pydantic_model=Project,
        )
        return _newest_first(projects)

    def mutate(self, project_id: UUID, change: Callable[[Project], None]) -> Project:
        """
        Apply ``change`` to the stored project in a single atomic write.

        The project is re-checked against its invariants after ``change``
        runs; errors raised by ``change`` leave the document untouched.
        """
        def read_modify_write(document):
            if document is None:
                raise NotFound("Project not found")
            project = Project.model_validate(document)
            change(project)
            violations = project.invariant_violations()
            if violations:
                raise InvalidState("; ".join(violations))
            project.version += 1
            project.last_updated_date = utcnow()
            return project.to_document()

        document = self.ops.transact(self.collection, str(project_id), read_modify_write)
        project = Project.model_validate(document)
        logger.debug("Project %s committed at version %s", project_id, project.version)
        return project

    def delete(self, project_id: UUID) -> None:
        self.ops.delete(collection_name=self.collection, document_id=str(project_id))


class NotificationStore:
    def __init__(self, firestore_ops: FirestoreBaseModel, collection_name: Optional[str] = None):
        self.ops = firestore_ops
        self.collection = collection_name or get_settings().notifications_collection

    def add(self, notification: Notification) -> Notification:
        self.ops.save(
            collection_name=self.collection,
            data_model=notification.model_dump(mode="json"),
            document_id=str(notification.notification_id),
        )
        return notification

    def list_for_user(self, user_id: UUID) -> List[Notification]:
        notifications = self.ops.query(
            collection_name=self.collection, field="user_id", operator="==",
            value=str(user_id), pydantic_model=Notification,
        )
        return sorted(notifications, key=lambda n: n.creation_date, reverse=True)

    def mark_read(self, user_id: UUID, notification_id: UUID) -> Notification:
        notification = self.ops.get(
            collection_name=self.collection, document_id=str(notification_id), pydantic_model=Notification,
        )
        # Another user's notification is reported as missing
        if notification is None or notification.user_id != user_id:
            raise NotFound("Notification not found")
        self.ops.update(collection_name=self.collection, document_id=str(notification_id), updates={"read": True})
        notification.read = True
        return notification


def _newest_first(projects: List[Project]) -> List[Project]:
    return sorted(projects, key=lambda p: p.creation_date, reverse=True)
