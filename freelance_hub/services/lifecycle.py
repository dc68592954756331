"""
Project lifecycle engine.

Every operation takes the authenticated caller explicitly, loads the project
aggregate, validates the intent against its state and the caller, and writes
the result back atomically through ``ProjectStore.mutate``.

Status transitions::

    open --(assign | accept application)--> in_progress
    in_progress --(owner)--> completed
    open | in_progress --(owner)--> cancelled
"""

import logging
import math
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from freelance_hub.core.config import Settings, get_settings
from freelance_hub.core.errors import Forbidden, InvalidInput, InvalidState, NotFound
from freelance_hub.db.firebase_ops import FirestoreBaseModel
from freelance_hub.db.repositories import IdentityStore, NotificationStore, ProjectStore
from freelance_hub.models.schemas import (
    Application,
    ApplicationCreate,
    ApplicationStatus,
    NotificationType,
    Principal,
    ProgressUpdate,
    Project,
    ProjectCreate,
    ProjectDetailsUpdate,
    ProjectStatus,
    Question,
    Role,
    UpdateCreate,
    UpdateFeedItem,
    utcnow,
)
from freelance_hub.services import applications, updates
from freelance_hub.services.notifications import Notifier

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (ProjectStatus.COMPLETED, ProjectStatus.CANCELLED)

# Transitions reachable through an explicit status change by the owner
ALLOWED_STATUS_CHANGES = {
    ProjectStatus.OPEN: {ProjectStatus.CANCELLED},
    ProjectStatus.IN_PROGRESS: {ProjectStatus.COMPLETED, ProjectStatus.CANCELLED},
    ProjectStatus.COMPLETED: set(),
    ProjectStatus.CANCELLED: set(),
}


def _clean_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise InvalidInput(f"{field} is required")
    return value.strip()


def _check_budget(budget: Optional[float]) -> float:
    if budget is None:
        raise InvalidInput("budget is required")
    if not math.isfinite(budget):
        raise InvalidInput("budget must be a finite number")
    if budget <= 0:
        raise InvalidInput("budget must be greater than zero")
    return budget


def _check_deadline(deadline: Optional[datetime]) -> Optional[datetime]:
    if deadline is None:
        return None
    if deadline.tzinfo is None:
        deadline = deadline.replace(tzinfo=timezone.utc)
    if deadline <= utcnow():
        raise InvalidInput("deadline must be in the future")
    return deadline


class ProjectLifecycle:
    def __init__(
        self,
        projects: ProjectStore,
        identities: IdentityStore,
        notifier: Notifier,
        settings: Optional[Settings] = None,
    ):
        self.projects = projects
        self.identities = identities
        self.notifier = notifier
        self.settings = settings or get_settings()

    @classmethod
    def from_ops(cls, firestore_ops: FirestoreBaseModel, settings: Optional[Settings] = None) -> "ProjectLifecycle":
        settings = settings or get_settings()
        return cls(
            projects=ProjectStore(firestore_ops, settings.projects_collection),
            identities=IdentityStore(firestore_ops, settings.users_collection),
            notifier=Notifier(NotificationStore(firestore_ops, settings.notifications_collection)),
            settings=settings,
        )

    def _require_owner(self, project: Project, caller: Principal, action: str) -> None:
        if project.client_user_id != caller.id:
            raise Forbidden(f"Only the project owner can {action}")

    # -- creation and reads ------------------------------------------------

    def create_project(self, caller: Principal, project_in: ProjectCreate) -> Project:
        if caller.role != Role.CLIENT:
            raise Forbidden("Only clients can create projects")

        questions = [Question(text=q.text.strip()) for q in project_in.questions if q.text and q.text.strip()]
        project = Project(
            title=_clean_text(project_in.title, "title"),
            description=_clean_text(project_in.description, "description"),
            budget=_check_budget(project_in.budget),
            deadline=_check_deadline(project_in.deadline),
            category=project_in.category,
            image_url=project_in.image_url,
            client_user_id=caller.id,
            questions=questions,
        )
        self.projects.add(project)
        logger.info("Project %s created by client %s", project.project_id, caller.id)
        return project

    def get_project(self, caller: Principal, project_id: UUID) -> Project:
        return self.projects.require(project_id)

    def list_projects(self, caller: Principal, status: Optional[ProjectStatus] = None) -> List[Project]:
        return self.projects.list(status)

    def list_my_projects(self, caller: Principal) -> List[Project]:
        if caller.role == Role.CLIENT:
            return self.projects.list_by_client(caller.id)
        return self.projects.list_by_freelancer(caller.id)

    # -- owner edits ---------------------------------------------------------

    def update_details(self, caller: Principal, project_id: UUID, changes: ProjectDetailsUpdate) -> Project:
        fields = changes.model_dump(exclude_unset=True)
        if not fields:
            raise InvalidInput("No valid fields to update")

        def apply(project: Project) -> None:
            self._require_owner(project, caller, "update it")
            if "title" in fields:
                project.title = _clean_text(fields["title"], "title")
            if "description" in fields:
                project.description = _clean_text(fields["description"], "description")
            if "budget" in fields:
                project.budget = _check_budget(fields["budget"])
            if "deadline" in fields:
                project.deadline = _check_deadline(fields["deadline"])
            if "category" in fields:
                project.category = fields["category"]
            if "image_url" in fields:
                project.image_url = fields["image_url"]

        project = self.projects.mutate(project_id, apply)
        logger.info("Project %s details updated (%s)", project_id, ", ".join(sorted(fields)))
        return project

    def change_status(self, caller: Principal, project_id: UUID, new_status: ProjectStatus) -> Project:
        def apply(project: Project) -> None:
            self._require_owner(project, caller, "change its status")
            if new_status not in ALLOWED_STATUS_CHANGES[project.status]:
                raise InvalidState(
                    f"Cannot change project status from '{project.status.value}' to '{new_status.value}'"
                )
            project.status = new_status
            if new_status == ProjectStatus.CANCELLED:
                project.freelancer_user_id = None

        project = self.projects.mutate(project_id, apply)
        logger.info("Project %s moved to %s by %s", project_id, new_status.value, caller.id)
        return project

    def delete_project(self, caller: Principal, project_id: UUID) -> None:
        project = self.projects.require(project_id)
        self._require_owner(project, caller, "delete it")
        self.projects.delete(project_id)
        logger.info("Project %s deleted by %s", project_id, caller.id)

    # -- assignment ----------------------------------------------------------

    def assign_freelancer(self, caller: Principal, project_id: UUID, freelancer_id: UUID) -> Project:
        # Ownership is checked before the identity lookup so that non-owners
        # learn nothing about other users.
        self._require_owner(self.projects.require(project_id), caller, "assign freelancers")

        freelancer = self.identities.get_user(freelancer_id)
        if freelancer is None or freelancer.role != Role.FREELANCER:
            raise NotFound("Freelancer not found or invalid role")

        def apply(project: Project) -> None:
            self._require_owner(project, caller, "assign freelancers")
            if project.status in TERMINAL_STATUSES:
                raise InvalidState(f"Cannot assign a freelancer to a {project.status.value} project")
            project.freelancer_user_id = freelancer.user_id
            project.status = ProjectStatus.IN_PROGRESS

        project = self.projects.mutate(project_id, apply)
        logger.info("Freelancer %s assigned to project %s", freelancer_id, project_id)
        self.notifier.notify(
            freelancer.user_id,
            NotificationType.FREELANCER_ASSIGNED,
            f"You have been assigned to '{project.title}'",
            project.project_id,
        )
        return project

    # -- applications --------------------------------------------------------

    def submit_application(self, caller: Principal, project_id: UUID, application_in: ApplicationCreate) -> Project:
        if caller.role != Role.FREELANCER:
            raise Forbidden("Only freelancers can apply to projects")

        submitted: List[Application] = []

        def apply(project: Project) -> None:
            submitted.clear()
            submitted.append(
                applications.submit(project, caller, application_in.answers, application_in.resume_url)
            )

        project = self.projects.mutate(project_id, apply)
        application = submitted[0]
        logger.info(
            "Application %s submitted to project %s by %s",
            application.application_id, project_id, caller.id,
        )
        self.notifier.notify(
            project.client_user_id,
            NotificationType.APPLICATION_SUBMITTED,
            f"New application for '{project.title}'",
            project.project_id,
        )
        return project

    def decide_application(
        self,
        caller: Principal,
        project_id: UUID,
        application_id: UUID,
        decision: ApplicationStatus,
    ) -> Project:
        reject_siblings = self.settings.auto_reject_sibling_applications
        auto_rejected: List[Application] = []

        def apply(project: Project) -> None:
            self._require_owner(project, caller, "review applications")
            before = project.model_copy(deep=True)
            applications.decide(project, application_id, decision, reject_siblings=reject_siblings)
            auto_rejected[:] = [
                a for a in applications.rejected_by(before, project) if a.application_id != application_id
            ]

        project = self.projects.mutate(project_id, apply)
        application = applications.find(project, application_id)
        logger.info("Application %s on project %s %s", application_id, project_id, decision.value)

        if decision == ApplicationStatus.ACCEPTED:
            self.notifier.notify(
                application.freelancer_user_id,
                NotificationType.APPLICATION_ACCEPTED,
                f"Your application for '{project.title}' was accepted",
                project.project_id,
            )
        else:
            auto_rejected.append(application)
        for rejected in auto_rejected:
            self.notifier.notify(
                rejected.freelancer_user_id,
                NotificationType.APPLICATION_REJECTED,
                f"Your application for '{project.title}' was not selected",
                project.project_id,
            )
        return project

    # -- progress ledger -----------------------------------------------------

    def post_update(self, caller: Principal, project_id: UUID, update_in: UpdateCreate) -> Project:
        def apply(project: Project) -> None:
            updates.append(project, caller, update_in.progress, update_in.note)

        project = self.projects.mutate(project_id, apply)
        logger.info("Progress %s%% posted on project %s", update_in.progress, project_id)
        return project

    def list_updates(self, caller: Principal, project_id: UUID) -> List[ProgressUpdate]:
        project = self.projects.require(project_id)
        if not updates.can_view(project, caller):
            raise Forbidden("Only the project owner or its assigned freelancer can view updates")
        return updates.newest_first(project.updates)

    def list_updates_across_projects(self, caller: Principal) -> List[UpdateFeedItem]:
        if caller.role != Role.CLIENT:
            raise Forbidden("Only clients can view updates across their projects")
        return updates.feed(self.projects.list_by_client(caller.id))
