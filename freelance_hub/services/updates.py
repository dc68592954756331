"""
Append-only progress ledger of a project.

Listings are newest first; updates with the same timestamp keep their
submission order.
"""

from typing import Iterable, List, Optional

from freelance_hub.core.errors import Forbidden, InvalidInput, InvalidState
from freelance_hub.models.schemas import (
    Principal,
    ProgressUpdate,
    Project,
    ProjectStatus,
    UpdateFeedItem,
)

MIN_PROGRESS = 0
MAX_PROGRESS = 100


def validate(progress: Optional[int], note: Optional[str]) -> None:
    if progress is None:
        raise InvalidInput("progress is required")
    if isinstance(progress, bool) or not isinstance(progress, int):
        raise InvalidInput("progress must be an integer")
    if not MIN_PROGRESS <= progress <= MAX_PROGRESS:
        raise InvalidInput(f"progress must be between {MIN_PROGRESS} and {MAX_PROGRESS}")
    if note is None or not note.strip():
        raise InvalidInput("note is required")


def append(project: Project, caller: Principal, progress: Optional[int], note: Optional[str]) -> ProgressUpdate:
    if project.freelancer_user_id is None or project.freelancer_user_id != caller.id:
        raise Forbidden("Only the assigned freelancer can post updates")
    if project.status != ProjectStatus.IN_PROGRESS:
        raise InvalidState("Updates can only be posted while the project is in progress")
    validate(progress, note)

    update = ProgressUpdate(progress=progress, note=note.strip(), freelancer_user_id=caller.id)
    project.updates.append(update)
    return update


def can_view(project: Project, caller: Principal) -> bool:
    return caller.id in (project.client_user_id, project.freelancer_user_id)


def newest_first(updates: Iterable[ProgressUpdate]) -> List[ProgressUpdate]:
    # sorted() with reverse=True is stable, so ties stay in submission order
    return sorted(updates, key=lambda u: u.timestamp, reverse=True)


def feed(projects: Iterable[Project]) -> List[UpdateFeedItem]:
    items = [
        UpdateFeedItem(**update.model_dump(), project_id=project.project_id, project_title=project.title)
        for project in projects
        for update in project.updates
    ]
    return newest_first(items)
