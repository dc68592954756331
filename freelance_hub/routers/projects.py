from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from freelance_hub.db.firebase_ops import get_firestore_ops_instance
from freelance_hub.models.schemas import (
    ApplicationCreate,
    ApplicationDecision,
    Principal,
    ProgressUpdate,
    Project,
    ProjectCreate,
    ProjectDetailsUpdate,
    ProjectStatus,
    StatusChange,
    UpdateCreate,
    UpdateFeedItem,
)
from freelance_hub.routers.auth import get_current_principal
from freelance_hub.services.lifecycle import ProjectLifecycle

router = APIRouter(prefix="/projects", tags=["Projects"])


def get_project_lifecycle() -> ProjectLifecycle:
    return ProjectLifecycle.from_ops(get_firestore_ops_instance())


@router.post("/", response_model=Project, status_code=status.HTTP_201_CREATED)
async def create_project(project_in: ProjectCreate, caller: Principal = Depends(get_current_principal)):
    return get_project_lifecycle().create_project(caller, project_in)


@router.get("/", response_model=List[Project])
async def list_projects(
    status_filter: Optional[ProjectStatus] = Query(default=None, alias="status"),
    caller: Principal = Depends(get_current_principal),
):
    return get_project_lifecycle().list_projects(caller, status_filter)


# Static paths are declared before /{project_id} so they are not parsed as ids

@router.get("/my-projects", response_model=List[Project])
async def list_my_projects(caller: Principal = Depends(get_current_principal)):
    return get_project_lifecycle().list_my_projects(caller)


@router.get("/updates", response_model=List[UpdateFeedItem])
async def list_updates_across_projects(caller: Principal = Depends(get_current_principal)):
    return get_project_lifecycle().list_updates_across_projects(caller)


@router.get("/{project_id}", response_model=Project)
async def get_project_details(project_id: UUID, caller: Principal = Depends(get_current_principal)):
    return get_project_lifecycle().get_project(caller, project_id)


@router.put("/{project_id}", response_model=Project)
async def update_project(
    project_id: UUID,
    changes: ProjectDetailsUpdate,
    caller: Principal = Depends(get_current_principal),
):
    return get_project_lifecycle().update_details(caller, project_id, changes)


@router.put("/{project_id}/status", response_model=Project)
async def change_project_status(
    project_id: UUID,
    change: StatusChange,
    caller: Principal = Depends(get_current_principal),
):
    return get_project_lifecycle().change_status(caller, project_id, change.status)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(project_id: UUID, caller: Principal = Depends(get_current_principal)):
    get_project_lifecycle().delete_project(caller, project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{project_id}/assign/{freelancer_id}", response_model=Project)
async def assign_freelancer(
    project_id: UUID,
    freelancer_id: UUID,
    caller: Principal = Depends(get_current_principal),
):
    return get_project_lifecycle().assign_freelancer(caller, project_id, freelancer_id)


@router.post("/{project_id}/apply", response_model=Project, status_code=status.HTTP_201_CREATED)
async def apply_to_project(
    project_id: UUID,
    application_in: ApplicationCreate,
    caller: Principal = Depends(get_current_principal),
):
    return get_project_lifecycle().submit_application(caller, project_id, application_in)


@router.put("/{project_id}/applications/{application_id}", response_model=Project)
async def decide_application(
    project_id: UUID,
    application_id: UUID,
    decision: ApplicationDecision,
    caller: Principal = Depends(get_current_principal),
):
    return get_project_lifecycle().decide_application(caller, project_id, application_id, decision.status)


@router.post("/{project_id}/update", response_model=Project)
async def post_update(
    project_id: UUID,
    update_in: UpdateCreate,
    caller: Principal = Depends(get_current_principal),
):
    return get_project_lifecycle().post_update(caller, project_id, update_in)


@router.get("/{project_id}/updates", response_model=List[ProgressUpdate])
async def list_updates(project_id: UUID, caller: Principal = Depends(get_current_principal)):
    return get_project_lifecycle().list_updates(caller, project_id)
