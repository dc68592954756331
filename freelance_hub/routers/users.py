from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from freelance_hub.db.firebase_ops import get_firestore_ops_instance
from freelance_hub.db.repositories import IdentityStore
from freelance_hub.models.schemas import Principal, Role, User
from freelance_hub.routers.auth import get_current_principal

router = APIRouter(prefix="/users", tags=["Users"])

# The User response model has no password field, so stored hashes never leave the service


@router.get("/", response_model=List[User])
async def list_users(
    role: Optional[Role] = Query(default=None),
    caller: Principal = Depends(get_current_principal),
):
    return IdentityStore(get_firestore_ops_instance()).list_users(role)


@router.get("/{user_id}", response_model=User)
async def get_user_profile(user_id: UUID, caller: Principal = Depends(get_current_principal)):
    return IdentityStore(get_firestore_ops_instance()).require_user(user_id)
