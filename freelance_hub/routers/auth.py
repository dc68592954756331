import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm

from freelance_hub.core.config import get_settings
from freelance_hub.core.security import Token, create_access_token, decode_access_token, get_password_hash, verify_password
from freelance_hub.db.firebase_ops import FirestoreBaseModel, get_firestore_ops_instance
from freelance_hub.db.repositories import IdentityStore
from freelance_hub.models.schemas import Principal, User, UserCreate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

CREDENTIALS_EXCEPTION_DETAIL = "Could not validate credentials"


def _credentials_exception(detail: str = CREDENTIALS_EXCEPTION_DETAIL) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(token: str = Depends(oauth2_scheme)) -> User:
    user_id_from_token = decode_access_token(token)
    if not user_id_from_token:
        raise _credentials_exception()

    current_user = IdentityStore(get_firestore_ops_instance()).get_user(user_id_from_token)
    if not current_user or not current_user.is_active:
        raise _credentials_exception("Authenticated user not found")
    return current_user


async def get_current_principal(current_user: User = Depends(get_current_user)) -> Principal:
    """The caller identity handed to every service operation."""
    return current_user.as_principal()


@router.post("/register", response_model=User, status_code=status.HTTP_201_CREATED)
async def register_user(user_in: UserCreate):
    firestore_ops: FirestoreBaseModel = get_firestore_ops_instance()
    users_collection = get_settings().users_collection

    if firestore_ops.query(collection_name=users_collection, field="email", operator="==", value=user_in.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
    if firestore_ops.query(collection_name=users_collection, field="username", operator="==", value=user_in.username):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already taken")

    user = User(**user_in.model_dump(exclude={"password"}))

    # The stored record carries the password hash; the response model does not
    user_record = user.model_dump(mode="json")
    user_record["hashed_password"] = get_password_hash(user_in.password)
    firestore_ops.save(collection_name=users_collection, data_model=user_record, document_id=str(user.user_id))

    logger.info("Registered %s %s", user.role.value, user.user_id)
    return user


@router.post("/login", response_model=Token)
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    firestore_ops: FirestoreBaseModel = get_firestore_ops_instance()
    users_collection = get_settings().users_collection

    # Usernames are unique, so the query yields at most one record
    users_found = firestore_ops.query(
        collection_name=users_collection, field="username", operator="==", value=form_data.username
    )
    user_data = users_found[0] if users_found else None
    if not user_data or not verify_password(form_data.password, user_data.get("hashed_password", "")):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = user_data.get("id") or user_data.get("user_id")
    firestore_ops.update(
        collection_name=users_collection,
        document_id=user_id,
        updates={"last_login_date": datetime.now(timezone.utc).isoformat()},
    )

    return {"access_token": create_access_token(data={"sub": user_id}), "token_type": "bearer"}


@router.get("/me", response_model=User)
async def read_users_me(current_user: User = Depends(get_current_user)):
    return current_user
