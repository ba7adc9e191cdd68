# server/api/users.py

from datetime import datetime
from pydantic import BaseModel, ConfigDict, ValidationError
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from api.auth import get_current_user, json_body
from core.errors import ApiError
from core.repository import UserRepository
from core.security import TokenData, get_password_hash, verify_password
from core.session_store import SessionStore, get_session_store
from core.utils import avatar_path, normalize_username, save_avatar
from database import get_db
from models.user import User, UserProfile


# -------------------------------
# Router Configuration
# -------------------------------

router = APIRouter(prefix="/users/user", dependencies=[Depends(get_current_user)])

GENDERS = {"male", "female", "other", ""}

PASSWORD_MIN_LENGTH = 5
USERNAME_MAX_LENGTH = 50


# -------------------------------
# Schemas
# -------------------------------

class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str | None = None
    birthday: str | None = None
    phone: str | None = None
    gender: str | None = None
    email: str | None = None
    address: str | None = None
    date_join: str | None = None
    insurance_number: str | None = None
    id_card: str | None = None
    avatar: str | None = None


class UserOut(BaseModel):
    """
    Public view of a user. The password hash is never serialized.
    """
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    profile: ProfileOut | None = None


class DeleteInput(BaseModel):
    username: str


def get_repository(db: Session = Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def _check_gender(gender: str):
    if gender not in GENDERS:
        raise ApiError("gender_invalid", gender_list="male, female, other, null")


def _validate_credentials(username: str, password: str) -> list[dict]:
    errors = []
    if not username:
        errors.append({"field": "username", "tag": "required", "value": ""})
    elif len(username) > USERNAME_MAX_LENGTH:
        errors.append({"field": "username", "tag": "max", "value": str(USERNAME_MAX_LENGTH)})
    if not password:
        errors.append({"field": "password", "tag": "required", "value": ""})
    elif len(password) < PASSWORD_MIN_LENGTH:
        errors.append({"field": "password", "tag": "min", "value": str(PASSWORD_MIN_LENGTH)})
    return errors


def _has_upload(file: UploadFile | None) -> bool:
    return file is not None and bool(file.filename)


def _avatar_target(file: UploadFile):
    path = avatar_path(file.filename)
    if path is None:
        raise ApiError("avatar_invalid", status_code=400)
    return path


# -------------------------------
# Endpoints
# -------------------------------

@router.get("", response_model=list[UserOut])
def get_users(
    type_: str = Query("", alias="type"),
    username: str = "",
    current_user: TokenData = Depends(get_current_user),
    repo: UserRepository = Depends(get_repository),
):
    """
    Without parameters returns the caller's own record.
    `username` selects one active user; `type` is 'active', 'delete' or 'all'.
    Any other type matches nothing.
    """
    if not type_ and not username:
        username = current_user.username

    if username:
        user = repo.get_active(username)
        return [user] if user else []

    if type_ == "delete":
        return repo.list_users(deleted=True)
    if type_ == "all":
        return repo.list_users(deleted=None)
    if type_ == "active":
        return repo.list_users(deleted=False)
    return []


@router.post("/insert")
def insert_user(
    username: str = Form(""),
    password: str = Form(""),
    name: str = Form(""),
    birthday: str = Form(""),
    phone: str = Form(""),
    gender: str = Form(""),
    email: str = Form(""),
    address: str = Form(""),
    date_join: str = Form(""),
    insurance_number: str = Form(""),
    id_card: str = Form(""),
    avatar: UploadFile | None = File(None),
    repo: UserRepository = Depends(get_repository),
):
    username = normalize_username(username)

    if repo.exists_active(username):
        raise ApiError("username_exists")

    _check_gender(gender)

    errors = _validate_credentials(username, password)
    if errors:
        raise ApiError("validation_error", status_code=400, errors=errors)

    target = _avatar_target(avatar) if _has_upload(avatar) else None

    user = User(username=username, password=get_password_hash(password))
    profile = UserProfile(
        name=name,
        birthday=birthday,
        phone=phone,
        gender=gender,
        email=email,
        address=address,
        date_join=date_join,
        insurance_number=insurance_number,
        id_card=id_card,
    )
    if target is not None:
        profile.avatar = target.as_posix()

    try:
        repo.create_with_profile(user, profile)
    except SQLAlchemyError:
        logger.exception("Could not insert user {!r}", username)
        raise ApiError("system_error")

    # Written only once both rows are committed
    if target is not None:
        save_avatar(avatar, target)

    logger.info("User {!r} created", username)
    return {"message": "success"}


@router.put("/update")
def update_user(
    username: str = Form(""),
    name: str = Form(""),
    birthday: str = Form(""),
    phone: str = Form(""),
    gender: str = Form(""),
    email: str = Form(""),
    address: str = Form(""),
    date_join: str = Form(""),
    insurance_number: str = Form(""),
    id_card: str = Form(""),
    avatar: UploadFile | None = File(None),
    repo: UserRepository = Depends(get_repository),
):
    """
    Applies only the fields that are present and non-empty.
    """
    user = repo.get_active(normalize_username(username))
    if not user:
        raise ApiError("user_not_found", status_code=400)

    _check_gender(gender)

    profile = repo.get_profile(user) or UserProfile(user_id=user.id)
    values = {
        "name": name,
        "birthday": birthday,
        "phone": phone,
        "gender": gender,
        "email": email,
        "address": address,
        "date_join": date_join,
        "insurance_number": insurance_number,
        "id_card": id_card,
    }

    is_update_profile = False
    for field, value in values.items():
        if value:
            setattr(profile, field, value)
            is_update_profile = True

    target = _avatar_target(avatar) if _has_upload(avatar) else None
    if target is not None:
        profile.avatar = target.as_posix()
        is_update_profile = True

    if not is_update_profile:
        raise ApiError("no_search_change", status_code=400)

    repo.save(profile)
    if target is not None:
        save_avatar(avatar, target)
    logger.info("User {!r} updated", user.username)
    return {"message": "success", "avatar": profile.avatar}


@router.delete("/delete")
def delete_user(
    body=Depends(json_body),
    repo: UserRepository = Depends(get_repository),
    store: SessionStore = Depends(get_session_store),
):
    try:
        data = DeleteInput.model_validate(body)
    except ValidationError:
        raise ApiError("param_error")

    user = repo.get_active(data.username)
    if not user:
        raise ApiError("username_incorrect")

    profile = repo.get_profile(user)
    if not profile:
        raise ApiError("user_profile_incorrect")

    user.mark_deleted(datetime.now())
    repo.save(user, profile)

    # Revoke any live token right away
    store.delete(user.username)
    logger.info("User {!r} deleted", user.username)

    return {"message": "success"}


@router.put("/change-password")
def change_password(
    password_current: str = Form(""),
    password_new: str = Form(""),
    current_user: TokenData = Depends(get_current_user),
    repo: UserRepository = Depends(get_repository),
    store: SessionStore = Depends(get_session_store),
):
    if len(password_current) < PASSWORD_MIN_LENGTH or len(password_new) < PASSWORD_MIN_LENGTH:
        raise ApiError("password_invalid")

    user = repo.get_active(current_user.username)
    if not user:
        raise ApiError("user_not_found")

    if not verify_password(password_current, user.password):
        raise ApiError("password_current_incorrect")

    user.password = get_password_hash(password_new)
    repo.save(user)

    # The old token dies with the old password
    store.delete(user.username)
    logger.info("User {!r} changed password", user.username)

    return {"message": "success"}
