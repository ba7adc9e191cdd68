# server/api/auth.py

import config
from jose import JWTError
from jose.exceptions import JOSEError
from pydantic import BaseModel, ValidationError
from fastapi import APIRouter, Depends, Header, Request
from fastapi.security import APIKeyHeader
from loguru import logger
from sqlalchemy.orm import Session
from core.errors import ApiError
from core.repository import UserRepository
from core.security import TokenData, create_access_token, decode_access_token, verify_password
from core.session_store import SessionStore, get_session_store, session_ttl
from database import get_db


router = APIRouter()

token_header = APIKeyHeader(name="token", auto_error=False)


class LoginInput(BaseModel):
    username: str
    password: str


# -------------------------------
# Dependencies
# -------------------------------

async def json_body(request: Request):
    """
    Parsed JSON body, or None when it is not valid JSON. Only the read is
    async so handlers stay sync and run in the threadpool.
    """
    try:
        return await request.json()
    except ValueError:
        return None


def verify_app_key(app_key: str | None = Header(default=None, alias="appKey")):
    """
    Rejects requests without the configured application key.
    Disabled while APP_KEY is empty.
    """
    if config.APP_KEY and app_key != config.APP_KEY:
        raise ApiError("app_key_invalid", status_code=401)


def get_current_user(
    request: Request,
    token: str | None = Depends(token_header),
    store: SessionStore = Depends(get_session_store),
) -> TokenData:
    """
    Accepts a token only if it is well-signed, unexpired and still the
    active session token of its user.
    """
    if not token:
        authorization = request.headers.get("Authorization", "")
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer":
            token = credentials.strip()
    if not token:
        raise ApiError("token_invalid", status_code=401)

    try:
        token_data = decode_access_token(token)
    except JWTError:
        raise ApiError("token_invalid", status_code=401)

    if store.get(token_data.username) != token:
        raise ApiError("token_invalid", status_code=401)
    return token_data


# -------------------------------
# Endpoints
# -------------------------------

@router.post("/login")
def login(
    request: Request,
    body=Depends(json_body),
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    try:
        form_data = LoginInput.model_validate(body)
    except ValidationError:
        raise ApiError("username_incorrect")

    user = UserRepository(db).get_active(form_data.username)
    if not user or not verify_password(form_data.password, user.password):
        logger.warning("Login failed for {!r}", form_data.username)
        raise ApiError("username_incorrect")

    try:
        access_token = create_access_token(
            user.username,
            request.headers.get("User-Agent", ""),
            request.client.host if request.client else "",
        )
    except JOSEError:
        logger.exception("Could not issue token for {!r}", user.username)
        raise ApiError("system_error")

    # Overwrites the previous session: one live token per user
    store.set(user.username, access_token, session_ttl())
    logger.info("User {!r} logged in", user.username)

    return {"message": "success", "token": access_token}


@router.post("/user/check-token")
def check_token(current_user: TokenData = Depends(get_current_user)):
    return {"message": "Token is correct"}


@router.post("/user/logout")
def logout(current_user: TokenData = Depends(get_current_user), store: SessionStore = Depends(get_session_store)):
    store.delete(current_user.username)
    logger.info("User {!r} logged out", current_user.username)
    return {"message": "success"}
