import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from itsdangerous import BadSignature, URLSafeTimedSerializer
from pydantic import BaseModel

from app import config
from app.accounts import (
    ROLES,
    AccountExists,
    create_account,
    get_account,
    get_account_by_username,
    public_account,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    username: str
    password: str
    role: str


class LoginRequest(BaseModel):
    username: str
    password: str


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(config.SECRET_KEY, salt="reel-share-auth")


def issue_token(user: dict) -> str:
    return _serializer().dumps({"uid": user["id"], "username": user["username"], "role": user["role"]})


def get_current_user(request: Request) -> dict | None:
    """Resolve the bearer token on the request to an account, or None."""
    header = request.headers.get("authorization", "")
    if not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    try:
        data = _serializer().loads(token, max_age=config.TOKEN_MAX_AGE)
    except BadSignature:
        return None
    if not isinstance(data, dict) or "uid" not in data:
        return None
    return get_account(data["uid"])


def current_user(request: Request) -> dict:
    user = get_current_user(request)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user


def require_role(role: str):
    def dependency(user: dict = Depends(current_user)) -> dict:
        if user["role"] != role:
            raise HTTPException(status_code=403, detail=f"Only {role}s can do this")
        return user
    return dependency


require_sender = require_role("sender")


@router.post("/register", status_code=201)
async def register(body: RegisterRequest):
    username = body.username.strip()
    if not username or not body.password or not body.role:
        raise HTTPException(status_code=400, detail="Username, password, and role are required")
    if body.role not in ROLES:
        raise HTTPException(status_code=400, detail='Role must be either "sender" or "viewer"')
    if len(username) < 3:
        raise HTTPException(status_code=400, detail="Username must be at least 3 characters")
    if len(body.password) < 4:
        raise HTTPException(status_code=400, detail="Password must be at least 4 characters")

    try:
        user = create_account(username, body.password, body.role)
    except AccountExists:
        raise HTTPException(status_code=400, detail="Username already exists")

    logger.info(f"[AUTH] Registered {user['role']} '{username}'")
    return {"message": "User registered successfully", "token": issue_token(user), "user": public_account(user)}


@router.post("/login")
async def login(body: LoginRequest):
    user = get_account_by_username(body.username.strip())
    if not user or not verify_password(body.password, user["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return {"message": "Login successful", "token": issue_token(user), "user": public_account(user)}


@router.get("/me")
async def me(user: dict = Depends(current_user)):
    return {"user": public_account(user)}
