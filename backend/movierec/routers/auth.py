"""Auth router — the local identity provider: register, login, me.

Other routers depend on `get_current_user` only; it resolves the bearer
token to a user row and never exposes credentials.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr, field_validator

from movierec.core import db
from movierec.core.security import create_access_token, decode_user_id, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


# ── Schemas ───────────────────────────────────────────────────────────────────
class RegisterRequest(BaseModel):
    login: str
    email: EmailStr
    password: str

    @field_validator("login")
    @classmethod
    def login_length(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3 or len(v) > 64:
            raise ValueError("Login must be 3–64 characters")
        return v

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v


class UserOut(BaseModel):
    id: int
    login: str
    email: str
    role: str
    created_at: str

    @classmethod
    def from_row(cls, row: dict) -> "UserOut":
        return cls(
            id=row["id"],
            login=row["login"],
            email=row["email"],
            role=row["role"],
            created_at=str(row["created_at"]),
        )


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


def _token_for(user: dict) -> TokenOut:
    token = create_access_token(user["id"], role=user["role"])
    return TokenOut(access_token=token, user=UserOut.from_row(dict(user)))


# ── Dependency — current user from JWT ───────────────────────────────────────
def get_current_user(token: str = Depends(oauth2_scheme)) -> dict:
    user_id = decode_user_id(token)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    with db.get_connection() as conn:
        user = db.get_user_by_id(conn, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return dict(user)


# ── Endpoints ─────────────────────────────────────────────────────────────────
@router.post("/register", response_model=TokenOut, status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest):
    with db.get_connection() as conn:
        if db.get_user_by_login(conn, body.login):
            raise HTTPException(status_code=400, detail="Login already taken")
        if db.get_user_by_email(conn, body.email):
            raise HTTPException(status_code=400, detail="Email already registered")
        user = db.create_user(conn, body.login, body.email, hash_password(body.password))
    logger.info("Registered user id=%s login=%s", user["id"], user["login"])
    return _token_for(user)


@router.post("/login", response_model=TokenOut)
def login(form: OAuth2PasswordRequestForm = Depends()):
    with db.get_connection() as conn:
        user = db.get_user_by_login(conn, form.username)
    if not user or not verify_password(form.password, user["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid login or password")
    return _token_for(user)


@router.get("/me", response_model=UserOut)
def me(user: dict = Depends(get_current_user)):
    return UserOut.from_row(user)
