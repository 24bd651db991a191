import sqlite3
import time

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from backend.security import issue_session_token, require_session
from database.db import create_tables, verify_admin_credentials, verify_teacher_credentials

router = APIRouter()


class LoginRequest(BaseModel):
    username: str
    password: str


def _token_response(token: str, claims: dict) -> dict:
    now = int(time.time())
    body = {
        "access_token": token,
        "token_type": "bearer",
        "username": claims["sub"],
        "role": claims["role"],
        "expires_at": claims["exp"],
        "expires_in": max(0, int(claims["exp"]) - now),
    }
    if "teacher_id" in claims:
        body["teacher_id"] = claims["teacher_id"]
    return body


def _require_fields(payload: LoginRequest) -> tuple[str, str]:
    username = payload.username.strip()
    password = payload.password.strip()
    if not username:
        raise HTTPException(status_code=400, detail="Username is required.")
    if not password:
        raise HTTPException(status_code=400, detail="Password is required.")
    return username, password


@router.post("/auth/login")
def admin_login(payload: LoginRequest):
    username, password = _require_fields(payload)

    try:
        admin = verify_admin_credentials(username, password)
    except sqlite3.OperationalError:
        # Self-heal when DB schema is missing (e.g., startup/lifespan skipped).
        try:
            create_tables()
            admin = verify_admin_credentials(username, password)
        except sqlite3.OperationalError:
            raise HTTPException(
                status_code=503,
                detail="Authentication service unavailable. Please retry.",
            )

    if not admin:
        raise HTTPException(status_code=401, detail="Invalid admin credentials.")

    token, claims = issue_session_token(admin["username"], role="admin")
    return _token_response(token, claims)


@router.post("/auth/teacher-login")
def teacher_login(payload: LoginRequest):
    username, password = _require_fields(payload)

    teacher = verify_teacher_credentials(username, password)
    if not teacher:
        raise HTTPException(status_code=401, detail="Invalid teacher credentials.")

    token, claims = issue_session_token(teacher["username"], role="teacher", teacher_id=teacher["id"])
    body = _token_response(token, claims)
    body["full_name"] = teacher["full_name"]
    return body


@router.get("/auth/me")
def auth_me(session: dict = Depends(require_session)):
    return {
        "username": session.get("sub"),
        "role": session.get("role"),
        "teacher_id": session.get("teacher_id"),
        "expires_at": session.get("exp"),
        "issued_at": session.get("iat"),
    }
