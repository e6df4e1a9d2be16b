import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr

from core.session_store import SessionStore
from dependencies import get_session
from services.identity_client import AuthenticationError

logger = logging.getLogger(__name__)

router = APIRouter()


class Credentials(BaseModel):
    email: EmailStr
    password: str


@router.get("/session")
async def get_session_state(session: SessionStore = Depends(get_session)) -> Dict[str, Any]:
    return session.snapshot()


@router.post("/login")
async def login_with_email(credentials: Credentials, session: SessionStore = Depends(get_session)):
    """Signs the console session in with email and password."""
    try:
        await session.login(credentials.email, credentials.password)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=e.message)
    return {"status": "success", "redirect_to": "/admin", **session.snapshot()}


@router.post("/signup")
async def signup_with_email(credentials: Credentials, session: SessionStore = Depends(get_session)):
    """Creates an admin account and signs the console session into it."""
    try:
        await session.signup(credentials.email, credentials.password)
    except AuthenticationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return {"status": "success", "redirect_to": "/admin", **session.snapshot()}


@router.post("/logout")
async def logout(session: SessionStore = Depends(get_session)):
    await session.logout()
    return {"status": "success", "redirect_to": "/login", **session.snapshot()}
