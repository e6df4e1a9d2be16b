from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from core.navigation import resolve
from core.session_store import SessionStore
from dependencies import get_session, set_session_cookie

router = APIRouter()


def _respond(path: str, session: SessionStore):
    decision = resolve(path, session)
    if decision.view == "redirect":
        response = RedirectResponse(url=decision.redirect_to, status_code=307)
    else:
        response = JSONResponse(content=decision.to_dict())
    # Responses returned directly skip the dependency's cookie, so set it here.
    set_session_cookie(response, session)
    return response


@router.get("/login")
async def login_view(session: SessionStore = Depends(get_session)):
    return _respond("/login", session)


@router.get("/admin")
async def admin_view(session: SessionStore = Depends(get_session)):
    return _respond("/admin", session)


@router.get("/admin/{section}")
async def section_view(section: str, session: SessionStore = Depends(get_session)):
    return _respond(f"/admin/{section}", session)


@router.get("/{unknown_path:path}", include_in_schema=False)
async def fallback_view(unknown_path: str, request: Request, session: SessionStore = Depends(get_session)):
    return _respond(request.url.path, session)
