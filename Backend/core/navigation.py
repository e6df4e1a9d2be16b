from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.sections import SECTION_SCHEMAS
from core.session_store import SessionStore

LOGIN_PATH = "/login"
ADMIN_PATH = "/admin"

# Sidebar order follows the public site, with social links and contact last.
SIDEBAR_SECTIONS = ["hero", "about", "experience", "skills", "projects", "testimonials", "social", "contact"]


@dataclass
class RouteDecision:
    view: str  # "loading" | "login" | "admin" | "redirect"
    redirect_to: Optional[str] = None
    section: Optional[str] = None
    sidebar: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "view": self.view,
            "redirect_to": self.redirect_to,
            "section": self.section,
            "sidebar": self.sidebar,
        }


def sidebar_items(active: Optional[str] = None) -> List[Dict[str, Any]]:
    items = [{"to": ADMIN_PATH, "label": "Dashboard", "active": active is None}]
    for key in SIDEBAR_SECTIONS:
        schema = SECTION_SCHEMAS[key]
        items.append({"to": f"{ADMIN_PATH}/{key}", "label": schema.label, "active": active == key})
    return items


def resolve(path: str, session: Optional[SessionStore]) -> RouteDecision:
    """Maps a console path to a view given the session state. Unknown paths redirect."""
    if session is None or session.loading:
        return RouteDecision(view="loading")

    path = "/" + path.strip("/")
    authenticated = session.authenticated

    if path == LOGIN_PATH:
        if authenticated:
            return RouteDecision(view="redirect", redirect_to=ADMIN_PATH)
        return RouteDecision(view="login")

    if path == ADMIN_PATH or path.startswith(ADMIN_PATH + "/"):
        if not authenticated:
            return RouteDecision(view="redirect", redirect_to=LOGIN_PATH)
        section = path[len(ADMIN_PATH):].strip("/") or None
        if section is None:
            return RouteDecision(view="admin", sidebar=sidebar_items())
        if section in SECTION_SCHEMAS:
            return RouteDecision(view="admin", section=section, sidebar=sidebar_items(section))

    return RouteDecision(view="redirect", redirect_to=ADMIN_PATH if authenticated else LOGIN_PATH)
