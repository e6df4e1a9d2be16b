"""
Document shapes for every editable section of the portfolio site, and the
schema table that parameterizes the generic content editor.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from core.db_core import CONTENT_COLLECTION, SECTIONS_COLLECTION

SHORT_DESCRIPTION_LIMIT = 200
DESCRIPTION_LIMIT = 1000
MAX_SOCIAL_LINKS = 5
EXPERIENCE_SLOTS = [f"Experience{i}" for i in range(1, 6)]
DEFAULT_SKILL_CATEGORIES = ["Frontend", "Backend", "Tools"]

# A path pattern element of "*" matches any key or list index.
PathPattern = Tuple[Any, ...]


# --- Document models ---

class SectionMeta(BaseModel):
    order: int = 0
    enabled: bool = True


class HeroContent(BaseModel):
    intro: str = ""
    name: str = ""
    subtitle: str = ""
    description: str = ""


class AboutContent(BaseModel):
    title: str = "About Me"
    paragraphs: List[str] = Field(default_factory=lambda: [""])
    imageUrl: str = ""


class ExperienceEntry(BaseModel):
    title: str = ""
    context: str = ""
    date: str = ""
    points: List[str] = Field(default_factory=lambda: [""])

    def is_empty(self) -> bool:
        return (
            not self.title.strip()
            and not self.context.strip()
            and not self.date.strip()
            and not any(point.strip() for point in self.points)
        )


class Project(BaseModel):
    title: str = ""
    shortDescription: str = ""
    description: str = ""
    imageUrl: str = ""
    liveUrl: str = ""


class ProjectsContent(BaseModel):
    list: List[Project] = Field(default_factory=lambda: [Project()])


class TestimonialItem(BaseModel):
    imageUrl: str = ""
    quote: str = ""
    projectLink: str = ""


class TestimonialsContent(BaseModel):
    items: List[TestimonialItem] = Field(default_factory=lambda: [TestimonialItem()])


class SocialLink(BaseModel):
    name: str = ""
    url: str = ""


class SocialLinksContent(BaseModel):
    links: List[SocialLink] = Field(default_factory=lambda: [SocialLink()])

    @field_validator("links", mode="before")
    @classmethod
    def _accept_bare_urls(cls, value: Any) -> Any:
        # Older documents stored links as plain URL strings.
        if isinstance(value, list):
            value = [{"name": "", "url": item} if isinstance(item, str) else item for item in value]
            return value[:MAX_SOCIAL_LINKS]
        return value


class ContactContent(BaseModel):
    enabled: bool = True
    displayNumber: int = 1
    description: str = ""


# --- Normalizers: stored data (or None) -> full draft dict ---

def _model_normalizer(model: type) -> Callable[[Optional[Dict[str, Any]]], Dict[str, Any]]:
    def normalize(raw: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return model.model_validate(raw or {}).model_dump()
    return normalize


def _normalize_experience(raw: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    draft = {slot: ExperienceEntry().model_dump() for slot in EXPERIENCE_SLOTS}
    for key, value in (raw or {}).items():
        draft[key] = ExperienceEntry.model_validate(value or {}).model_dump()
    return draft


def _normalize_skills(raw: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if raw is None:
        return {category: [] for category in DEFAULT_SKILL_CATEGORIES}
    return {str(category): [str(skill) for skill in (skills or [])] for category, skills in raw.items()}


# --- Save-time cleaners ---

def _clean_experience(draft: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = {}
    for key, value in draft.items():
        entry = ExperienceEntry.model_validate(value)
        if entry.is_empty():
            continue
        entry.points = [point for point in entry.points if point.strip()]
        cleaned[key] = entry.model_dump()
    return cleaned


def _clean_social(draft: Dict[str, Any]) -> Dict[str, Any]:
    links = [link for link in draft.get("links", []) if link.get("url", "").strip()]
    return {"links": links[:MAX_SOCIAL_LINKS]}


def _clean_about(draft: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = dict(draft)
    cleaned["title"] = cleaned.get("title") or "About Me"
    return cleaned


def _identity(draft: Dict[str, Any]) -> Dict[str, Any]:
    return draft


@dataclass
class SectionSchema:
    """Everything the generic editor needs to know about one section."""
    key: str
    label: str
    content_collection: str
    content_doc: str
    normalize: Callable[[Optional[Dict[str, Any]]], Dict[str, Any]]
    meta_doc: Optional[str] = None
    default_order: int = 0
    list_templates: Dict[PathPattern, Callable[[], Any]] = field(default_factory=dict)
    list_caps: Dict[PathPattern, int] = field(default_factory=dict)
    field_limits: Dict[PathPattern, int] = field(default_factory=dict)
    clean: Callable[[Dict[str, Any]], Dict[str, Any]] = _identity
    dynamic_keys: bool = False
    image_fields: List[PathPattern] = field(default_factory=list)

    @property
    def has_meta(self) -> bool:
        return self.meta_doc is not None

    def default_draft(self) -> Dict[str, Any]:
        return self.normalize(None)

    def default_meta(self) -> Dict[str, Any]:
        return SectionMeta(order=self.default_order).model_dump()

    def parse_meta(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        # Older documents nest the metadata under the section key, e.g. {about: {order, enabled}}.
        nested = raw.get(self.key)
        if isinstance(nested, dict) and "order" not in raw and "enabled" not in raw:
            raw = nested
        return SectionMeta.model_validate({**self.default_meta(), **raw}).model_dump()


def match_pattern(pattern: PathPattern, path: Tuple[Any, ...]) -> bool:
    if len(pattern) != len(path):
        return False
    return all(p == "*" or p == actual for p, actual in zip(pattern, path))


def lookup_pattern(table: Dict[PathPattern, Any], path: Tuple[Any, ...]) -> Optional[Any]:
    for pattern, value in table.items():
        if match_pattern(pattern, path):
            return value
    return None


SECTION_SCHEMAS: Dict[str, SectionSchema] = {
    schema.key: schema
    for schema in [
        SectionSchema(
            key="hero",
            label="Hero",
            content_collection=CONTENT_COLLECTION,
            content_doc="hero",
            normalize=_model_normalizer(HeroContent),
            meta_doc="hero",
            default_order=0,
        ),
        SectionSchema(
            key="about",
            label="About",
            content_collection=CONTENT_COLLECTION,
            content_doc="about",
            normalize=_model_normalizer(AboutContent),
            meta_doc="about",
            default_order=1,
            list_templates={("paragraphs",): str},
            clean=_clean_about,
            image_fields=[("imageUrl",)],
        ),
        SectionSchema(
            key="experience",
            label="Experience",
            content_collection=CONTENT_COLLECTION,
            content_doc="experience",
            normalize=_normalize_experience,
            meta_doc="experience",
            default_order=3,
            list_templates={("*", "points"): str},
            clean=_clean_experience,
        ),
        SectionSchema(
            key="skills",
            label="Skills",
            content_collection=CONTENT_COLLECTION,
            content_doc="skills",
            normalize=_normalize_skills,
            meta_doc="skills",
            default_order=4,
            list_templates={("*",): str},
            dynamic_keys=True,
        ),
        SectionSchema(
            key="projects",
            label="Projects",
            content_collection=CONTENT_COLLECTION,
            content_doc="projects",
            normalize=_model_normalizer(ProjectsContent),
            meta_doc="projects",
            default_order=5,
            list_templates={("list",): lambda: Project().model_dump()},
            field_limits={
                ("list", "*", "shortDescription"): SHORT_DESCRIPTION_LIMIT,
                ("list", "*", "description"): DESCRIPTION_LIMIT,
            },
            image_fields=[("list", "*", "imageUrl")],
        ),
        SectionSchema(
            key="testimonials",
            label="Testimonials",
            content_collection=CONTENT_COLLECTION,
            content_doc="testimonials",
            normalize=_model_normalizer(TestimonialsContent),
            meta_doc="testimonials",
            default_order=6,
            list_templates={("items",): lambda: TestimonialItem().model_dump()},
            field_limits={("items", "*", "quote"): DESCRIPTION_LIMIT},
            image_fields=[("items", "*", "imageUrl")],
        ),
        SectionSchema(
            key="social",
            label="Social Links",
            content_collection=CONTENT_COLLECTION,
            content_doc="social",
            normalize=_model_normalizer(SocialLinksContent),
            list_templates={("links",): lambda: SocialLink().model_dump()},
            list_caps={("links",): MAX_SOCIAL_LINKS},
            clean=_clean_social,
        ),
        SectionSchema(
            key="contact",
            label="Contact",
            content_collection=SECTIONS_COLLECTION,
            content_doc="contact",
            normalize=_model_normalizer(ContactContent),
        ),
    ]
}


def get_schema(section: str) -> Optional[SectionSchema]:
    return SECTION_SCHEMAS.get(section)
