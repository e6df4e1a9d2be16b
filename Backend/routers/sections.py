import json
import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel

from core.content_editor import (
    ContentEditor,
    DraftError,
    EditorRegistry,
    UnknownSectionError,
    UnsupportedOperationError,
)
from core.navigation import SIDEBAR_SECTIONS
from core.sections import SECTION_SCHEMAS
from core.session_store import SessionStore
from dependencies import get_current_session, get_editor_registry

logger = logging.getLogger(__name__)

router = APIRouter()

PathStep = Union[str, int]


class FieldEdit(BaseModel):
    path: List[PathStep]
    value: Any


class ItemPath(BaseModel):
    path: List[PathStep]


class ItemRemoval(BaseModel):
    path: List[PathStep]
    index: int


class MetaUpdate(BaseModel):
    order: Optional[Union[int, str]] = None
    enabled: Optional[bool] = None


class CategoryCreate(BaseModel):
    name: str


class CategoryRename(BaseModel):
    old: str
    new: str


async def get_editor(
    section: str,
    session: SessionStore = Depends(get_current_session),
    editors: EditorRegistry = Depends(get_editor_registry),
) -> ContentEditor:
    """Returns this session's editor for the section, loading it on first use."""
    try:
        editor = editors.get(session.session_id, section)
    except UnknownSectionError:
        raise HTTPException(status_code=404, detail=f"Unknown section '{section}'.")
    await editor.mount()
    return editor


def _apply(action, *args, **kwargs) -> None:
    try:
        action(*args, **kwargs)
    except UnsupportedOperationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DraftError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("")
async def list_sections(session: SessionStore = Depends(get_current_session)) -> List[Dict[str, Any]]:
    return [
        {"key": key, "label": SECTION_SCHEMAS[key].label, "has_meta": SECTION_SCHEMAS[key].has_meta}
        for key in SIDEBAR_SECTIONS
    ]


@router.get("/{section}")
async def mount_section(editor: ContentEditor = Depends(get_editor)):
    return editor.snapshot()


@router.post("/{section}/reload")
async def reload_section(editor: ContentEditor = Depends(get_editor)):
    await editor.reload()
    return editor.snapshot()


@router.patch("/{section}/draft")
async def edit_field(payload: FieldEdit, editor: ContentEditor = Depends(get_editor)):
    _apply(editor.edit, payload.path, payload.value)
    return editor.snapshot()


@router.post("/{section}/items")
async def add_item(payload: ItemPath, editor: ContentEditor = Depends(get_editor)):
    try:
        added = editor.add_item(payload.path)
    except DraftError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"added": added, **editor.snapshot()}


@router.delete("/{section}/items")
async def remove_item(payload: ItemRemoval, editor: ContentEditor = Depends(get_editor)):
    _apply(editor.remove_item, payload.path, payload.index)
    return editor.snapshot()


@router.patch("/{section}/meta")
async def update_meta(payload: MetaUpdate, editor: ContentEditor = Depends(get_editor)):
    _apply(editor.set_meta, order=payload.order, enabled=payload.enabled)
    return editor.snapshot()


@router.post("/{section}/categories")
async def add_category(payload: CategoryCreate, editor: ContentEditor = Depends(get_editor)):
    _apply(editor.add_category, payload.name)
    return editor.snapshot()


@router.patch("/{section}/categories")
async def rename_category(payload: CategoryRename, editor: ContentEditor = Depends(get_editor)):
    _apply(editor.rename_category, payload.old, payload.new)
    return editor.snapshot()


@router.delete("/{section}/categories/{name}")
async def remove_category(name: str, editor: ContentEditor = Depends(get_editor)):
    _apply(editor.remove_category, name)
    return editor.snapshot()


@router.post("/{section}/image")
async def upload_image(
    file: UploadFile = File(...),
    path: str = Form(..., description='JSON field path, e.g. ["list", 0, "imageUrl"]'),
    editor: ContentEditor = Depends(get_editor),
):
    try:
        field_path = json.loads(path)
    except json.JSONDecodeError:
        raise HTTPException(status_code=422, detail="path must be a JSON array.")
    if not isinstance(field_path, list):
        raise HTTPException(status_code=422, detail="path must be a JSON array.")

    file_bytes = await file.read()
    logger.info(f"Image upload for {editor.schema.key}: {file.filename} ({len(file_bytes)} bytes)")
    try:
        url = await editor.upload_image(field_path, file_bytes, file.filename or "upload", file.content_type)
    except DraftError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"url": url, **editor.snapshot()}


@router.post("/{section}/save")
async def save_section(editor: ContentEditor = Depends(get_editor)):
    saved = await editor.save()
    return {"saved": saved, **editor.snapshot()}
