"""
Generic document-backed form.

One ContentEditor instance edits one section: it loads the section's content
document (and its metadata document, where the section has one) into an
in-memory draft, applies local edits, and writes the whole draft back on an
explicit save. Every mutation is draft-only until `save()`.
"""
import asyncio
import copy
import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from core.config import get_settings
from core.db_core import SECTIONS_COLLECTION, DatabaseManager
from core.sections import SectionSchema, get_schema, lookup_pattern, match_pattern
from services.asset_uploader import AssetUploader

logger = logging.getLogger(__name__)

SAVE_OK_MESSAGE = "✅ Saved successfully!"
SAVE_FAILED_MESSAGE = "❌ Save failed."
UPLOAD_OK_MESSAGE = "✅ Image uploaded!"
UPLOAD_FAILED_MESSAGE = "❌ Upload failed"
UPLOAD_ERROR_MESSAGE = "❌ Upload error"


class EditorState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    SAVING = "saving"


class DraftError(Exception):
    """An edit addressed a path that does not exist or supplied a value of the wrong type."""


class UnsupportedOperationError(DraftError):
    """The operation does not apply to this section (e.g. categories outside skills)."""


class UnknownSectionError(Exception):
    pass


def _coerce_int(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise DraftError(f"{label} must be a number.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise DraftError(f"{label} must be a number.")


class ContentEditor:
    def __init__(
        self,
        schema: SectionSchema,
        db: DatabaseManager,
        uploader: AssetUploader,
        message_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.schema = schema
        self.db = db
        self.uploader = uploader
        self.message_ttl = get_settings().message_ttl_seconds if message_ttl is None else message_ttl
        self.clock = clock

        self.state = EditorState.LOADING
        self.draft: Dict[str, Any] = schema.default_draft()
        self.meta: Optional[Dict[str, Any]] = schema.default_meta() if schema.has_meta else None
        self.mounted = False
        self._message: Optional[str] = None
        self._message_expires_at = 0.0

    # --- Transient message ---

    def _flash(self, text: str) -> None:
        self._message = text
        self._message_expires_at = self.clock() + self.message_ttl

    @property
    def message(self) -> Optional[str]:
        if self._message and self.clock() < self._message_expires_at:
            return self._message
        return None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "section": self.schema.key,
            "label": self.schema.label,
            "state": self.state.value,
            "draft": copy.deepcopy(self.draft),
            "meta": copy.deepcopy(self.meta),
            "message": self.message,
        }

    # --- Loading ---

    async def mount(self) -> None:
        """Loads the section the first time only; later mounts reuse the draft."""
        if not self.mounted:
            await self.load()

    async def reload(self) -> None:
        await self.load()

    async def load(self) -> None:
        schema = self.schema
        self.state = EditorState.LOADING
        try:
            reads = [asyncio.to_thread(self.db.get_document, schema.content_collection, schema.content_doc)]
            if schema.has_meta:
                reads.append(asyncio.to_thread(self.db.get_document, SECTIONS_COLLECTION, schema.meta_doc))
            results = await asyncio.gather(*reads, return_exceptions=True)

            content = results[0]
            if isinstance(content, Exception):
                logger.error(f"❌ Failed to fetch {schema.key} content: {content}", exc_info=content)
            else:
                try:
                    self.draft = schema.normalize(content)
                    if content is not None:
                        logger.info(f"✅ {schema.label} content loaded")
                except Exception as e:
                    logger.error(f"❌ Stored {schema.key} content is malformed: {e}", exc_info=True)

            if schema.has_meta:
                meta = results[1]
                if isinstance(meta, Exception):
                    logger.error(f"❌ Failed to fetch {schema.key} section metadata: {meta}", exc_info=meta)
                elif meta is not None:
                    try:
                        self.meta = schema.parse_meta(meta)
                        logger.info(f"✅ {schema.label} section metadata loaded: {self.meta}")
                    except Exception as e:
                        logger.error(f"❌ Stored {schema.key} section metadata is malformed: {e}", exc_info=True)
        finally:
            self.state = EditorState.READY
            self.mounted = True

    # --- Draft navigation ---

    def _walk(self, path: Sequence[Any]) -> Tuple[Any, Tuple[Any, ...]]:
        """Returns the node at `path` and the path with list indices normalized to ints."""
        node: Any = self.draft
        normalized: List[Any] = []
        for step in path:
            if isinstance(node, dict):
                if not isinstance(step, str) or step not in node:
                    raise DraftError(f"Unknown field {step!r} in {self.schema.key}.")
                node = node[step]
                normalized.append(step)
            elif isinstance(node, list):
                index = self._index(step, node)
                node = node[index]
                normalized.append(index)
            else:
                raise DraftError(f"Cannot descend into {step!r} in {self.schema.key}.")
        return node, tuple(normalized)

    @staticmethod
    def _index(step: Any, items: List[Any]) -> int:
        if isinstance(step, bool):
            raise DraftError("List positions must be integers.")
        if isinstance(step, str) and step.lstrip("-").isdigit():
            step = int(step)
        if not isinstance(step, int) or not 0 <= step < len(items):
            raise DraftError(f"Position {step!r} is out of range.")
        return step

    def _parent(self, path: Sequence[Any]) -> Tuple[Any, Any, Tuple[Any, ...]]:
        if not path:
            raise DraftError("A field path is required.")
        parent, _ = self._walk(path[:-1])
        _, full_path = self._walk(path)
        key = full_path[-1]
        return parent, key, full_path

    # --- Draft mutations (no I/O) ---

    def edit(self, path: Sequence[Any], value: Any) -> None:
        parent, key, full_path = self._parent(path)
        current = parent[key]

        if isinstance(current, bool):
            if not isinstance(value, bool):
                raise DraftError(f"{key} must be true or false.")
        elif isinstance(current, int):
            value = _coerce_int(value, str(key))
        elif isinstance(current, str):
            if not isinstance(value, str):
                raise DraftError(f"{key} must be text.")
            limit = lookup_pattern(self.schema.field_limits, full_path)
            if limit is not None:
                value = value[:limit]
        else:
            raise DraftError(f"{key} is a collection; use add/remove item instead.")

        parent[key] = value

    def add_item(self, path: Sequence[Any]) -> bool:
        """Appends a blank entry to the list at `path`. Returns False when the list is at its cap."""
        items, normalized = self._walk(path)
        if not isinstance(items, list):
            raise DraftError(f"{list(path)} is not a list.")
        template = lookup_pattern(self.schema.list_templates, normalized)
        if template is None:
            raise DraftError(f"Items cannot be added to {list(path)}.")
        cap = lookup_pattern(self.schema.list_caps, normalized)
        if cap is not None and len(items) >= cap:
            logger.info(f"ℹ️ {self.schema.label} already holds the maximum of {cap} entries.")
            return False
        items.append(template())
        return True

    def remove_item(self, path: Sequence[Any], index: Any) -> Any:
        """Removes one element from the draft; the store is untouched until save()."""
        items, _ = self._walk(path)
        if not isinstance(items, list):
            raise DraftError(f"{list(path)} is not a list.")
        return items.pop(self._index(index, items))

    def set_meta(self, order: Any = None, enabled: Any = None) -> None:
        if not self.schema.has_meta:
            raise UnsupportedOperationError(f"{self.schema.label} has no section metadata.")
        if order is not None:
            self.meta["order"] = _coerce_int(order, "order")
        if enabled is not None:
            if not isinstance(enabled, bool):
                raise DraftError("enabled must be true or false.")
            self.meta["enabled"] = enabled

    # --- Dynamic keys (skills categories) ---

    def _require_dynamic_keys(self) -> None:
        if not self.schema.dynamic_keys:
            raise UnsupportedOperationError(f"{self.schema.label} does not have categories.")

    def add_category(self, name: str) -> None:
        self._require_dynamic_keys()
        name = (name or "").strip()
        if not name:
            raise DraftError("Category name cannot be empty.")
        if name in self.draft:
            raise DraftError(f"Category {name!r} already exists.")
        self.draft[name] = []

    def rename_category(self, old: str, new: str) -> None:
        self._require_dynamic_keys()
        new = (new or "").strip()
        if old not in self.draft:
            raise DraftError(f"Unknown category {old!r}.")
        if not new:
            raise DraftError("Category name cannot be empty.")
        if new != old and new in self.draft:
            raise DraftError(f"Category {new!r} already exists.")
        # Rebuild so the renamed category keeps its position.
        self.draft = {(new if key == old else key): value for key, value in self.draft.items()}

    def remove_category(self, name: str) -> None:
        self._require_dynamic_keys()
        if name not in self.draft:
            raise DraftError(f"Unknown category {name!r}.")
        del self.draft[name]

    # --- Remote operations ---

    async def save(self) -> bool:
        """
        Overwrites the content document (and the metadata document) with the draft.
        The two writes are independent. On failure the draft is kept as typed.
        """
        schema = self.schema
        self.state = EditorState.SAVING
        try:
            payload = schema.clean(copy.deepcopy(self.draft))
            writes = [asyncio.to_thread(self.db.set_document, schema.content_collection, schema.content_doc, payload)]
            if schema.has_meta:
                writes.append(asyncio.to_thread(self.db.set_document, SECTIONS_COLLECTION, schema.meta_doc, dict(self.meta)))
            await asyncio.gather(*writes)
            logger.info(f"💾 {schema.label} data saved")
            self._flash(SAVE_OK_MESSAGE)
            return True
        except Exception as e:
            logger.error(f"❌ Failed to save {schema.key} data: {e}", exc_info=True)
            self._flash(SAVE_FAILED_MESSAGE)
            return False
        finally:
            self.state = EditorState.READY

    async def upload_image(
        self,
        path: Sequence[Any],
        content: bytes,
        filename: str = "upload",
        content_type: Optional[str] = None,
    ) -> Optional[str]:
        """Uploads an image and, on success only, stores its URL at `path` in the draft."""
        _, _, full_path = self._parent(path)
        if not any(match_pattern(pattern, full_path) for pattern in self.schema.image_fields):
            raise DraftError(f"{list(path)} is not an image field.")

        try:
            url = await asyncio.to_thread(self.uploader.upload_image, content, filename, content_type)
        except Exception as e:
            logger.error(f"❌ Image upload error: {e}", exc_info=True)
            self._flash(UPLOAD_ERROR_MESSAGE)
            return None

        if not url:
            self._flash(UPLOAD_FAILED_MESSAGE)
            return None

        # The draft may have been reloaded or edited while the upload ran.
        try:
            parent, key, _ = self._parent(full_path)
        except DraftError:
            logger.warning(f"⚠️ {self.schema.label} field {list(path)} is gone; uploaded image not applied.")
            self._flash(UPLOAD_FAILED_MESSAGE)
            return None

        parent[key] = url
        self._flash(UPLOAD_OK_MESSAGE)
        return url


class EditorRegistry:
    """Keeps one editor per (console session, section); editors never share state."""

    def __init__(
        self,
        db_provider: Callable[[], DatabaseManager],
        uploader: AssetUploader,
        message_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.db_provider = db_provider
        self.uploader = uploader
        self.message_ttl = message_ttl
        self.clock = clock
        self._editors: Dict[Tuple[str, str], ContentEditor] = {}

    def get(self, session_id: str, section: str) -> ContentEditor:
        schema = get_schema(section)
        if schema is None:
            raise UnknownSectionError(section)
        key = (session_id, section)
        if key not in self._editors:
            self._editors[key] = ContentEditor(
                schema, self.db_provider(), self.uploader, message_ttl=self.message_ttl, clock=self.clock
            )
        return self._editors[key]

    def discard(self, session_id: str) -> None:
        for key in [key for key in self._editors if key[0] == session_id]:
            del self._editors[key]
