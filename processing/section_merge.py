# processing/section_merge.py
"""Key-based merging of document sections.

Lists in a mythology document are sets keyed by a natural identity field.
Merging a regenerated section into an existing one keeps the original order,
replaces colliding entries in place with the regenerated version and appends
entries with new keys. Nothing from the original is dropped.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel

from models.myth_models import (
    DOCUMENT_SECTIONS,
    Analysis,
    AncientLanguage,
    Extras,
    PartialMythDocument,
    UnparsedSection,
    WorldMap,
)
from utils.text_processing import normalize_key

logger = structlog.get_logger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

KeyFn = Callable[[Any], object]

# (section model, field) -> identity of each list entry
LIST_IDENTITY: dict[tuple[type[BaseModel], str], KeyFn] = {
    (WorldMap, "locations"): lambda item: item.name,
    (Analysis, "timeline"): lambda item: item.title,
    (Analysis, "symbols"): lambda item: item.symbol,
    (Analysis, "characters"): lambda item: item.name,
    (Analysis, "thematic_density"): lambda item: item.section,
    (Analysis, "relationships"): lambda item: (
        f"{normalize_key(item.source)}|{normalize_key(item.target)}|{normalize_key(item.type)}"
    ),
    (AncientLanguage, "vocabulary"): lambda item: item.word,
    (Extras, "artifacts"): lambda item: item.name,
}


def entity_identity(entity: Any) -> object:
    return entity.name


def merge_by_key(
    original: Iterable[T], generated: Iterable[T], key: Callable[[T], object]
) -> list[T]:
    """Union two lists by ``key``; generated entries win on collision.

    Keys are compared case-insensitively after trimming. Entries whose key
    is blank are kept from the original and ignored from the generated side.
    """
    merged: list[T] = []
    positions: dict[str, int] = {}
    for item in original:
        identity = normalize_key(key(item))
        if not identity:
            merged.append(item)
            continue
        if identity in positions:
            continue
        positions[identity] = len(merged)
        merged.append(item)
    for item in generated:
        identity = normalize_key(key(item))
        if not identity:
            continue
        if identity in positions:
            merged[positions[identity]] = item
        else:
            positions[identity] = len(merged)
            merged.append(item)
    return merged


def _fingerprint(item: Any) -> str:
    if isinstance(item, BaseModel):
        return item.model_dump_json()
    return json.dumps(item, sort_keys=True, default=str)


def union_unique(original: Iterable[T], generated: Iterable[T]) -> list[T]:
    """Concatenate two lists, dropping exact duplicates."""
    merged: list[T] = []
    seen: set[str] = set()
    for item in [*original, *generated]:
        fingerprint = _fingerprint(item)
        if fingerprint not in seen:
            seen.add(fingerprint)
            merged.append(item)
    return merged


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def merge_models(original: M, generated: M) -> M:
    """Merge two section models field by field."""
    updates: dict[str, Any] = {}
    model_cls = type(original)
    for name in model_cls.model_fields:
        old = getattr(original, name)
        new = getattr(generated, name)
        key_fn = LIST_IDENTITY.get((model_cls, name))
        if key_fn is not None:
            updates[name] = merge_by_key(old, new, key_fn)
        elif isinstance(old, list):
            updates[name] = union_unique(old, new)
        elif isinstance(old, BaseModel) and isinstance(new, BaseModel):
            updates[name] = merge_models(old, new)
        elif not _is_blank(new):
            updates[name] = new
    for name, value in (generated.model_extra or {}).items():
        if not _is_blank(value):
            updates[name] = value
    return original.model_copy(update=updates)


def dedupe_models(section: M) -> M:
    """Drop duplicate entries from every keyed list of ``section``."""
    updates = {
        name: merge_by_key(getattr(section, name), [], key_fn)
        for (model_cls, name), key_fn in LIST_IDENTITY.items()
        if model_cls is type(section)
    }
    return section.model_copy(update=updates) if updates else section


def merge_section(name: str, original: Any, generated: Any) -> Any:
    if name == "entities":
        return merge_by_key(original, generated, entity_identity)
    return merge_models(original, generated)


def merge_partial_documents(
    base: PartialMythDocument,
    update: PartialMythDocument,
    sections: Iterable[str] | None = None,
) -> PartialMythDocument:
    """Merge the parsed sections of ``update`` into ``base``.

    Sections absent or unparsed in ``update`` leave ``base`` untouched. An
    unparsed section in ``base`` is replaced by a parsed one from ``update``.
    """
    names = list(sections) if sections is not None else list(DOCUMENT_SECTIONS)
    replaced: dict[str, Any] = {}
    for name in names:
        if not update.is_present(name):
            continue
        new_value = update.get_section(name)
        if base.is_present(name):
            replaced[name] = merge_section(name, base.get_section(name), new_value)
        else:
            replaced[name] = new_value
    merged = base.replace_sections(**replaced)
    rejected: list[UnparsedSection] = [*base.rejected, *update.rejected]
    merged = merged.model_copy(update={"rejected": rejected})
    logger.debug("Merged sections into working document.", sections=sorted(replaced))
    return merged
