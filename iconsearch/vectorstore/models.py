"""Vector store data models and metadata projections."""

from typing import Any

from pydantic import BaseModel, Field

from iconsearch.catalog.models import ID_SEPARATOR, Icon, tags_from_name

LIST_FIELDS = ("tags", "synonyms")

MetadataValue = str | int | float | bool | list[str]
Filters = dict[str, str | list[str]]


class VectorStoreItem(BaseModel):
    """A vector and its metadata, stored under an icon id.

    Attributes:
        id: Icon identifier.
        embedding: The embedding vector.
        metadata: Filterable projection of the icon.
    """

    id: str = Field(min_length=1, description="Icon identifier")
    embedding: list[float] = Field(description="Embedding vector")
    metadata: dict[str, MetadataValue] = Field(
        default_factory=dict,
        description="Metadata projection",
    )


class VectorSearchHit(BaseModel):
    """Result from a vector similarity search.

    Attributes:
        id: Item identifier.
        score: Similarity score (higher is more similar).
        metadata: Stored metadata.
    """

    id: str = Field(description="Item identifier")
    score: float = Field(description="Similarity score")
    metadata: dict[str, MetadataValue] = Field(
        default_factory=dict,
        description="Item metadata",
    )


def icon_metadata(icon: Icon) -> dict[str, MetadataValue]:
    """Project an icon onto its filterable metadata."""
    return {
        "name": icon.name,
        "library": icon.library,
        "category": icon.category,
        "tags": list(icon.tags),
        "synonyms": list(icon.synonyms),
    }


def icon_to_item(icon: Icon, embedding: list[float]) -> VectorStoreItem:
    return VectorStoreItem(id=icon.id, embedding=embedding, metadata=icon_metadata(icon))


def flatten_metadata(metadata: dict[str, Any]) -> dict[str, str | int | float | bool]:
    """Comma-join list values for stores that only accept primitives."""
    flat: dict[str, str | int | float | bool] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            flat[key] = ",".join(str(v) for v in value)
        else:
            flat[key] = value
    return flat


def split_list_value(value: Any) -> list[str]:
    """Read a list field stored either as a list or a comma-joined string."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if str(v)]
    return []


def expand_metadata(metadata: dict[str, Any]) -> dict[str, MetadataValue]:
    """Inverse of ``flatten_metadata`` for the known list fields."""
    expanded: dict[str, MetadataValue] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        expanded[key] = split_list_value(value) if key in LIST_FIELDS else value
    return expanded


def merge_metadata(
    existing: dict[str, MetadataValue],
    update: dict[str, MetadataValue] | None,
) -> dict[str, MetadataValue]:
    """Overlay ``update`` on ``existing``; keys absent from the update survive."""
    return {**existing, **(update or {})}


def icon_from_metadata(icon_id: str, metadata: dict[str, Any]) -> Icon:
    """Rebuild an icon from stored metadata.

    Missing name and library are recovered from the ``library__name`` id;
    missing tags default to the parts of the name.
    """
    library_part, _, name_part = icon_id.partition(ID_SEPARATOR)
    if not name_part:
        name_part, library_part = icon_id, ""

    name = str(metadata.get("name") or name_part)
    library = str(metadata.get("library") or library_part)
    tags = (
        split_list_value(metadata["tags"])
        if metadata.get("tags") is not None
        else tags_from_name(name)
    )

    return Icon(
        id=icon_id,
        name=name,
        library=library,
        category=str(metadata.get("category") or ""),
        tags=tags,
        synonyms=split_list_value(metadata.get("synonyms")),
        svg="",
    )


def matches_filters(metadata: dict[str, Any], filters: Filters | None) -> bool:
    """Equality or membership match of every filter over metadata.

    A string filter value must equal the stored value; a list filter value
    must contain it. List-typed stored values match when any element does.
    """
    if not filters:
        return True

    for key, wanted in filters.items():
        stored = metadata.get(key)
        candidates = stored if isinstance(stored, list) else [stored]
        allowed = wanted if isinstance(wanted, list) else [wanted]
        if not any(value in allowed for value in candidates):
            return False
    return True
