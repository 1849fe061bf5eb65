"""Icon catalog data models."""

from pydantic import BaseModel, ConfigDict, Field

ID_SEPARATOR = "__"


def make_icon_id(library: str, name: str) -> str:
    """Library-qualified icon id, ``library__name``."""
    return f"{library}{ID_SEPARATOR}{name}"


def tags_from_name(name: str) -> list[str]:
    """Default tags: the hyphen-separated parts of an icon name."""
    return name.split("-") if "-" in name else [name]


class Icon(BaseModel):
    """Immutable catalog record.

    Attributes:
        id: Library-qualified unique identifier.
        name: Icon name within its library.
        library: Source collection identifier.
        category: Semantic category, may be empty.
        tags: Short descriptive strings.
        synonyms: Alternative names.
        svg: Raw markup, empty when fetched lazily.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Library-qualified icon id")
    name: str = Field(description="Icon name")
    library: str = Field(description="Source library")
    category: str = Field(default="", description="Semantic category")
    tags: list[str] = Field(default_factory=list, description="Tags")
    synonyms: list[str] = Field(default_factory=list, description="Synonyms")
    svg: str = Field(default="", description="SVG markup")

    def with_tag(self, tag: str) -> "Icon":
        """Return a copy of this icon with ``tag`` appended."""
        return self.model_copy(update={"tags": [*self.tags, tag]})

    def search_text(self) -> str:
        """Lowercase haystack used by substring search."""
        return " ".join([self.name, *self.tags, *self.synonyms]).lower()


class FilterOptions(BaseModel):
    """Search filters; each dimension is an OR-set, empty means unconstrained."""

    libraries: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    def matches(self, icon: Icon) -> bool:
        """Whether ``icon`` satisfies every non-empty dimension."""
        if self.libraries and icon.library not in self.libraries:
            return False
        if self.categories and icon.category not in self.categories:
            return False
        if self.tags and not any(tag in icon.tags for tag in self.tags):
            return False
        return True
