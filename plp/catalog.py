"""Registry of the editable item collections.

Every collection the admin panel edits item-by-item is declared here once:
the field that must be filled in for an item to count (blank ones are
drafts), the natural key used to correlate items that have no identity yet,
and the fields the backend insists on when an item is created.

Keeping the table in one place means route handlers, the reconciler and the
CLI all agree on what "the same item" means for a given collection.
"""
from __future__ import annotations

from dataclasses import dataclass


class CollectionNotFoundError(KeyError):
    """Raised when a collection name is not in the registry."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown collection: {self.name!r}"


@dataclass(frozen=True)
class CollectionSpec:
    """Static description of one item collection."""

    name: str
    required_field: str
    natural_key: tuple[str, ...]
    create_requires: tuple[str, ...] = ()
    label: str = ""


COLLECTIONS: dict[str, CollectionSpec] = {
    spec.name: spec
    for spec in (
        CollectionSpec(
            name="faculty",
            required_field="name",
            natural_key=("name", "term", "category"),
            create_requires=("name",),
            label="Faculty and special lecturers",
        ),
        CollectionSpec(
            name="benefits",
            required_field="title",
            natural_key=("title", "sectionTitle"),
            create_requires=("title", "description"),
            label="Course benefits",
        ),
        CollectionSpec(
            name="professors",
            required_field="sectionTitle",
            natural_key=("sectionTitle",),
            create_requires=("sectionTitle", "professors"),
            label="Operating professor sections",
        ),
        CollectionSpec(
            name="graduates",
            required_field="name",
            natural_key=("name", "term"),
            create_requires=("name", "term"),
            label="Graduates",
        ),
        CollectionSpec(
            name="schedules",
            required_field="title",
            natural_key=("title", "date", "category"),
            create_requires=("title", "date"),
            label="Schedules",
        ),
        CollectionSpec(
            name="objectives",
            required_field="title",
            natural_key=("title", "sectionTitle"),
            create_requires=("title", "description"),
            label="Course objectives",
        ),
        CollectionSpec(
            name="recommendations",
            required_field="name",
            natural_key=("name", "title"),
            create_requires=("name", "content"),
            label="Recommendations",
        ),
        CollectionSpec(
            name="notices",
            required_field="title",
            natural_key=("title",),
            create_requires=("title", "content"),
            label="Notices",
        ),
        CollectionSpec(
            name="gallery",
            required_field="title",
            natural_key=("title", "date", "term"),
            create_requires=("title", "imageUrl"),
            label="Gallery",
        ),
    )
}


def get_collection(name: str) -> CollectionSpec:
    """Return the spec for *name* or raise :class:`CollectionNotFoundError`."""
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise CollectionNotFoundError(name) from None
