"""Provenance tagging for entries in shared, multi-owner JSON documents.

Every value this installer writes into a shared document carries a
provenance field. Entries without it belong to someone else (the user,
the host application, other tooling) and are never modified or removed.

The owner field holds the plugin key (`<plugin>@<namespace>`), the same
key used in the enabled-plugin registry, so installs from different
source trees never claim each other's entries.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

PROVENANCE_FIELD = "_source"
PROVENANCE_TAG = "plugin-installer"
OWNER_FIELD = "_plugin"

T = TypeVar("T", bound=dict)


def is_tagged(entry: Any) -> bool:
    """Check whether a document entry was written by this installer."""
    return isinstance(entry, dict) and entry.get(PROVENANCE_FIELD) == PROVENANCE_TAG


def owned_by(entry: Any, owner: str) -> bool:
    """Check whether a tagged entry belongs to a plugin key.

    Tagged entries without an owner field predate per-plugin ownership and
    are treated as belonging to every plugin.
    """
    if not is_tagged(entry):
        return False
    current = entry.get(OWNER_FIELD)
    return current is None or current == owner


def in_namespace(entry: Any, namespace: str) -> bool:
    """Check whether a tagged entry was written for a namespace.

    Ownerless tagged entries belong to every namespace, as in owned_by.
    """
    if not is_tagged(entry):
        return False
    current = entry.get(OWNER_FIELD)
    return current is None or str(current).endswith(f"@{namespace}")


@dataclass(frozen=True)
class TaggedEntry(Generic[T]):
    """A document value owned by this installer.

    Attributes:
        value: The entry payload, without provenance fields.
        owner: Plugin key of the plugin that contributed the entry.
    """

    value: T
    owner: str | None = None

    def to_json(self) -> dict[str, Any]:
        """Render the entry with its provenance fields."""
        data = {k: v for k, v in self.value.items() if k not in (PROVENANCE_FIELD, OWNER_FIELD)}
        data[PROVENANCE_FIELD] = PROVENANCE_TAG
        if self.owner is not None:
            data[OWNER_FIELD] = self.owner
        return data

    @classmethod
    def from_json(cls, data: Any) -> TaggedEntry | None:
        """Parse a document entry.

        Returns:
            TaggedEntry if the entry carries this installer's tag, None otherwise.
        """
        if not is_tagged(data):
            return None
        value = {k: v for k, v in data.items() if k not in (PROVENANCE_FIELD, OWNER_FIELD)}
        return cls(value=value, owner=data.get(OWNER_FIELD))


def tag_all(entries: Iterable[dict[str, Any]], owner: str) -> list[dict[str, Any]]:
    """Tag fresh entries for insertion into a shared document."""
    return [TaggedEntry(value=entry, owner=owner).to_json() for entry in entries]


def strip_tagged(
    entries: list[Any], owner: str | None = None, namespace: str | None = None
) -> tuple[list[Any], int]:
    """Remove this installer's entries from a list, keeping order of the rest.

    Args:
        entries: Entries of one event key.
        owner: When set, only entries owned by this plugin key are removed.
        namespace: When set, only entries written for this namespace are removed.

    Returns:
        Tuple of (remaining entries, number removed).
    """
    if owner is not None:
        kept = [e for e in entries if not owned_by(e, owner)]
    elif namespace is not None:
        kept = [e for e in entries if not in_namespace(e, namespace)]
    else:
        kept = [e for e in entries if not is_tagged(e)]
    return kept, len(entries) - len(kept)
