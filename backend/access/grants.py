"""
Feature grants and the authorization evaluator.

A grant is either ``PageLevel`` (unconditional access to the feature) or
``ActionScoped`` (access limited to a set of actions). The wire format encodes
page-level access as an empty ``actions`` list; inside the process the two
cases are always distinct types.

Everything here is pure: no database, no cache, no request.
"""
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Union


@dataclass(frozen=True)
class PageLevel:
    """Unconditional grant: every action on the feature is allowed."""

    def allows(self, action: str) -> bool:
        return True

    def merge(self, other: "Grant") -> "Grant":
        return self

    def to_actions(self) -> List[str]:
        return []


@dataclass(frozen=True)
class ActionScoped:
    actions: FrozenSet[str] = field(default_factory=frozenset)

    def allows(self, action: str) -> bool:
        return action in self.actions

    def merge(self, other: "Grant") -> "Grant":
        if isinstance(other, PageLevel):
            return other
        return ActionScoped(self.actions | other.actions)

    def to_actions(self) -> List[str]:
        return sorted(self.actions)


Grant = Union[PageLevel, ActionScoped]

PAGE_LEVEL = PageLevel()


def grant_from_actions(actions: Optional[Iterable[str]], is_page_level: bool = False) -> Grant:
    """
    Build a grant from a stored ``actions`` list.

    A page-level feature, or a grant stored with no actions, is unconditional.
    """
    actions = frozenset(a for a in (actions or []) if a)
    if is_page_level or not actions:
        return PAGE_LEVEL
    return ActionScoped(actions)


@dataclass(frozen=True)
class PermissionEntry:
    feature_slug: str
    feature_id: int
    grant: Grant

    def to_wire(self) -> dict:
        return {
            "feature_slug": self.feature_slug,
            "feature_id": self.feature_id,
            "actions": self.grant.to_actions(),
        }


class PermissionSet:
    """
    A user's resolved permissions, keyed by feature slug.

    Built as the union of grants over every active role assignment.
    There are no deny rules; adding a grant can only widen access.
    """

    def __init__(self, entries: Optional[Mapping[str, PermissionEntry]] = None):
        self._entries: Dict[str, PermissionEntry] = dict(entries or {})

    @classmethod
    def from_entries(cls, entries: Iterable[PermissionEntry]) -> "PermissionSet":
        permission_set = cls()
        for entry in entries:
            permission_set.add(entry)
        return permission_set

    @classmethod
    def from_wire(cls, items: Iterable[Mapping]) -> "PermissionSet":
        return cls.from_entries(
            PermissionEntry(
                feature_slug=item["feature_slug"],
                feature_id=item["feature_id"],
                grant=grant_from_actions(item.get("actions")),
            )
            for item in items
        )

    def add(self, entry: PermissionEntry) -> None:
        existing = self._entries.get(entry.feature_slug)
        if existing is None:
            self._entries[entry.feature_slug] = entry
            return
        self._entries[entry.feature_slug] = PermissionEntry(
            feature_slug=existing.feature_slug,
            feature_id=existing.feature_id,
            grant=existing.grant.merge(entry.grant),
        )

    def union(self, other: "PermissionSet") -> "PermissionSet":
        merged = PermissionSet(self._entries)
        for entry in other:
            merged.add(entry)
        return merged

    def get(self, slug: str) -> Optional[PermissionEntry]:
        return self._entries.get(slug)

    def __iter__(self):
        return iter(sorted(self._entries.values(), key=lambda e: e.feature_slug))

    def __len__(self):
        return len(self._entries)

    def __contains__(self, slug):
        return slug in self._entries

    def to_wire(self) -> List[dict]:
        return [entry.to_wire() for entry in self]


def has_feature(permissions: PermissionSet, slug: Optional[str]) -> bool:
    if not slug:
        return False
    return slug in permissions


def has_action(permissions: PermissionSet, slug: Optional[str], action: Optional[str]) -> bool:
    if not slug:
        return False
    entry = permissions.get(slug)
    if entry is None:
        return False
    return entry.grant.allows(action)


def can_access(permissions: PermissionSet, slug: Optional[str], action: Optional[str] = None) -> bool:
    if action:
        return has_action(permissions, slug, action)
    return has_feature(permissions, slug)
