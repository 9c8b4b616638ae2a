"""Change-detection models comparing two schema snapshots."""

from enum import Enum
from typing import Optional

from pydantic import Field

from catalog_analyser.models.schema import CatalogModel, ObjectIdentity


class ChangeStatus(str, Enum):
    """Classification of one object between two snapshots."""

    UNCHANGED = "unchanged"
    MODIFIED = "modified"
    ADDED = "added"
    REMOVED = "removed"


class ObjectChange(CatalogModel):
    """Records the classification and before/after hashes of one object."""

    identity: ObjectIdentity
    status: ChangeStatus
    old_hash: Optional[str] = None
    new_hash: Optional[str] = None


class SchemaDiff(CatalogModel):
    """Diff between a previous snapshot and a fast snapshot."""

    changes: list[ObjectChange] = Field(default_factory=list)

    def _with_status(self, status: ChangeStatus) -> list[ObjectIdentity]:
        return [change.identity for change in self.changes if change.status == status]

    @property
    def added(self) -> list[ObjectIdentity]:
        return self._with_status(ChangeStatus.ADDED)

    @property
    def modified(self) -> list[ObjectIdentity]:
        return self._with_status(ChangeStatus.MODIFIED)

    @property
    def removed(self) -> list[ObjectIdentity]:
        return self._with_status(ChangeStatus.REMOVED)

    @property
    def unchanged(self) -> list[ObjectIdentity]:
        return self._with_status(ChangeStatus.UNCHANGED)

    def needs_analysis(self) -> list[ObjectIdentity]:
        """Identities that must be re-analysed (added or modified), in diff order."""
        return [
            change.identity
            for change in self.changes
            if change.status in (ChangeStatus.ADDED, ChangeStatus.MODIFIED)
        ]

    @property
    def has_changes(self) -> bool:
        return any(change.status != ChangeStatus.UNCHANGED for change in self.changes)

    def summary(self) -> dict[str, list[str]]:
        """Object ids grouped by status, for reporting."""
        result: dict[str, list[str]] = {status.value: [] for status in ChangeStatus}
        for change in self.changes:
            result[change.status.value].append(change.identity.object_id)
        return result
