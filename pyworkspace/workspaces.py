"""Workspace records.

A workspace pairs a local folder with the archive it is published to.
Records are stored per browsing profile in a JSON file.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Protocol, Union

logger = logging.getLogger(__name__)


@dataclass
class WorkspaceRecord:
    """A workspace binding between a local folder and an archive."""

    profile_id: int
    """Browsing profile owning the workspace"""

    name: str
    """Workspace name"""

    local_files_path: Optional[str] = None
    """Local folder of the workspace"""

    publish_target_url: Optional[str] = None
    """dat:// URL of the archive the workspace publishes to"""

    local_files_path_is_missing: bool = False
    """Set by lookups when the local folder is unset or does not exist"""

    missing_local_files_path: Optional[str] = None
    """The configured local folder, when it does not exist"""

    def to_dict(self) -> dict:
        """Convert record to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "localFilesPath": self.local_files_path,
            "publishTargetUrl": self.publish_target_url,
        }

    @classmethod
    def from_dict(cls, profile_id: int, data: dict) -> "WorkspaceRecord":
        """Create WorkspaceRecord from a stored dictionary."""
        return cls(
            profile_id=profile_id,
            name=data.get("name", ""),
            local_files_path=data.get("localFilesPath"),
            publish_target_url=data.get("publishTargetUrl"),
        )


class WorkspaceStore(Protocol):
    """Lookup of workspace records."""

    def get(self, profile_id: int, name: str) -> Optional[WorkspaceRecord]:
        """Get a record by workspace name."""
        ...

    def get_by_publish_target_url(
        self, profile_id: int, url: str
    ) -> Optional[WorkspaceRecord]:
        """Get a record by the URL of its archive."""
        ...


class JsonWorkspaceStore:
    """Workspace records persisted in a JSON file.

    The file maps profile ids to lists of records::

        {"0": [{"name": "my-site", "localFilesPath": "...", ...}]}
    """

    def __init__(self, path: Union[str, Path]):
        """Initialize workspace store.

        Args:
            path: JSON file holding the records
        """
        self.path = Path(path)

    def _load(self) -> dict[str, list[dict[str, Any]]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to load workspaces from {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, list[dict[str, Any]]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def list(self, profile_id: int) -> list[WorkspaceRecord]:
        """List the workspaces of a profile, sorted by name."""
        records = self._load().get(str(profile_id), [])
        return sorted(
            (WorkspaceRecord.from_dict(profile_id, r) for r in records),
            key=lambda record: record.name,
        )

    def list_local_paths(self) -> List[str]:
        """List the local folders referenced by any workspace."""
        return [
            record["localFilesPath"]
            for records in self._load().values()
            for record in records
            if record.get("localFilesPath")
        ]

    def get(self, profile_id: int, name: str) -> Optional[WorkspaceRecord]:
        """Get a record by workspace name."""
        for record in self.list(profile_id):
            if record.name == name:
                return record
        return None

    def get_by_publish_target_url(
        self, profile_id: int, url: str
    ) -> Optional[WorkspaceRecord]:
        """Get a record by the URL of its archive (trailing "/" ignored)."""
        wanted = url.rstrip("/")
        for record in self.list(profile_id):
            if (record.publish_target_url or "").rstrip("/") == wanted:
                return record
        return None

    def set(self, profile_id: int, name: str, /, **values: Any) -> WorkspaceRecord:
        """Create or update a workspace.

        Args:
            profile_id: Browsing profile
            name: Workspace name
            **values: Fields to change (name, local_files_path,
                publish_target_url)

        Returns:
            The stored record
        """
        data = self._load()
        records = data.setdefault(str(profile_id), [])
        existing = next((r for r in records if r.get("name") == name), None)
        if existing is None:
            existing = {"name": name}
            records.append(existing)
        record = WorkspaceRecord.from_dict(profile_id, existing)
        if "name" in values:
            record.name = values["name"]
        if "local_files_path" in values:
            record.local_files_path = values["local_files_path"]
        if "publish_target_url" in values:
            record.publish_target_url = values["publish_target_url"]
        existing.clear()
        existing.update(record.to_dict())
        self._save(data)
        logger.debug(f"Saved workspace {record.name} for profile {profile_id}")
        return record

    def remove(self, profile_id: int, name: str) -> bool:
        """Remove a workspace.

        Returns:
            True if a record was removed
        """
        data = self._load()
        records = data.get(str(profile_id), [])
        remaining = [r for r in records if r.get("name") != name]
        if len(remaining) == len(records):
            return False
        data[str(profile_id)] = remaining
        self._save(data)
        return True

    def get_unused_name(self, profile_id: int) -> str:
        """Pick a name not used by any workspace of the profile."""
        used = {record.name for record in self.list(profile_id)}
        index = 1
        while f"workspace-{index}" in used:
            index += 1
        return f"workspace-{index}"
