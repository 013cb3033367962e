"""In-memory file tree that stages mutations before they reach disk.

Every stage of the release pipeline writes through a ``VirtualTree`` so
that a dry run can show exactly what would change without touching the
working copy. Pending changes are flushed to disk in a single explicit
step.
"""

from __future__ import annotations

import difflib
from pathlib import Path

from .models import FileChange

# Sentinel content for a pending deletion
_DELETED = None


class VirtualTree:
    """Accumulates file writes and deletes relative to a workspace root."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self._pending: dict[str, str | None] = {}

    def _disk_path(self, path: str) -> Path:
        return self.root / path

    def read(self, path: str) -> str | None:
        """Return the current content of path, including pending writes."""
        if path in self._pending:
            return self._pending[path]
        disk = self._disk_path(path)
        if disk.is_file():
            return disk.read_text()
        return None

    def exists(self, path: str) -> bool:
        return self.read(path) is not None

    def write(self, path: str, content: str) -> None:
        self._pending[path] = content

    def delete(self, path: str) -> None:
        self._pending[path] = _DELETED

    def list_changes(self) -> list[FileChange]:
        """List pending changes in the order they were first made.

        Writes that leave a file identical to its on-disk content are not
        changes and are omitted.
        """
        changes: list[FileChange] = []
        for path, content in self._pending.items():
            disk = self._disk_path(path)
            on_disk = disk.read_text() if disk.is_file() else None
            if content is _DELETED:
                if on_disk is not None:
                    changes.append(FileChange(path=path, type="DELETE"))
            elif on_disk is None:
                changes.append(FileChange(path=path, type="CREATE", content=content))
            elif on_disk != content:
                changes.append(FileChange(path=path, type="UPDATE", content=content))
        return changes

    def flush(self) -> list[str]:
        """Write all pending changes to disk and clear them.

        Returns:
            Paths that were created, updated or deleted.
        """
        changes = self.list_changes()
        for change in changes:
            disk = self._disk_path(change.path)
            if change.type == "DELETE":
                disk.unlink()
            else:
                disk.parent.mkdir(parents=True, exist_ok=True)
                disk.write_text(change.content or "")
        self._pending.clear()
        return [change.path for change in changes]


def print_changes(tree: VirtualTree, dry_run: bool) -> None:
    """Print pending changes as CREATE/UPDATE/DELETE lines with diffs."""
    marker = " [dry-run]" if dry_run else ""
    print()
    for change in tree.list_changes():
        print(f"{change.type} {change.path}{marker}")
        if change.type == "DELETE":
            continue
        disk = tree.root / change.path
        before = disk.read_text() if change.type == "UPDATE" else ""
        diff = difflib.unified_diff(
            before.splitlines(keepends=True),
            (change.content or "").splitlines(keepends=True),
            fromfile=f"a/{change.path}",
            tofile=f"b/{change.path}",
        )
        for line in diff:
            print(f"  {line.rstrip()}")
