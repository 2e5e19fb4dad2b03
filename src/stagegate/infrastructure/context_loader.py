"""
Filesystem project context loader.

Builds the immutable ProjectContext snapshot from the project directory
and the artifact store.
"""

import json
from pathlib import Path

from stagegate.domain.exceptions import ConfigurationError
from stagegate.domain.interfaces import (
    ArtifactStoreInterface,
    ProjectContextLoaderInterface,
)
from stagegate.domain.models import ProjectContext

RECENT_CHANGES_LIMIT = 5

# Entries that do not make a directory an existing project
_IGNORED_ENTRIES = {".git"}


class FilesystemProjectContextLoader(ProjectContextLoaderInterface):
    """
    Reads a project root plus the store's iteration history.

    Open issues come from ``<root>/<state_dir>/issues.json``: a list of
    strings, or of objects with a ``title`` and optional ``state``.
    """

    def __init__(self, store: ArtifactStoreInterface, state_dir: str = ".stagegate"):
        self._store = store
        self._state_dir = state_dir

    def load(self, project_id: str, root: str) -> ProjectContext:
        root_path = Path(root)
        iterations = self._store.get_iterations(project_id)

        return ProjectContext(
            project_id=project_id,
            root=str(root_path),
            has_existing_project=self._has_content(root_path) or bool(iterations),
            artifact_paths=tuple(self._store.get_paths(project_id)),
            open_issues=self._load_issues(root_path / self._state_dir / "issues.json"),
            recent_changes=tuple(
                r.summary or r.iteration_id
                for r in reversed(iterations[-RECENT_CHANGES_LIMIT:])
            ),
            current_iteration_id=iterations[-1].iteration_id if iterations else None,
        )

    def _has_content(self, root: Path) -> bool:
        if not root.is_dir():
            return False
        ignored = _IGNORED_ENTRIES | {self._state_dir}
        return any(entry.name not in ignored for entry in root.iterdir())

    def _load_issues(self, path: Path) -> tuple[str, ...]:
        if not path.exists():
            return ()

        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read {path}: {e}") from e

        if not isinstance(data, list):
            raise ConfigurationError(f"Expected list in {path}, got {type(data).__name__}")

        issues = []
        for item in data:
            if isinstance(item, str):
                issues.append(item)
            elif isinstance(item, dict) and "title" in item:
                if str(item.get("state", "open")).lower() != "closed":
                    issues.append(str(item["title"]))
            else:
                raise ConfigurationError(f"Invalid issue entry in {path}: {item!r}")
        return tuple(issues)
