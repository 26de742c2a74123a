import logging
import os
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from eda_mcp.config import OPENLANE_PROJECTS_DIR, WORKSPACE_ROOT
from eda_mcp.errors import WorkspaceNotFoundError

logger = logging.getLogger(__name__)


class WorkspaceKind(str, Enum):
    SYNTHESIS = "synthesis"
    SIMULATION = "simulation"
    OPENLANE = "openlane"


@dataclass
class WorkspaceRecord:
    id: str
    directory: str
    kind: WorkspaceKind
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


class WorkspaceManager:
    """
    Process-wide registry of per-invocation project directories.

    Records are never evicted and directories are left on disk when the
    server exits. Only create/get/write_artifact/lock are exposed so the
    storage policy can change without touching the drivers.
    """

    def __init__(self, scratch_root: str = WORKSPACE_ROOT, openlane_root: str = OPENLANE_PROJECTS_DIR):
        self.scratch_root = os.path.abspath(scratch_root)
        self.openlane_root = os.path.abspath(openlane_root)
        self._records: Dict[str, WorkspaceRecord] = {}
        self._lock = threading.Lock()

    def _directory_for(self, kind: WorkspaceKind, project_id: str, name: Optional[str]) -> str:
        if kind == WorkspaceKind.OPENLANE:
            safe_name = "".join(c for c in (name or "") if c.isalnum() or c in ("-", "_")) or "design"
            return os.path.join(self.openlane_root, f"{safe_name}_{project_id}")
        if kind == WorkspaceKind.SIMULATION:
            return os.path.join(self.scratch_root, f"sim_project_{project_id}")
        return os.path.join(self.scratch_root, f"project_{project_id}")

    def create(self, kind: WorkspaceKind, name: Optional[str] = None) -> WorkspaceRecord:
        kind = WorkspaceKind(kind)
        with self._lock:
            project_id = uuid.uuid4().hex[:12]
            while project_id in self._records:
                project_id = uuid.uuid4().hex[:12]
            directory = self._directory_for(kind, project_id, name)
            os.makedirs(directory, exist_ok=True)
            record = WorkspaceRecord(id=project_id, directory=directory, kind=kind)
            self._records[project_id] = record
        logger.info("Created %s workspace %s at %s", kind.value, project_id, directory)
        return record

    def get(self, project_id: str) -> Optional[WorkspaceRecord]:
        with self._lock:
            return self._records.get(project_id)

    def resolve_path(self, record: WorkspaceRecord, relative_path: str) -> str:
        """Joins a caller-supplied path onto the workspace, refusing anything that escapes it."""
        root = os.path.realpath(record.directory)
        path = os.path.realpath(os.path.join(root, relative_path))
        if os.path.commonpath([root, path]) != root:
            raise ValueError(f"Path '{relative_path}' escapes project {record.id}")
        return path

    def write_artifact(self, project_id: str, relative_path: str, content: str) -> str:
        record = self.get(project_id)
        if record is None:
            raise WorkspaceNotFoundError(project_id)
        path = self.resolve_path(record, relative_path)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        return path

    @contextmanager
    def lock(self, project_id: str):
        """Serialises calls that operate on the same workspace."""
        record = self.get(project_id)
        if record is None:
            raise WorkspaceNotFoundError(project_id)
        with record.lock:
            yield record
