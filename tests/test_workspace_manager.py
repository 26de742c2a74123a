import os
import tempfile
import threading

import pytest

from eda_mcp.errors import WorkspaceNotFoundError
from eda_mcp.utils.workspace_manager import WorkspaceKind, WorkspaceManager


def _manager(root):
    return WorkspaceManager(scratch_root=os.path.join(root, "scratch"), openlane_root=os.path.join(root, "openlane"))


def test_created_ids_are_distinct_and_resolve_to_existing_dirs():
    with tempfile.TemporaryDirectory() as root:
        manager = _manager(root)
        records = [manager.create(WorkspaceKind.SYNTHESIS) for _ in range(50)]

        ids = [r.id for r in records]
        assert len(set(ids)) == len(ids)
        assert len({r.directory for r in records}) == len(records)
        for record in records:
            found = manager.get(record.id)
            assert found is record
            assert os.path.isdir(found.directory)


def test_directory_naming_per_kind():
    with tempfile.TemporaryDirectory() as root:
        manager = _manager(root)
        synth = manager.create(WorkspaceKind.SYNTHESIS)
        sim = manager.create(WorkspaceKind.SIMULATION)
        flow = manager.create(WorkspaceKind.OPENLANE, name="counter")

        assert os.path.basename(synth.directory) == f"project_{synth.id}"
        assert os.path.basename(sim.directory) == f"sim_project_{sim.id}"
        assert os.path.basename(flow.directory) == f"counter_{flow.id}"
        assert flow.directory.startswith(os.path.join(os.path.abspath(root), "openlane"))
        assert flow.kind == WorkspaceKind.OPENLANE


def test_openlane_name_is_sanitized():
    with tempfile.TemporaryDirectory() as root:
        manager = _manager(root)
        record = manager.create(WorkspaceKind.OPENLANE, name="../evil name")
        assert os.path.dirname(record.directory) == os.path.join(os.path.abspath(root), "openlane")
        assert os.path.basename(record.directory) == f"evilname_{record.id}"


def test_get_unknown_id_returns_none():
    with tempfile.TemporaryDirectory() as root:
        assert _manager(root).get("does-not-exist") is None


def test_write_artifact_creates_parents_and_rejects_escape():
    with tempfile.TemporaryDirectory() as root:
        manager = _manager(root)
        record = manager.create(WorkspaceKind.SIMULATION)

        path = manager.write_artifact(record.id, "sub/dir/design.v", "module m; endmodule")
        assert os.path.isfile(path)
        with open(path, "r", encoding="utf-8") as f:
            assert f.read() == "module m; endmodule"

        with pytest.raises(ValueError):
            manager.write_artifact(record.id, "../outside.v", "x")
        with pytest.raises(WorkspaceNotFoundError):
            manager.write_artifact("unknown", "design.v", "x")


def test_concurrent_create_and_get():
    with tempfile.TemporaryDirectory() as root:
        manager = _manager(root)
        ids = []
        ids_lock = threading.Lock()

        def worker():
            for _ in range(20):
                record = manager.create(WorkspaceKind.SIMULATION)
                assert manager.get(record.id) is record
                with ids_lock:
                    ids.append(record.id)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(ids) == 160
        assert len(set(ids)) == 160


def test_lock_unknown_id_raises():
    with tempfile.TemporaryDirectory() as root:
        manager = _manager(root)
        with pytest.raises(WorkspaceNotFoundError):
            with manager.lock("missing"):
                pass
