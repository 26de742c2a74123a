import logging
import os
from typing import Optional

from eda_mcp.errors import EDAServerError
from eda_mcp.tools.report_extractor import find_final_gds, latest_run_name
from eda_mcp.tools.run_openlane import RUNS_DIR
from eda_mcp.tools.viewers import (
    INSTALL_INSTRUCTIONS,
    KLAYOUT,
    LaunchStatus,
    SubprocessViewerLauncher,
    ViewerLauncher,
)
from eda_mcp.utils.envelope import failure, project_not_found
from eda_mcp.utils.workspace_manager import WorkspaceKind, WorkspaceManager

logger = logging.getLogger(__name__)


def view_gds(
    workspaces: WorkspaceManager,
    project_id: str,
    gds_file: Optional[str] = None,
    launcher: Optional[ViewerLauncher] = None,
):
    """
    Opens a GDSII layout in KLayout.

    Without `gds_file` the final GDS of the latest OpenLane run is used.
    """
    launcher = launcher or SubprocessViewerLauncher()
    if workspaces.get(project_id) is None:
        return project_not_found(project_id)

    try:
        with workspaces.lock(project_id) as record:
            if gds_file:
                gds_path = workspaces.resolve_path(record, gds_file)
            else:
                if record.kind != WorkspaceKind.OPENLANE:
                    return failure(
                        f"Project {project_id} is a {record.kind.value} project; pass gds_file explicitly.",
                        project_id=project_id,
                    )
                runs_dir = os.path.join(record.directory, RUNS_DIR)
                if not os.path.isdir(runs_dir):
                    return failure("No GDS files found in project. Run OpenLane flow first.", project_id=project_id)
                latest_run = latest_run_name(runs_dir)
                gds_path = find_final_gds(os.path.join(runs_dir, latest_run)) if latest_run else None

            if not gds_path:
                return failure("No GDS file found to open.", project_id=project_id)
            if not os.path.isfile(gds_path):
                return failure(f"GDS file not found: {gds_path}", project_id=project_id)

            if not launcher.is_available(KLAYOUT):
                return failure(
                    "KLayout not found. Please install KLayout to view GDS files.",
                    install_instructions=INSTALL_INSTRUCTIONS[KLAYOUT],
                    project_id=project_id,
                )

            outcome = launcher.launch(KLAYOUT, gds_path, cwd=record.directory)
            if outcome.status != LaunchStatus.LAUNCHED:
                return failure(
                    f"KLayout launch failed: {outcome.message}",
                    command_executed=outcome.command,
                    project_id=project_id,
                )

            return {
                "success": True,
                "message": "KLayout launched with GDS file",
                "gds_file": os.path.basename(gds_path),
                "gds_path": gds_path,
                "project_id": project_id,
                "command_executed": outcome.command,
            }
    except (EDAServerError, OSError, ValueError) as exc:
        logger.warning("view_gds failed for %s: %s", project_id, exc)
        return failure(exc, project_id=project_id)
