import logging
import os
from typing import Optional

from eda_mcp.errors import EDAServerError
from eda_mcp.tools.viewers import (
    GTKWAVE,
    INSTALL_INSTRUCTIONS,
    LaunchStatus,
    SubprocessViewerLauncher,
    ViewerLauncher,
)
from eda_mcp.utils.envelope import failure, project_not_found
from eda_mcp.utils.workspace_manager import WorkspaceKind, WorkspaceManager

logger = logging.getLogger(__name__)

DEFAULT_VCD = "output.vcd"


def view_waveform(
    workspaces: WorkspaceManager,
    project_id: str,
    vcd_file: str = DEFAULT_VCD,
    launcher: Optional[ViewerLauncher] = None,
):
    """Opens a VCD produced by a simulation project in GTKWave."""
    launcher = launcher or SubprocessViewerLauncher()
    if workspaces.get(project_id) is None:
        return project_not_found(project_id, "Run a simulation first.")

    try:
        with workspaces.lock(project_id) as record:
            if record.kind != WorkspaceKind.SIMULATION:
                return failure(
                    f"Project {project_id} is a {record.kind.value} project; waveforms come from simulation projects.",
                    project_id=project_id,
                )

            vcd_path = workspaces.resolve_path(record, vcd_file or DEFAULT_VCD)
            if not os.path.isfile(vcd_path):
                available = sorted(f for f in os.listdir(record.directory) if f.endswith(".vcd"))
                return failure(
                    f"VCD file '{vcd_file}' not found in project {project_id}",
                    project_id=project_id,
                    available_vcd_files=available,
                    note="Make sure your testbench includes $dumpfile() and $dumpvars() commands",
                )

            if not launcher.is_available(GTKWAVE):
                return failure(
                    "GTKWave not found. Please install GTKWave to view waveforms.",
                    install_instructions=INSTALL_INSTRUCTIONS[GTKWAVE],
                    project_id=project_id,
                )

            outcome = launcher.launch(GTKWAVE, vcd_path, cwd=record.directory)
            if outcome.status != LaunchStatus.LAUNCHED:
                return failure(
                    f"GTKWave launch failed: {outcome.message}", command=outcome.command, project_id=project_id
                )

            return {
                "success": True,
                "message": f"GTKWave launched for project {project_id}",
                "vcd_file": vcd_file,
                "vcd_path": vcd_path,
                "project_type": record.kind.value,
            }
    except (EDAServerError, OSError, ValueError) as exc:
        logger.warning("view_waveform failed for %s: %s", project_id, exc)
        return failure(exc, project_id=project_id)
