import logging
import os

from eda_mcp.config import SIM_TIMEOUT_SEC
from eda_mcp.errors import EDAServerError
from eda_mcp.tools.process_runner import run_command
from eda_mcp.utils.envelope import failure
from eda_mcp.utils.text import preview
from eda_mcp.utils.workspace_manager import WorkspaceKind, WorkspaceManager

logger = logging.getLogger(__name__)

DESIGN_FILE = "design.v"
TESTBENCH_FILE = "testbench.v"
EXECUTABLE = "simulation"


def _vcd_files(directory: str):
    return sorted(f for f in os.listdir(directory) if f.endswith(".vcd"))


def simulate_verilog(workspaces: WorkspaceManager, verilog_code: str, testbench_code: str):
    """
    Compiles design + testbench with Icarus Verilog, then runs the result.

    A compile failure is returned as-is; the simulation step is not attempted.

    Returns:
        dict: {
            "project_id": str,
            "success": bool,
            "compile_stdout": str,
            "compile_stderr": str,
            "sim_stdout": str,
            "sim_stderr": str,
            "vcd_files": list,
            "note": str
        }
    """
    record = None
    stage = "prepare"
    try:
        record = workspaces.create(WorkspaceKind.SIMULATION)
        workspaces.write_artifact(record.id, DESIGN_FILE, verilog_code)
        workspaces.write_artifact(record.id, TESTBENCH_FILE, testbench_code)

        # 1. Compile
        stage = "compile"
        compiled = run_command(
            "iverilog",
            ["-o", EXECUTABLE, DESIGN_FILE, TESTBENCH_FILE],
            cwd=record.directory,
            timeout=SIM_TIMEOUT_SEC,
        )

        # 2. Run
        stage = "simulate"
        simulated = run_command(
            os.path.join(record.directory, EXECUTABLE),
            cwd=record.directory,
            timeout=SIM_TIMEOUT_SEC,
        )

        return {
            "project_id": record.id,
            "success": True,
            "compile_stdout": preview(compiled.stdout),
            "compile_stderr": preview(compiled.stderr),
            "sim_stdout": preview(simulated.stdout),
            "sim_stderr": preview(simulated.stderr),
            "vcd_files": _vcd_files(record.directory),
            "note": f"Use view_waveform with project_id: {record.id} to open GTKWave",
        }
    except (EDAServerError, OSError, ValueError) as exc:
        logger.warning("Simulation failed during %s: %s", stage, exc)
        return failure(exc, project_id=record.id if record else None, stage=stage)
