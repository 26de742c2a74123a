import logging
import os

from eda_mcp.config import SYNTH_TIMEOUT_SEC
from eda_mcp.errors import EDAServerError
from eda_mcp.tools.process_runner import run_command
from eda_mcp.utils.envelope import failure
from eda_mcp.utils.text import preview, read_text
from eda_mcp.utils.workspace_manager import WorkspaceKind, WorkspaceManager

logger = logging.getLogger(__name__)

DESIGN_FILE = "design.v"
SCRIPT_FILE = "synth.ys"
OUTPUT_FILE = "synth_output.v"
NOT_GENERATED = "Synthesis output not generated"

_SYNTH_COMMANDS = {
    "ice40": ["synth_ice40 -top {top}"],
    "xilinx": ["synth_xilinx -top {top}"],
    "generic": ["synth -top {top}", "techmap", "opt"],
}


def build_synth_script(top_module: str, target: str = "generic") -> str:
    """Yosys script for the target; unknown targets get the generic flow."""
    steps = _SYNTH_COMMANDS.get((target or "generic").lower(), _SYNTH_COMMANDS["generic"])
    lines = [f"read_verilog {DESIGN_FILE}", f"hierarchy -check -top {top_module}"]
    lines += [s.format(top=top_module) for s in steps]
    lines += [f"write_verilog {OUTPUT_FILE}", "stat"]
    return "\n".join(lines) + "\n"


def synthesize_verilog(workspaces: WorkspaceManager, verilog_code: str, top_module: str, target: str = "generic"):
    """
    Synthesizes Verilog with Yosys in a fresh project directory.

    Returns:
        dict: {
            "project_id": str,
            "success": bool,
            "stdout": str,
            "stderr": str,
            "synthesized_verilog": str,   # netlist text or NOT_GENERATED
            "target": str
        }
    """
    record = None
    try:
        record = workspaces.create(WorkspaceKind.SYNTHESIS)
        workspaces.write_artifact(record.id, DESIGN_FILE, verilog_code)
        script_path = workspaces.write_artifact(record.id, SCRIPT_FILE, build_synth_script(top_module, target))

        logger.info("Synthesizing %s for target %s (project %s)", top_module, target, record.id)
        result = run_command("yosys", ["-s", script_path], cwd=record.directory, timeout=SYNTH_TIMEOUT_SEC)

        # Netlists can be large, so they are read back from disk rather than stdout.
        netlist = read_text(os.path.join(record.directory, OUTPUT_FILE))
        return {
            "project_id": record.id,
            "success": True,
            "stdout": preview(result.stdout),
            "stderr": preview(result.stderr),
            "synthesized_verilog": netlist if netlist is not None else NOT_GENERATED,
            "target": target,
        }
    except (EDAServerError, OSError, ValueError) as exc:
        logger.warning("Synthesis of %s failed: %s", top_module, exc)
        return failure(
            exc,
            project_id=record.id if record else None,
            synthesized_verilog=NOT_GENERATED,
            target=target,
        )
