import json
from typing import Any, Dict, List, Optional

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, Field, ValidationError

from eda_mcp.errors import ToolArgumentError
from eda_mcp.tools import read_reports, run_openlane, run_simulation, run_synthesis, view_gds, view_waveform
from eda_mcp.tools.viewers import SubprocessViewerLauncher, ViewerLauncher
from eda_mcp.utils.workspace_manager import WorkspaceManager


class SynthesizeVerilogArgs(BaseModel):
    verilog_code: str = Field(description="The Verilog source code to synthesize")
    top_module: str = Field(description="Name of the top-level module")
    target: str = Field(default="generic", description="Target technology (generic, ice40, xilinx, intel)")


class SimulateVerilogArgs(BaseModel):
    verilog_code: str = Field(description="The Verilog design code")
    testbench_code: str = Field(description="The testbench code")


class ViewWaveformArgs(BaseModel):
    project_id: str = Field(description="Project ID from simulation (required)")
    vcd_file: str = Field(default="output.vcd", description="VCD filename (default: output.vcd)")


class RunOpenlaneArgs(BaseModel):
    verilog_code: str = Field(description="The Verilog RTL code for ASIC implementation")
    design_name: str = Field(description="Name of the design (will be used for module and files)")
    clock_port: str = Field(default="clk", description="Name of the clock port")
    clock_period: float = Field(default=10.0, description="Clock period in nanoseconds")
    open_in_klayout: bool = Field(default=True, description="Automatically open result in KLayout")


class ViewGdsArgs(BaseModel):
    project_id: str = Field(description="Project ID from OpenLane run")
    gds_file: Optional[str] = Field(default=None, description="Specific GDS filename (optional, auto-detected if not provided)")


class ReadOpenlaneReportsArgs(BaseModel):
    project_id: str = Field(description="Project ID from OpenLane run")
    report_type: Optional[str] = Field(
        default=None,
        description="Report category to include (synthesis, timing, routing, final). Leave empty for all reports.",
    )


def _to_json(result: Dict[str, Any]) -> str:
    return json.dumps(result, indent=2)


def build_tools(workspaces: WorkspaceManager, launcher: Optional[ViewerLauncher] = None) -> List[BaseTool]:
    """
    Binds every flow driver to one workspace registry and viewer launcher.
    Each tool returns the driver's envelope serialised as JSON.
    """
    launcher = launcher or SubprocessViewerLauncher()

    def synthesize_verilog(verilog_code: str, top_module: str, target: str = "generic") -> str:
        return _to_json(run_synthesis.synthesize_verilog(workspaces, verilog_code, top_module, target))

    def simulate_verilog(verilog_code: str, testbench_code: str) -> str:
        return _to_json(run_simulation.simulate_verilog(workspaces, verilog_code, testbench_code))

    def view_waveform_tool(project_id: str, vcd_file: str = "output.vcd") -> str:
        return _to_json(view_waveform.view_waveform(workspaces, project_id, vcd_file, launcher=launcher))

    def run_openlane_tool(
        verilog_code: str,
        design_name: str,
        clock_port: str = "clk",
        clock_period: float = 10.0,
        open_in_klayout: bool = True,
    ) -> str:
        return _to_json(run_openlane.run_openlane(
            workspaces,
            verilog_code,
            design_name,
            clock_port=clock_port,
            clock_period=clock_period,
            open_in_klayout=open_in_klayout,
            launcher=launcher,
        ))

    def view_gds_tool(project_id: str, gds_file: Optional[str] = None) -> str:
        return _to_json(view_gds.view_gds(workspaces, project_id, gds_file or None, launcher=launcher))

    def read_openlane_reports(project_id: str, report_type: Optional[str] = None) -> str:
        return _to_json(read_reports.read_openlane_reports(workspaces, project_id, report_type))

    return [
        StructuredTool.from_function(
            func=synthesize_verilog,
            name="synthesize_verilog",
            description="Synthesize Verilog code using Yosys for various FPGA targets",
            args_schema=SynthesizeVerilogArgs,
        ),
        StructuredTool.from_function(
            func=simulate_verilog,
            name="simulate_verilog",
            description="Simulate Verilog code using Icarus Verilog",
            args_schema=SimulateVerilogArgs,
        ),
        StructuredTool.from_function(
            func=view_waveform_tool,
            name="view_waveform",
            description="Open VCD waveform file in GTKWave viewer",
            args_schema=ViewWaveformArgs,
        ),
        StructuredTool.from_function(
            func=run_openlane_tool,
            name="run_openlane",
            description=(
                "Run complete ASIC design flow using OpenLane (RTL to GDSII). "
                "This process can take up to 10 minutes."
            ),
            args_schema=RunOpenlaneArgs,
        ),
        StructuredTool.from_function(
            func=view_gds_tool,
            name="view_gds",
            description="Open GDSII file in KLayout viewer",
            args_schema=ViewGdsArgs,
        ),
        StructuredTool.from_function(
            func=read_openlane_reports,
            name="read_openlane_reports",
            description=(
                "Read OpenLane report files for LLM analysis. Returns PPA metrics, design status "
                "and report previews for the latest run, optionally limited to one report category."
            ),
            args_schema=ReadOpenlaneReportsArgs,
        ),
    ]


def validate_arguments(tool: BaseTool, arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Checks a call's arguments against the tool schema before anything runs.
    Missing or empty required parameters are reported by name.
    """
    arguments = dict(arguments or {})
    schema = tool.args_schema
    for name, field in schema.model_fields.items():
        if not field.is_required():
            # null on an optional parameter means "use the default"
            if name in arguments and arguments[name] is None:
                del arguments[name]
            continue
        value = arguments.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ToolArgumentError(tool.name, name)
    try:
        schema.model_validate(arguments)
    except ValidationError as exc:
        loc = exc.errors()[0].get("loc") or ("arguments",)
        raise ToolArgumentError(tool.name, ".".join(str(p) for p in loc), reason="Invalid parameter") from exc
    return arguments
