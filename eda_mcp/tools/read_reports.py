import json
import logging
import os
from typing import Optional

from eda_mcp.errors import EDAServerError
from eda_mcp.tools.report_extractor import REPORT_CATEGORIES, extract_report_summary, list_runs
from eda_mcp.tools.run_openlane import CONFIG_FILE, RUNS_DIR
from eda_mcp.utils.envelope import failure, project_not_found
from eda_mcp.utils.text import read_text
from eda_mcp.utils.workspace_manager import WorkspaceKind, WorkspaceManager

logger = logging.getLogger(__name__)


def _clock_period(project_dir: str) -> Optional[float]:
    text = read_text(os.path.join(project_dir, CONFIG_FILE))
    if text is None:
        return None
    try:
        value = json.loads(text).get("CLOCK_PERIOD")
    except (ValueError, AttributeError):
        return None
    return float(value) if isinstance(value, (int, float)) else None


def read_openlane_reports(workspaces: WorkspaceManager, project_id: str, report_type: Optional[str] = None):
    """
    Summarises the latest OpenLane run of a project: PPA metrics, per-phase
    status and report previews. Recomputed from disk on every call.
    """
    if workspaces.get(project_id) is None:
        return project_not_found(project_id)

    report_type = (report_type or "").strip().lower() or None
    if report_type and report_type not in REPORT_CATEGORIES:
        return failure(
            f"Unknown report_type '{report_type}'. Valid values: {', '.join(sorted(REPORT_CATEGORIES))}",
            project_id=project_id,
        )

    try:
        with workspaces.lock(project_id) as record:
            if record.kind != WorkspaceKind.OPENLANE:
                return failure(
                    f"Project {project_id} is a {record.kind.value} project; reports come from OpenLane runs.",
                    project_id=project_id,
                )

            runs_dir = os.path.join(record.directory, RUNS_DIR)
            if not os.path.isdir(runs_dir):
                return failure("No runs directory found. Run OpenLane flow first.", project_id=project_id)
            runs = list_runs(runs_dir)
            if not runs:
                return failure("No OpenLane runs found. Run OpenLane flow first.", project_id=project_id)

            latest_run = runs[-1]
            summary = extract_report_summary(
                os.path.join(runs_dir, latest_run),
                clock_period_ns=_clock_period(record.directory),
            )
            response = {"project_id": project_id, "run_id": latest_run, "success": True}
            response.update(summary.to_dict(report_type))
            return response
    except (EDAServerError, OSError, ValueError) as exc:
        logger.warning("read_openlane_reports failed for %s: %s", project_id, exc)
        return failure(exc, project_id=project_id)
