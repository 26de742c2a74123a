"""
Report extraction for OpenLane run directories.

Each parser is a pure `text -> Optional[value]` function so it can be checked
against literal report snippets. `extract_report_summary` reads whatever
files exist under one run and folds them into a ReportSummary; a missing or
unparsable file only leaves its own metric as None.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from eda_mcp.config import PREVIEW_CHARS, SUMMARY_PREVIEW_CHARS
from eda_mcp.utils.text import preview, read_text

SYNTH_STAT_REPORT = os.path.join("reports", "synthesis", "1-synthesis.stat.rpt")
ROUTING_REPORTS_DIR = os.path.join("reports", "routing")
FINAL_SUMMARY_REPORT = os.path.join("final", "final.summary.rpt")
FINAL_GDS_DIR = os.path.join("final", "gds")

# report_type value -> key in ReportSummary.reports
REPORT_CATEGORIES = {
    "synthesis": "synthesis",
    "timing": "timing",
    "routing": "timing",
    "final": "final_summary",
}

_CELLS_RE = re.compile(r"Number of cells:\s*(\d+)")
_WNS_RE = re.compile(r"WNS.*?(-?\d+\.?\d*)", re.IGNORECASE)
_AREA_RE = re.compile(r"Chip area for module .*:\s*([0-9.]+)", re.IGNORECASE)
# OpenSTA power table: Total <internal> <switching> <leakage> <total> 100.0%
_POWER_RE = re.compile(
    r"^\s*Total\s+[0-9.eE+-]+\s+[0-9.eE+-]+\s+[0-9.eE+-]+\s+([0-9.eE+-]+)\s+100",
    re.IGNORECASE | re.MULTILINE,
)


def parse_cell_count(text: str) -> Optional[int]:
    m = _CELLS_RE.search(text or "")
    return int(m.group(1)) if m else None


def parse_wns(text: str) -> Optional[float]:
    m = _WNS_RE.search(text or "")
    if not m:
        return None
    try:
        return float(m.group(1))
    except ValueError:
        return None


def parse_chip_area(text: str) -> Optional[float]:
    m = _AREA_RE.search(text or "")
    if not m:
        return None
    try:
        return float(m.group(1))
    except ValueError:
        return None


def parse_total_power_mw(text: str) -> Optional[float]:
    m = _POWER_RE.search(text or "")
    if not m:
        return None
    try:
        return float(m.group(1)) * 1e3
    except ValueError:
        return None


def max_frequency_mhz(clock_period_ns: Optional[float], wns_ns: Optional[float]) -> Optional[float]:
    if clock_period_ns is None or wns_ns is None or clock_period_ns <= 0:
        return None
    achieved_period = clock_period_ns - wns_ns if wns_ns < 0 else clock_period_ns
    if achieved_period <= 0:
        return None
    return round(1000.0 / achieved_period, 3)


def list_runs(runs_dir: str) -> List[str]:
    return sorted(os.listdir(runs_dir))


def latest_run_name(runs_dir: str) -> Optional[str]:
    """
    Lexicographically last entry of the runs directory.
    OpenLane prefixes run names with a timestamp, so name order is run order.
    """
    try:
        runs = list_runs(runs_dir)
    except OSError:
        return None
    return runs[-1] if runs else None


def find_final_gds(run_dir: str) -> Optional[str]:
    gds_dir = os.path.join(run_dir, FINAL_GDS_DIR)
    try:
        names = sorted(f for f in os.listdir(gds_dir) if f.endswith(".gds"))
    except OSError:
        return None
    return os.path.join(gds_dir, names[0]) if names else None


def _routing_file(run_dir: str, keywords) -> Optional[str]:
    routing_dir = os.path.join(run_dir, ROUTING_REPORTS_DIR)
    try:
        names = sorted(os.listdir(routing_dir))
    except OSError:
        return None
    for name in names:
        if any(k in name for k in keywords):
            path = os.path.join(routing_dir, name)
            if os.path.isfile(path):
                return path
    return None


@dataclass
class ReportSummary:
    metrics: Dict[str, Optional[float]] = field(default_factory=lambda: {
        "power_mw": None,
        "max_frequency_mhz": None,
        "total_cells": None,
        "logic_area_um2": None,
        "timing_slack_ns": None,
    })
    status_flags: Dict[str, bool] = field(default_factory=lambda: {
        "synthesis_complete": False,
        "timing_clean": False,
        "routing_complete": False,
    })
    reports: Dict[str, str] = field(default_factory=dict)

    @property
    def issues(self) -> List[str]:
        issues = []
        if not self.status_flags["synthesis_complete"]:
            issues.append("Synthesis incomplete")
        if not self.status_flags["timing_clean"]:
            issues.append("Timing violations detected")
        if not self.status_flags["routing_complete"]:
            issues.append("Routing incomplete")
        return issues

    @property
    def status(self) -> str:
        return "SUCCESS" if not self.issues else "ISSUES_FOUND"

    def to_dict(self, report_type: Optional[str] = None) -> Dict[str, Any]:
        reports = dict(self.reports)
        if report_type:
            key = REPORT_CATEGORIES[report_type]
            reports = {k: v for k, v in reports.items() if k == key}
        return {
            "ppa_metrics": dict(self.metrics),
            "design_status": dict(self.status_flags),
            "reports": reports,
            "summary": {
                "status": self.status,
                "issues": self.issues,
                "note": "PPA metrics and design status extracted from OpenLane reports",
            },
        }


def extract_report_summary(run_dir: str, clock_period_ns: Optional[float] = None) -> ReportSummary:
    summary = ReportSummary()

    synth_report = read_text(os.path.join(run_dir, SYNTH_STAT_REPORT))
    if synth_report is not None:
        summary.status_flags["synthesis_complete"] = True
        summary.reports["synthesis"] = preview(synth_report, PREVIEW_CHARS)
        summary.metrics["total_cells"] = parse_cell_count(synth_report)
        summary.metrics["logic_area_um2"] = parse_chip_area(synth_report)

    timing_path = _routing_file(run_dir, ("sta", "timing"))
    timing_report = read_text(timing_path) if timing_path else None
    if timing_report is not None:
        summary.reports["timing"] = preview(timing_report, PREVIEW_CHARS)
        wns = parse_wns(timing_report)
        if wns is not None:
            summary.metrics["timing_slack_ns"] = wns
            summary.status_flags["timing_clean"] = wns >= 0

    power_path = _routing_file(run_dir, ("power",))
    power_report = read_text(power_path) if power_path else None
    if power_report is not None:
        summary.metrics["power_mw"] = parse_total_power_mw(power_report)

    summary.metrics["max_frequency_mhz"] = max_frequency_mhz(clock_period_ns, summary.metrics["timing_slack_ns"])

    final_summary = read_text(os.path.join(run_dir, FINAL_SUMMARY_REPORT))
    if final_summary is not None:
        summary.reports["final_summary"] = preview(final_summary, SUMMARY_PREVIEW_CHARS)
        summary.status_flags["routing_complete"] = True

    return summary
