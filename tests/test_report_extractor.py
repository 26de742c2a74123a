"""
Tests for report parsing and run-directory summaries.
"""

import os
import tempfile
import unittest

from eda_mcp.tools import report_extractor as rx

SYNTH_STAT = """
=== counter ===

   Number of wires:                 12
   Number of cells:                 27
     sky130_fd_sc_hd__dfxtp_2        4

   Chip area for module '\\counter': 187.680000
"""

STA_REPORT = """
===========================================================================
report_worst_slack -max (Setup)
============================================================================
wns -1.25
tns -3.70
"""

POWER_REPORT = """
Group                  Internal  Switching    Leakage      Total
                          Power      Power      Power      Power (Watts)
----------------------------------------------------------------
Sequential             1.10e-05   2.00e-06   1.00e-10   1.30e-05  65.0%
Combinational          5.00e-06   2.00e-06   1.00e-10   7.00e-06  35.0%
----------------------------------------------------------------
Total                  1.60e-05   4.00e-06   2.00e-10   2.00e-05 100.0%
"""


def _write(path, content):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


class TestParsers(unittest.TestCase):
    def test_cell_count(self):
        self.assertEqual(rx.parse_cell_count(SYNTH_STAT), 27)
        self.assertIsNone(rx.parse_cell_count("no cells here"))

    def test_wns(self):
        self.assertEqual(rx.parse_wns(STA_REPORT), -1.25)
        self.assertEqual(rx.parse_wns("WNS: 0.42 ns"), 0.42)
        self.assertIsNone(rx.parse_wns("timing report without slack"))

    def test_chip_area(self):
        self.assertAlmostEqual(rx.parse_chip_area(SYNTH_STAT), 187.68)
        self.assertIsNone(rx.parse_chip_area(""))

    def test_total_power_in_milliwatts(self):
        self.assertAlmostEqual(rx.parse_total_power_mw(POWER_REPORT), 0.02)
        self.assertIsNone(rx.parse_total_power_mw("Total power unknown"))

    def test_max_frequency(self):
        self.assertEqual(rx.max_frequency_mhz(10.0, 0.5), 100.0)
        self.assertEqual(rx.max_frequency_mhz(10.0, -2.5), 80.0)
        self.assertIsNone(rx.max_frequency_mhz(None, 0.5))
        self.assertIsNone(rx.max_frequency_mhz(10.0, None))


class TestRunDirectory(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.runs_dir = os.path.join(self._tmp.name, "runs")
        self.run_dir = os.path.join(self.runs_dir, "RUN_2024.05.01_10.00.00")

    def tearDown(self):
        self._tmp.cleanup()

    def test_latest_run_is_lexicographically_last(self):
        for name in ["RUN_2024.05.01_10.00.00", "RUN_2024.06.01_09.00.00", "RUN_2024.05.30_23.59.59"]:
            os.makedirs(os.path.join(self.runs_dir, name))
        self.assertEqual(rx.latest_run_name(self.runs_dir), "RUN_2024.06.01_09.00.00")

    def test_latest_run_missing_or_empty(self):
        self.assertIsNone(rx.latest_run_name(self.runs_dir))
        os.makedirs(self.runs_dir)
        self.assertIsNone(rx.latest_run_name(self.runs_dir))

    def test_find_final_gds(self):
        self.assertIsNone(rx.find_final_gds(self.run_dir))
        _write(os.path.join(self.run_dir, "final", "gds", "counter.gds"), "GDS")
        _write(os.path.join(self.run_dir, "final", "gds", "notes.txt"), "")
        self.assertTrue(rx.find_final_gds(self.run_dir).endswith("counter.gds"))

    def test_full_summary(self):
        _write(os.path.join(self.run_dir, "reports", "synthesis", "1-synthesis.stat.rpt"), SYNTH_STAT)
        _write(os.path.join(self.run_dir, "reports", "routing", "29-rcx_sta.max.rpt"), "wns 0.35\n")
        _write(os.path.join(self.run_dir, "reports", "routing", "29-rcx_power.rpt"), POWER_REPORT)
        _write(os.path.join(self.run_dir, "final", "final.summary.rpt"), "Flow complete\n")

        summary = rx.extract_report_summary(self.run_dir, clock_period_ns=10.0)
        data = summary.to_dict()

        self.assertEqual(data["ppa_metrics"]["total_cells"], 27)
        self.assertEqual(data["ppa_metrics"]["timing_slack_ns"], 0.35)
        self.assertEqual(data["ppa_metrics"]["max_frequency_mhz"], 100.0)
        self.assertAlmostEqual(data["ppa_metrics"]["power_mw"], 0.02)
        self.assertEqual(data["design_status"], {
            "synthesis_complete": True,
            "timing_clean": True,
            "routing_complete": True,
        })
        self.assertEqual(data["summary"]["status"], "SUCCESS")
        self.assertEqual(data["summary"]["issues"], [])
        self.assertEqual(set(data["reports"]), {"synthesis", "timing", "final_summary"})

    def test_each_metric_degrades_independently(self):
        _write(os.path.join(self.run_dir, "reports", "synthesis", "1-synthesis.stat.rpt"), "garbage without numbers")
        _write(os.path.join(self.run_dir, "reports", "routing", "timing.rpt"), "wns -0.8\n")

        data = rx.extract_report_summary(self.run_dir).to_dict()

        self.assertTrue(data["design_status"]["synthesis_complete"])
        self.assertIsNone(data["ppa_metrics"]["total_cells"])
        self.assertEqual(data["ppa_metrics"]["timing_slack_ns"], -0.8)
        self.assertFalse(data["design_status"]["timing_clean"])
        self.assertFalse(data["design_status"]["routing_complete"])
        self.assertIsNone(data["ppa_metrics"]["power_mw"])
        self.assertIsNone(data["ppa_metrics"]["max_frequency_mhz"])
        self.assertEqual(data["summary"]["status"], "ISSUES_FOUND")
        self.assertEqual(data["summary"]["issues"], ["Timing violations detected", "Routing incomplete"])

    def test_empty_run_reports_everything_missing(self):
        os.makedirs(self.run_dir)
        data = rx.extract_report_summary(self.run_dir).to_dict()
        self.assertTrue(all(v is None for v in data["ppa_metrics"].values()))
        self.assertEqual(len(data["summary"]["issues"]), 3)
        self.assertEqual(data["reports"], {})

    def test_long_reports_are_truncated_with_marker(self):
        _write(os.path.join(self.run_dir, "final", "final.summary.rpt"), "x" * 5000)
        data = rx.extract_report_summary(self.run_dir).to_dict()
        final = data["reports"]["final_summary"]
        self.assertTrue(final.endswith("...(truncated)"))
        self.assertEqual(len(final), 3000 + len("...(truncated)"))

    def test_report_type_filters_previews_only(self):
        _write(os.path.join(self.run_dir, "reports", "synthesis", "1-synthesis.stat.rpt"), SYNTH_STAT)
        _write(os.path.join(self.run_dir, "final", "final.summary.rpt"), "done")
        data = rx.extract_report_summary(self.run_dir).to_dict("synthesis")
        self.assertEqual(list(data["reports"]), ["synthesis"])
        self.assertTrue(data["design_status"]["routing_complete"])

    def test_summary_is_idempotent(self):
        _write(os.path.join(self.run_dir, "reports", "synthesis", "1-synthesis.stat.rpt"), SYNTH_STAT)
        _write(os.path.join(self.run_dir, "reports", "routing", "sta.rpt"), STA_REPORT)
        first = rx.extract_report_summary(self.run_dir, 10.0).to_dict()
        second = rx.extract_report_summary(self.run_dir, 10.0).to_dict()
        self.assertEqual(first, second)


if __name__ == "__main__":
    unittest.main()
