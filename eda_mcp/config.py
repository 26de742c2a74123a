import os
import tempfile
import time

from dotenv import load_dotenv

load_dotenv()


def _float_env(name, default):
    return float(os.environ.get(name, default))


# Scratch area for synthesis/simulation projects; one per server process.
WORKSPACE_ROOT = os.environ.get(
    "EDA_WORKSPACE_ROOT",
    os.path.join(tempfile.gettempdir(), f"eda_mcp_{int(time.time() * 1000)}"),
)
OPENLANE_PROJECTS_DIR = os.environ.get(
    "OPENLANE_PROJECTS_DIR",
    os.path.join(os.path.expanduser("~"), "openlane-projects"),
)

# Timeouts in seconds
FLOW_TIMEOUT_SEC = _float_env("EDA_FLOW_TIMEOUT_SEC", 600)
SYNTH_TIMEOUT_SEC = _float_env("EDA_SYNTH_TIMEOUT_SEC", 120)
SIM_TIMEOUT_SEC = _float_env("EDA_SIM_TIMEOUT_SEC", 60)
# How long a freshly spawned viewer must survive to count as launched
VIEWER_STARTUP_GRACE_SEC = _float_env("EDA_VIEWER_STARTUP_GRACE_SEC", 1.0)

MAX_OUTPUT_BYTES = int(os.environ.get("EDA_MAX_OUTPUT_BYTES", 10 * 1024 * 1024))
PREVIEW_CHARS = int(os.environ.get("EDA_PREVIEW_CHARS", 2000))
SUMMARY_PREVIEW_CHARS = int(os.environ.get("EDA_SUMMARY_PREVIEW_CHARS", 3000))

# Appended to PATH when running the long flow tools (Homebrew / local installs)
EXTRA_PATH = os.environ.get("EDA_EXTRA_PATH", "/usr/local/bin:/opt/homebrew/bin")
PYTHON_CANDIDATES = [
    c.strip() for c in os.environ.get("EDA_PYTHON_CANDIDATES", "python3,python").split(",") if c.strip()
]

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
