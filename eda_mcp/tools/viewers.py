import logging
import subprocess
import sys
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from eda_mcp.config import VIEWER_STARTUP_GRACE_SEC
from eda_mcp.tools.process_runner import command_exists, format_command

logger = logging.getLogger(__name__)

GTKWAVE = "gtkwave"
KLAYOUT = "klayout"

INSTALL_INSTRUCTIONS: Dict[str, Dict[str, str]] = {
    GTKWAVE: {
        "macos": "brew install gtkwave",
        "linux": "sudo apt-get install gtkwave",
        "windows": "Install GTKWave from http://gtkwave.sourceforge.net/",
    },
    KLAYOUT: {
        "macos": "brew install --cask klayout",
        "linux": "sudo apt-get install klayout",
        "windows": "Install KLayout from https://www.klayout.de/build.html",
    },
}


class LaunchStatus(str, Enum):
    LAUNCHED = "launched"
    NOT_AVAILABLE = "not_available"
    FAILED = "failed"


@dataclass
class LaunchOutcome:
    status: LaunchStatus
    command: str
    message: str = ""


class ViewerLauncher(ABC):
    """
    Capability to open a file in a GUI viewer.
    Drivers only see this interface so tests can swap in a fake.
    """

    @abstractmethod
    def is_available(self, viewer: str) -> bool:
        pass

    @abstractmethod
    def launch(self, viewer: str, path: str, cwd: Optional[str] = None) -> LaunchOutcome:
        pass


class SubprocessViewerLauncher(ViewerLauncher):
    """Starts the viewer detached from the server; it is never waited on beyond a short grace period."""

    def __init__(self, startup_grace_sec: float = VIEWER_STARTUP_GRACE_SEC):
        self.startup_grace_sec = startup_grace_sec

    def is_available(self, viewer: str) -> bool:
        return command_exists(viewer)

    def build_command(self, viewer: str, path: str) -> List[str]:
        if viewer == KLAYOUT and sys.platform == "darwin":
            return ["open", "-a", "KLayout", path]
        return [viewer, path]

    def launch(self, viewer: str, path: str, cwd: Optional[str] = None) -> LaunchOutcome:
        cmd = self.build_command(viewer, path)
        command_text = format_command(cmd[0], cmd[1:])
        if not self.is_available(viewer):
            return LaunchOutcome(LaunchStatus.NOT_AVAILABLE, command_text, f"{viewer} not found on PATH")

        try:
            proc = subprocess.Popen(
                cmd,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            logger.warning("Could not start %s: %s", viewer, exc)
            return LaunchOutcome(LaunchStatus.FAILED, command_text, str(exc))

        try:
            returncode = proc.wait(timeout=self.startup_grace_sec)
        except subprocess.TimeoutExpired:
            # Still running: the GUI is up. Reap it whenever it closes.
            threading.Thread(target=proc.wait, name=f"reap-{viewer}", daemon=True).start()
            return LaunchOutcome(LaunchStatus.LAUNCHED, command_text)

        if returncode != 0:
            return LaunchOutcome(LaunchStatus.FAILED, command_text, f"{viewer} exited with code {returncode}")
        # `open -a` hands off to the window server and exits 0
        return LaunchOutcome(LaunchStatus.LAUNCHED, command_text)
