import os
import sys
import tempfile
import time

import pytest

from eda_mcp.errors import NonZeroExitError, OutputLimitError, ProcessLaunchError, ProcessTimeoutError
from eda_mcp.tools.process_runner import command_exists, format_command, run_command

PY = sys.executable


def test_run_command_captures_stdout_and_stderr():
    result = run_command(PY, ["-c", "import sys; print('hello'); sys.stderr.write('warn')"], timeout=30)
    assert result.returncode == 0
    assert result.stdout.strip() == "hello"
    assert result.stderr == "warn"
    assert result.command.startswith(PY)


def test_run_command_uses_cwd_and_env_overrides():
    with tempfile.TemporaryDirectory() as workspace:
        result = run_command(
            PY,
            ["-c", "import os; print(os.getcwd()); print(os.environ['EDA_TEST_VAR'])"],
            cwd=workspace,
            env={"EDA_TEST_VAR": "from-test"},
            timeout=30,
        )
        lines = result.stdout.splitlines()
        assert os.path.realpath(lines[0]) == os.path.realpath(workspace)
        assert lines[1] == "from-test"


def test_non_zero_exit_carries_stderr():
    with pytest.raises(NonZeroExitError) as excinfo:
        run_command(PY, ["-c", "import sys; sys.stderr.write('syntax error in design.v'); sys.exit(3)"], timeout=30)
    assert excinfo.value.returncode == 3
    assert "syntax error in design.v" in excinfo.value.stderr
    assert "syntax error in design.v" in str(excinfo.value)


def test_missing_binary_is_a_launch_error():
    with pytest.raises(ProcessLaunchError) as excinfo:
        run_command("definitely-not-an-eda-binary-xyz", ["--version"], timeout=5)
    assert "definitely-not-an-eda-binary-xyz" in str(excinfo.value)


def test_timeout_kills_process_and_names_command():
    with tempfile.TemporaryDirectory() as workspace:
        pid_file = os.path.join(workspace, "pid.txt")
        script = (
            "import os, time\n"
            f"open({pid_file!r}, 'w').write(str(os.getpid()))\n"
            "time.sleep(60)\n"
        )
        start = time.monotonic()
        with pytest.raises(ProcessTimeoutError) as excinfo:
            run_command(PY, ["-c", script], timeout=1.0)
        assert time.monotonic() - start < 30
        assert format_command(PY, ["-c", script]) in str(excinfo.value)
        assert "1000ms" in str(excinfo.value)

        with open(pid_file, "r", encoding="utf-8") as f:
            pid = int(f.read())
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)


def test_output_over_limit_is_a_failure():
    with pytest.raises(OutputLimitError) as excinfo:
        run_command(PY, ["-c", "import sys; sys.stdout.write('x' * 50000)"], timeout=30, max_output_bytes=1000)
    assert excinfo.value.stream == "stdout"


@pytest.mark.parametrize("bad_timeout", [0, -1, None])
def test_timeout_must_be_positive(bad_timeout):
    with pytest.raises(ValueError):
        run_command(PY, ["-c", "pass"], timeout=bad_timeout)


def test_command_exists():
    assert command_exists(PY)
    assert not command_exists("definitely-not-an-eda-binary-xyz")
