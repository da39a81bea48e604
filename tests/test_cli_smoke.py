import subprocess
import sys


def test_cli_help() -> None:
    cp = subprocess.run(
        [sys.executable, "-m", "privmut", "--help"],
        check=True,
        capture_output=True,
        text=True,
    )
    assert "privmut" in cp.stdout.lower()
    assert "screen" in cp.stdout
