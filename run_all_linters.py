#!/usr/bin/env python3
"""Run formatters, linters and the test suite in one go.

Steps, in order: black, isort, ruff, pylint, pytest. Pass ``--fix`` to let
black and isort rewrite files instead of only checking them.
"""

from pathlib import Path
import subprocess
import sys

ROOT = Path(__file__).parent
PACKAGES = ["app", "core", "infrastructure", "main.py"]


def run_step(cmd: list[str], title: str) -> bool:
    """Run `cmd` from the repository root and print its output."""
    print(f"\n{'=' * 60}\n{title}: {' '.join(cmd)}\n{'=' * 60}")
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, check=False, cwd=ROOT)
    except OSError as ex:
        print(f"FAILED to start: {ex}")
        return False
    output = (proc.stdout + proc.stderr).strip()
    if output:
        print(output)
    ok = proc.returncode == 0
    print("OK" if ok else f"FAILED (exit {proc.returncode})")
    return ok


def main() -> None:
    fix = "--fix" in sys.argv[1:]
    py = sys.executable
    steps = [
        ([py, "-m", "black", "."] + ([] if fix else ["--check"]), "black"),
        ([py, "-m", "isort", "."] + ([] if fix else ["--check-only"]), "isort"),
        ([py, "-m", "ruff", "check", "."], "ruff"),
        ([py, "-m", "pylint", *PACKAGES], "pylint"),
        ([py, "-m", "pytest", "-q"], "pytest"),
    ]
    results = [(title, run_step(cmd, title)) for cmd, title in steps]

    print(f"\n{'=' * 60}\nSummary\n{'=' * 60}")
    for title, ok in results:
        print(f"{title:<8} {'passed' if ok else 'FAILED'}")
    sys.exit(0 if all(ok for _, ok in results) else 1)


if __name__ == "__main__":
    main()
