#!/usr/bin/env python3
"""Demo: stream a child's output with timestamps while it runs in the background."""

import sys

from supervised_process import ChildProcess, ProcessSpec, TimeDeltaFormatter

CODE = """
import time
for i in range(5):
    print(f"tick {i}", flush=True)
    time.sleep(0.2)
"""


def main() -> int:
    spec = ProcessSpec(
        sys.executable,
        ["-c", CODE],
        timeout_ms=5000,
        on_stdout_line=TimeDeltaFormatter(),
    )
    proc = ChildProcess(spec)
    exit_code = proc.watch().result()
    sys.stdout.write(proc.stdout.decode("utf-8", errors="replace"))
    print(f"exit code: {exit_code}, runtime: {proc.runtime:.2f}s")
    return 0 if exit_code == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
