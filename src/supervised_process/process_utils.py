#!/usr/bin/env python3
"""Process table helpers backed by psutil."""

from __future__ import annotations

import psutil


def get_process_info(pid: int) -> str:
    """Describe a process and its children for diagnostics."""
    try:
        process = psutil.Process(pid)
        info = [f"Process {pid} ({process.name()})"]
        info.append(f"Status: {process.status()}")
        info.append(f"CPU Times: {process.cpu_times()}")
        info.append(f"Memory: {process.memory_info()}")

        children = process.children(recursive=True)
        if children:
            info.append("Child processes:")
            for child in children:
                info.append(f"  Child {child.pid} ({child.name()}) status={child.status()}")

        return "\n".join(info)
    except (OSError, psutil.Error):
        return f"Could not get process info for PID {pid}"


def process_exists(pid: int) -> bool:
    """True while ``pid`` is in the process table and not a zombie."""
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        return True
