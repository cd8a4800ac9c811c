"""Subprocess execution primitive shared by all process-invoking tools."""

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union


@dataclass(frozen=True)
class ProcessOutput:
    argv: List[str]
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False


def run_process(
    argv: Sequence[str],
    *,
    cwd: Union[str, Path],
    timeout_s: float,
    env: Optional[Dict[str, str]] = None,
) -> ProcessOutput:
    """
    Run argv (no shell) and capture its output.
    
    Never raises for process-level failures: a timeout or a missing
    executable comes back as exit_code -1 with the reason on stderr.
    """
    argv_list = [str(a) for a in argv]
    full_env = None
    if env:
        full_env = {**os.environ, **env}
    
    try:
        p = subprocess.run(
            argv_list,
            cwd=str(cwd),
            env=full_env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            timeout=timeout_s,
        )
    except subprocess.TimeoutExpired as e:
        stdout = e.stdout.decode("utf-8", "replace") if isinstance(e.stdout, bytes) else (e.stdout or "")
        return ProcessOutput(
            argv=argv_list,
            exit_code=-1,
            stdout=stdout,
            stderr=f"Execution timed out after {timeout_s:g} seconds",
            timed_out=True,
        )
    except OSError as e:
        return ProcessOutput(argv=argv_list, exit_code=-1, stdout="", stderr=str(e))
    
    return ProcessOutput(
        argv=argv_list,
        exit_code=p.returncode,
        stdout=p.stdout or "",
        stderr=p.stderr or "",
    )
