from __future__ import annotations

import subprocess
import time
from dataclasses import dataclass
from typing import List, Mapping, Optional

import anyio


@dataclass
class RunOutput:
	stdout: bytes
	stderr: bytes
	exit_code: int
	duration_s: float


async def run_capture(cmd: List[str], timeout: Optional[float] = None, cwd: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> RunOutput:
	start = time.monotonic()
	# raises TimeoutError when the deadline passes
	with anyio.fail_after(timeout):
		proc = await anyio.run_process(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, check=False, cwd=cwd, env=env)
	dur = time.monotonic() - start
	return RunOutput(stdout=proc.stdout, stderr=proc.stderr, exit_code=proc.returncode, duration_s=dur)


def spawn_detached(cmd: List[str], env: Mapping[str, str], cwd: str) -> subprocess.Popen:
	return subprocess.Popen(
		cmd,
		env=dict(env),
		cwd=cwd,
		stdin=subprocess.DEVNULL,
		stdout=subprocess.DEVNULL,
		stderr=subprocess.DEVNULL,
		start_new_session=True,
	)
