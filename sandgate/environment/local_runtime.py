"""Environment backed by the machine (or container) this process runs in."""

from __future__ import annotations

import logging
import shlex
import subprocess
from typing import Dict, List, Mapping, Optional, Sequence

import anyio

from sandgate.errors import SGProcessError, SGTimeout
from sandgate.types import CommandResult, ProcessDescriptor, ProcessStatus
from sandgate.utils.proc import run_capture, spawn_detached

from .base import SandboxEnvironment

logger = logging.getLogger(__name__)


def _popen_status(proc: subprocess.Popen) -> ProcessStatus:
    code = proc.poll()
    if code is None:
        return "running"
    return "stopped" if code == 0 else "failed"


class LocalEnvironment(SandboxEnvironment):
    """Runs commands with ``sh -c`` and tracks the processes it started.

    With ``discover=True`` the registry also includes every other process
    ``ps`` reports, so a gateway started by an earlier invocation is found.
    """

    name = "local"

    def __init__(self, shell: str = "/bin/sh", discover: bool = False):
        self.shell = shell
        self.discover = discover
        self._procs: Dict[int, subprocess.Popen] = {}

    async def exec(self, command: str, timeout: Optional[float] = None) -> CommandResult:
        try:
            out = await run_capture([self.shell, "-c", command], timeout=timeout)
        except TimeoutError:
            raise SGTimeout(f"Command timed out after {timeout}s: {command}")
        return CommandResult(
            stdout=out.stdout.decode("utf-8", "ignore"),
            stderr=out.stderr.decode("utf-8", "ignore"),
            exit_code=out.exit_code,
            duration_s=out.duration_s,
        )

    async def list_processes(self) -> List[ProcessDescriptor]:
        processes = [
            ProcessDescriptor(pid=pid, command_line=shlex.join(proc.args), status=_popen_status(proc))
            for pid, proc in self._procs.items()
        ]
        # exited processes are reported once, then forgotten
        for proc in processes:
            if proc.status != "running":
                self._procs.pop(proc.pid, None)
        if self.discover:
            try:
                scanned = await self.scan_processes()
            except Exception as e:
                logger.warning("Process scan failed, listing started processes only: %s", e)
                scanned = []
            known = {p.pid for p in processes}
            processes.extend(p for p in scanned if p.pid not in known)
        return processes

    async def start_process(
        self,
        command: Sequence[str],
        env: Mapping[str, str],
        workdir: str
    ) -> ProcessDescriptor:
        argv = list(command)
        try:
            proc = await anyio.to_thread.run_sync(spawn_detached, argv, env, workdir)
        except OSError as e:
            raise SGProcessError(f"Failed to start {shlex.join(argv)}: {e}") from e
        self._procs[proc.pid] = proc
        logger.debug("Started pid %s: %s", proc.pid, shlex.join(argv))
        return ProcessDescriptor(pid=proc.pid, command_line=shlex.join(argv), status=_popen_status(proc))
