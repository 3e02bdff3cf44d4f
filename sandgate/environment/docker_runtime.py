"""Docker SDK implementation of the sandbox environment."""

from __future__ import annotations

import logging
import os
import shlex
import time
from typing import Dict, List, Mapping, Optional, Sequence

import anyio
import docker
from docker import DockerClient
from docker.errors import APIError, NotFound

from sandgate.errors import SGProcessError, SGTimeout
from sandgate.types import CommandResult, ProcessDescriptor, ProcessStatus

from .base import SandboxEnvironment, ps_status

# Suppress Docker SDK debug logs
logging.getLogger('docker.utils.config').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# how long start_process waits for a detached exec to report its pid
PID_WAIT = 1.0


def _exec_status(info: dict) -> ProcessStatus:
    if info.get('Running'):
        return "running"
    exit_code = info.get('ExitCode')
    if not info.get('Pid') and exit_code is None:
        return "starting"
    return "stopped" if exit_code == 0 else "failed"


def _exec_command_line(info: dict) -> str:
    config = info.get('ProcessConfig') or {}
    argv = [config.get('entrypoint', '')] + list(config.get('arguments') or [])
    return shlex.join([a for a in argv if a])


class DockerEnvironment(SandboxEnvironment):
    """Runs commands inside one running container via the Docker SDK."""

    name = "docker"

    def __init__(self, container: str, base_url: Optional[str] = None, shell: str = "/bin/sh"):
        # Use environment variable or default Docker socket
        base_url = base_url or os.environ.get("DOCKER_HOST", "unix://var/run/docker.sock")
        self.client: DockerClient = docker.DockerClient(base_url=base_url)
        self.container = container
        self.shell = shell
        # exec id -> last pid reported for it
        self._execs: Dict[str, int] = {}

        # Test connection
        try:
            self.client.ping()
        except Exception as e:
            raise RuntimeError(f"Failed to connect to Docker daemon: {e}")

    def _exec_blocking(self, command: str) -> CommandResult:
        start_time = time.time()
        try:
            exec_id = self.client.api.exec_create(
                container=self.container,
                cmd=[self.shell, "-c", command],
                stdout=True,
                stderr=True,
            )['Id']
            stdout, stderr = self.client.api.exec_start(exec_id, stream=False, demux=True)
            exec_info = self.client.api.exec_inspect(exec_id)
        except NotFound:
            raise ValueError(f"Container {self.container} not found")
        return CommandResult(
            stdout=(stdout or b'').decode("utf-8", "ignore"),
            stderr=(stderr or b'').decode("utf-8", "ignore"),
            exit_code=exec_info.get('ExitCode') or 0,
            duration_s=time.time() - start_time,
        )

    def _start_blocking(self, argv: List[str], env: Mapping[str, str], workdir: str) -> ProcessDescriptor:
        try:
            exec_id = self.client.api.exec_create(
                container=self.container,
                cmd=argv,
                environment=dict(env),
                workdir=workdir,
            )['Id']
            self.client.api.exec_start(exec_id, detach=True)
            info = self._inspect_launched(exec_id)
        except (NotFound, APIError) as e:
            raise SGProcessError(f"Failed to start {shlex.join(argv)}: {e}") from e
        pid = info.get('Pid') or 0
        self._execs[exec_id] = pid
        logger.debug("Started exec %s (pid %s): %s", exec_id, pid, shlex.join(argv))
        return ProcessDescriptor(pid=pid, command_line=shlex.join(argv), status=_exec_status(info))

    def _inspect_launched(self, exec_id: str) -> dict:
        deadline = time.monotonic() + PID_WAIT
        info = self.client.api.exec_inspect(exec_id)
        while _exec_status(info) == "starting" and time.monotonic() < deadline:
            time.sleep(0.05)
            info = self.client.api.exec_inspect(exec_id)
        return info

    def _list_blocking(self) -> List[ProcessDescriptor]:
        processes = []
        for exec_id, launch_pid in list(self._execs.items()):
            try:
                info = self.client.api.exec_inspect(exec_id)
            except NotFound:
                # exec records vanish when the container restarts
                self._execs.pop(exec_id, None)
                continue
            pid = info.get('Pid') or launch_pid
            self._execs[exec_id] = pid
            processes.append(ProcessDescriptor(
                pid=pid,
                command_line=_exec_command_line(info),
                status=_exec_status(info),
            ))
        known = {p.pid for p in processes}
        processes.extend(p for p in self._top_blocking() if p.pid not in known)
        return processes

    def _top_blocking(self) -> List[ProcessDescriptor]:
        try:
            top = self.client.api.top(self.container, ps_args="-ww -eo pid,stat,args")
        except APIError as e:
            logger.warning("docker top failed for %s: %s", self.container, e)
            return []
        titles = top.get('Titles') or []
        try:
            pid_col, stat_col, args_col = (titles.index(t) for t in ("PID", "STAT", "COMMAND"))
        except ValueError:
            return []
        processes = []
        for row in top.get('Processes') or []:
            if not str(row[pid_col]).isdigit():
                continue
            processes.append(ProcessDescriptor(
                pid=int(row[pid_col]),
                command_line=row[args_col],
                status=ps_status(row[stat_col]),
            ))
        return processes

    async def exec(self, command: str, timeout: Optional[float] = None) -> CommandResult:
        # A timed out exec keeps running in the container; only the wait is abandoned.
        try:
            with anyio.fail_after(timeout):
                return await anyio.to_thread.run_sync(self._exec_blocking, command, abandon_on_cancel=True)
        except TimeoutError:
            raise SGTimeout(f"Command timed out after {timeout}s: {command}")

    async def list_processes(self) -> List[ProcessDescriptor]:
        return await anyio.to_thread.run_sync(self._list_blocking)

    async def start_process(
        self,
        command: Sequence[str],
        env: Mapping[str, str],
        workdir: str
    ) -> ProcessDescriptor:
        return await anyio.to_thread.run_sync(self._start_blocking, list(command), env, workdir)
