"""Base class for the sandbox environment primitives the gateway relies on."""

from __future__ import annotations

import shlex
from abc import ABC, abstractmethod
from typing import List, Mapping, Optional, Sequence

from sandgate.errors import SGMountError, SGProcessError
from sandgate.types import CommandResult, ProcessDescriptor, ProcessStatus

# -ww: never truncate args to the terminal width
PS_COMMAND = "ps -ww -eo pid=,stat=,args="


def ps_status(stat: str) -> ProcessStatus:
    """Map a ps STAT code onto a process status."""
    # Z (zombie), X (dead) and T (stopped) have no exit code to inspect
    if stat[:1] in ("Z", "X", "T"):
        return "stopped"
    return "running"


def parse_ps(output: str) -> List[ProcessDescriptor]:
    processes = []
    for line in output.splitlines():
        parts = line.split(None, 2)
        if len(parts) < 3 or not parts[0].isdigit():
            continue
        pid, stat, args = parts
        processes.append(ProcessDescriptor(pid=int(pid), command_line=args, status=ps_status(stat)))
    return processes


class SandboxEnvironment(ABC):
    """Abstract base class for shell, process and volume operations."""

    name = "abstract"

    @abstractmethod
    async def exec(self, command: str, timeout: Optional[float] = None) -> CommandResult:
        """Run a shell command and wait for it to finish."""
        pass

    @abstractmethod
    async def list_processes(self) -> List[ProcessDescriptor]:
        """List background processes known to the environment."""
        pass

    @abstractmethod
    async def start_process(
        self,
        command: Sequence[str],
        env: Mapping[str, str],
        workdir: str
    ) -> ProcessDescriptor:
        """Start a detached background process."""
        pass

    async def mount_volume(self, handle: str, path: str, read_only: bool = False) -> None:
        """Attach a durable volume at ``path``.

        The default binds ``handle`` (a path visible to the environment) onto
        ``path``. Raises SGMountError when the mount command fails.
        """
        options = "bind,ro" if read_only else "bind"
        cmd = f"mount -o {options} {shlex.quote(handle)} {shlex.quote(path)}"
        try:
            res = await self.exec(cmd)
        except Exception as e:
            raise SGMountError(f"Failed to mount {handle} at {path}: {e}") from e
        if not res.ok:
            detail = res.stderr.strip() or f"exit code {res.exit_code}"
            raise SGMountError(f"Failed to mount {handle} at {path}: {detail}")

    async def scan_processes(self) -> List[ProcessDescriptor]:
        """List every process visible to ``ps`` in the environment."""
        res = await self.exec(PS_COMMAND)
        if not res.ok:
            raise SGProcessError(f"ps failed: {res.stderr.strip()}", exit_code=res.exit_code)
        return [p for p in parse_ps(res.stdout) if PS_COMMAND not in p.command_line]
