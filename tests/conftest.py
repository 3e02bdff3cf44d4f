from __future__ import annotations

import itertools
import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

import pytest

from sandgate.config import GatewayConfig, StorageConfig
from sandgate.environment.base import SandboxEnvironment
from sandgate.types import CommandResult, ProcessDescriptor


def _mirror(src: Path, dst: Path) -> None:
    dst.mkdir(parents=True, exist_ok=True)
    wanted = {p.relative_to(src) for p in src.rglob("*")}
    for path in sorted(dst.rglob("*"), reverse=True):
        if path.relative_to(dst) not in wanted:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
    shutil.copytree(src, dst, dirs_exist_ok=True)


class FakeEnvironment(SandboxEnvironment):
    """Sandbox whose filesystem lives under a tmp dir.

    Understands the few shell commands the gateway code issues and keeps
    an in-memory process registry.
    """

    name = "fake"

    def __init__(self, root: Path):
        self.root = root
        self.commands: List[str] = []
        self.mounts: dict[str, str] = {}
        self.failures: dict[str, CommandResult] = {}
        self.rsync_stderr = ""
        self.rsync_exit = 0
        self.processes: List[ProcessDescriptor] = []
        self.started: List[dict] = []
        self.start_status = "running"
        self.status_script: List[str] = []
        self.start_error: Optional[Exception] = None
        self.list_error: Optional[Exception] = None
        self._pids = itertools.count(100)

    def path(self, p: str) -> Path:
        return self.root / p.lstrip("/")

    def fail(self, prefix: str, stderr: str = "error", exit_code: int = 1) -> None:
        self.failures[prefix] = CommandResult(stdout="", stderr=stderr, exit_code=exit_code)

    @property
    def mount_commands(self) -> List[str]:
        return [c for c in self.commands if c.startswith("mount -o")]

    async def exec(self, command: str, timeout: Optional[float] = None) -> CommandResult:
        self.commands.append(command)
        for prefix, result in self.failures.items():
            if command.startswith(prefix):
                return result
        if command.startswith("mount |"):
            needle = shlex.split(command.split("|")[1])[-1].strip()
            if needle in self.mounts:
                return CommandResult(stdout=f"{self.mounts[needle]} on {needle} type fuse (rw)\n", stderr="", exit_code=0)
            return CommandResult(stdout="not mounted\n", stderr="", exit_code=0)

        argv = shlex.split(command)
        if argv[0] == "mkdir":
            self.path(argv[-1]).mkdir(parents=True, exist_ok=True)
        elif argv[0] == "chmod":
            os.chmod(self.path(argv[-1]), int(argv[1], 8))
        elif argv[0] == "mount":
            self.mounts[argv[-1].rstrip("/")] = argv[-2]
        elif argv[0] == "ln":
            link = self.path(argv[-1])
            if link.is_symlink() or link.exists():
                link.unlink()
            link.symlink_to(self.path(argv[-2]))
        elif argv[0] == "rsync":
            _mirror(self.path(argv[-2]), self.path(argv[-1]))
            return CommandResult(stdout="sending incremental file list\n", stderr=self.rsync_stderr, exit_code=self.rsync_exit)
        else:
            return CommandResult(stdout="", stderr=f"{argv[0]}: not found", exit_code=127)
        return CommandResult(stdout="", stderr="", exit_code=0)

    async def list_processes(self) -> List[ProcessDescriptor]:
        if self.list_error:
            raise self.list_error
        if self.status_script:
            status = self.status_script.pop(0)
            started = {s["pid"] for s in self.started}
            self.processes = [
                ProcessDescriptor(p.pid, p.command_line, status) if p.pid in started else p
                for p in self.processes
            ]
        return list(self.processes)

    async def start_process(self, command: Sequence[str], env: Mapping[str, str], workdir: str) -> ProcessDescriptor:
        if self.start_error:
            raise self.start_error
        pid = next(self._pids)
        self.started.append({"pid": pid, "command": list(command), "env": dict(env), "workdir": workdir})
        proc = ProcessDescriptor(pid=pid, command_line=shlex.join(command), status=self.start_status)
        self.processes.append(proc)
        return ProcessDescriptor(pid=pid, command_line=proc.command_line, status="starting")


@pytest.fixture()
def fake_env(tmp_path):
    root = tmp_path / "sandbox"
    root.mkdir()
    return FakeEnvironment(root)


@pytest.fixture()
def storage_config():
    return StorageConfig(
        volume_name="demo",
        volume_handle="/volumes/demo",
        mount_path="/data/moltbot",
        state_subdir="openclaw",
        state_links=("/root/clawd/data",),
        local_state_dir="/root/.openclaw",
    )


@pytest.fixture()
def ephemeral_config():
    return StorageConfig(volume_name=None, volume_handle=None)


def make_gateway_config(**overrides) -> GatewayConfig:
    values = dict(
        api_keys={},
        gateway_token=None,
        environment_variables={},
        settle_delay=0,
        start_timeout=0,
        poll_interval=0.01,
    )
    values.update(overrides)
    return GatewayConfig(**values)


def _shell_available() -> bool:
    try:
        subprocess.run(["/bin/sh", "-c", "true"], check=True, timeout=5)
        return True
    except Exception:
        return False


def require_shell() -> None:
    if not _shell_available():
        pytest.skip("/bin/sh not available")


CONFIG_ENV_VARS = (
    "SG_ADAPTER", "SG_CONTAINER", "SG_VOLUME_NAME", "R2_BUCKET_NAME", "SG_VOLUME_HANDLE",
    "MOLTBOT_BUCKET", "SG_MOUNT_PATH", "ANTHROPIC_API_KEY", "OPENAI_API_KEY",
    "SG_GATEWAY_TOKEN", "MOLTBOT_GATEWAY_TOKEN", "SG_GATEWAY_ENV",
)


@pytest.fixture()
def clean_env(monkeypatch):
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
