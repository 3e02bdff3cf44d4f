from __future__ import annotations

import anyio
import pytest

from sandgate.environment.local_runtime import LocalEnvironment
from sandgate.errors import SGProcessError, SGTimeout

from conftest import require_shell


@pytest.fixture()
def local_env():
    require_shell()
    return LocalEnvironment()


def test_exec_captures_output_and_exit_code(local_env):
    res = anyio.run(local_env.exec, "echo out; echo err >&2; exit 3")
    assert res.stdout.strip() == "out"
    assert res.stderr.strip() == "err"
    assert res.exit_code == 3
    assert res.ok is False


@pytest.mark.timeout(30)
def test_exec_timeout(local_env):
    with pytest.raises(SGTimeout):
        anyio.run(local_env.exec, "sleep 5", 0.2)


@pytest.mark.timeout(30)
def test_started_process_is_listed_with_status(local_env, tmp_path):
    async def _inner():
        proc = await local_env.start_process(["sleep", "30"], {"PATH": "/usr/bin:/bin"}, str(tmp_path))
        try:
            listed = await local_env.list_processes()
            assert [p.pid for p in listed] == [proc.pid]
            assert listed[0].status == "running"
            assert listed[0].command_line == "sleep 30"
        finally:
            local_env._procs[proc.pid].kill()
            local_env._procs[proc.pid].wait()
        listed = await local_env.list_processes()
        assert listed[0].status == "failed"
        # reported once, then dropped from the registry
        assert await local_env.list_processes() == []

    anyio.run(_inner)


@pytest.mark.timeout(30)
def test_process_env_and_clean_exit(local_env, tmp_path):
    marker = tmp_path / "env.txt"

    async def _inner():
        proc = await local_env.start_process(
            ["/bin/sh", "-c", f'echo "$GATEWAY_MODE" > {marker}'],
            {"GATEWAY_MODE": "production"},
            str(tmp_path),
        )
        local_env._procs[proc.pid].wait()
        listed = await local_env.list_processes()
        assert listed[0].status == "stopped"

    anyio.run(_inner)
    assert marker.read_text().strip() == "production"


def test_start_missing_binary_raises(local_env, tmp_path):
    with pytest.raises(SGProcessError):
        anyio.run(local_env.start_process, ["/nonexistent/start-openclaw.sh"], {}, str(tmp_path))
