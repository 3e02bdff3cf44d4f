from __future__ import annotations

import logging
from typing import Optional

import typer
from rich import print

from sandgate.config import Config
from sandgate.core.gateway import Gateway
from sandgate.errors import GatewayStartError


app = typer.Typer(name="sandgate", help="Gateway supervisor and durable storage sync")
gateway_app = typer.Typer(name="gateway", help="Gateway process lifecycle")
storage_app = typer.Typer(name="storage", help="Durable volume mount and sync")

app.add_typer(gateway_app, name="gateway")
app.add_typer(storage_app, name="storage")

_state: dict = {}


@app.callback()
def main(adapter: Optional[str] = typer.Option(None, help="local or docker"), container: Optional[str] = typer.Option(None, help="Container id for the docker adapter"), log_level: str = typer.Option("INFO", "--log-level")):
	logging.basicConfig(
		level=getattr(logging, log_level.upper(), logging.INFO),
		format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
	)
	overrides = {}
	if adapter:
		overrides["adapter"] = adapter
	if container:
		overrides["container"] = container
	_state["config"] = Config(**overrides)


def _gateway() -> Gateway:
	return Gateway(config=_state.get("config") or Config())


@gateway_app.command("ensure")
def gateway_ensure():
	gw = _gateway()
	try:
		proc = gw.ensure_running()
	except GatewayStartError as e:
		print({"ok": False, "error": str(e), "pid": e.pid, "status": e.last_status})
		raise typer.Exit(code=1)
	print({"ok": True, "pid": proc.pid, "status": proc.status, "storage": gw.supervisor.storage_mode})


@gateway_app.command("status")
def gateway_status():
	proc = _gateway().status()
	if proc is None:
		print({"running": False})
		return
	print({"running": proc.status == "running", "pid": proc.pid, "status": proc.status, "command": proc.command_line})


@storage_app.command("mount")
def storage_mount():
	print({"mounted": _gateway().ensure_mounted()})


@storage_app.command("sync")
def storage_sync():
	outcome = _gateway().sync()
	print(outcome.to_dict())
	if not outcome.success:
		raise typer.Exit(code=1)


if __name__ == "__main__":
	app()
