import anyio
import sandgate as sg


async def main():
	cfg = sg.Config(adapter="docker")
	gw = sg.AsyncGateway(config=cfg)
	proc = await gw.ensure_running()
	print(proc)
	outcome = await gw.sync()
	print(outcome.to_dict())


if __name__ == "__main__":
	anyio.run(main)
