import sandgate as sg


def main():
	gw = sg.Gateway(environment="local")
	print({"mounted": gw.ensure_mounted()})
	proc = gw.ensure_running()
	print({"pid": proc.pid, "status": proc.status})
	print(gw.sync().to_dict())


if __name__ == "__main__":
	main()
