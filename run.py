import argparse
import asyncio
import logging
import sys

from rpsnet.client import GameClient
from rpsnet.config import LOG_LEVEL, RPSNET_HOST, RPSNET_PORT
from rpsnet.server import GameServer

if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())


async def run_server(host: str, port: int):
    server = GameServer(host, port)
    server.start()
    try:
        await asyncio.Event().wait()
    finally:
        server.dispose()


async def run_client(name: str, host: str, port: int):
    client = GameClient(name, host, port, on_solution=lambda text: print(f"Result: {text}"))
    client.start()
    if not await client.wait_connected():
        print("Connection refused by server.")
        return

    print("Connected. Type Stein, Schere or Papier (empty line to quit).")
    try:
        while client.connected:
            move = (await asyncio.to_thread(sys.stdin.readline)).strip()
            if not move:
                break
            await client.send_local_move(move)
    finally:
        await client.leave()


def main():
    parser = argparse.ArgumentParser(description="Two-player rock/paper/scissors over TCP")
    parser.add_argument("role", choices=["server", "client"])
    parser.add_argument("name", nargs="?", default="Player", help="player name (client only)")
    parser.add_argument("--host", default=RPSNET_HOST)
    parser.add_argument("--port", type=int, default=RPSNET_PORT)
    args = parser.parse_args()

    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.role == "server":
            asyncio.run(run_server(args.host, args.port))
        else:
            asyncio.run(run_client(args.name, args.host, args.port))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
