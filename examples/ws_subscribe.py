"""Connect to the ledgergate tunnel, subscribe to ledger closes and print them."""

import argparse
import asyncio
import json

import websockets


async def run(host: str, streams: list[str]) -> None:
    url = f"{host}/ws"
    async with websockets.connect(url) as websocket:
        print(f"connected: {url}")
        await websocket.send(json.dumps({"id": 1, "command": "subscribe", "streams": streams}))
        async for message in websocket:
            if isinstance(message, bytes):
                message = message.decode("utf-8", errors="replace")
            print(message)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default="ws://127.0.0.1:10000")
    parser.add_argument("--stream", action="append", dest="streams", default=None)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    asyncio.run(run(args.host, args.streams or ["ledger"]))


if __name__ == "__main__":
    main()
