"""Send a JSON-RPC request through ledgergate and print the response."""

import argparse
import asyncio
import json

import httpx


async def run(host: str, method: str, params: dict) -> None:
    async with httpx.AsyncClient(base_url=host, timeout=30) as client:
        response = await client.post("/", json={"method": method, "params": [params]})
    print(response.status_code)
    print(json.dumps(response.json(), indent=2))


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    parser.add_argument("--method", default="server_info")
    parser.add_argument("--params", default="{}", help="JSON object passed as params[0]")
    parser.add_argument("--host", default="http://127.0.0.1:10000")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    asyncio.run(run(args.host, args.method, json.loads(args.params)))


if __name__ == "__main__":
    main()
