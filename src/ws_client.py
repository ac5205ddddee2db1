"""Simple WebSocket client to watch the /ws stream of a running server."""
import argparse
import asyncio
import json
import websockets


async def watch(uri: str, count: int, pointer):
    print(f"Connecting to {uri}...")

    async with websockets.connect(uri) as websocket:
        print("Connected!")
        if pointer is not None:
            await websocket.send(json.dumps({"type": "pointer", "target": pointer}))

        for i in range(count):
            data = json.loads(await websocket.recv())

            if data["type"] == "state":
                payload = data["payload"]
                print(f"\n--- Message {i+1} ---")
                print(f"Tick: {payload['tick']}, particles: {len(payload['particles'])}")
                if payload['particles']:
                    p = payload['particles'][0]
                    print(f"First particle: x={p['x']:.2f}, y={p['y']:.2f}, species={p['species']}")
                m = payload['metrics']
                print(f"Kinetic energy: {m['kinetic_energy']:.2f}, overlaps: {m['collisions']}")
            else:
                print(f"Unexpected message: {data}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Print a few frames from the state stream")
    parser.add_argument("--uri", default="ws://127.0.0.1:8000/ws")
    parser.add_argument("--count", type=int, default=3)
    parser.add_argument("--pointer", type=float, nargs=2, default=None, metavar=("X", "Y"))
    args = parser.parse_args()
    asyncio.run(watch(args.uri, args.count, args.pointer))
