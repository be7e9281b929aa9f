#!/usr/bin/env python3
"""Basic example demonstrating Tile38 Python client usage."""

import asyncio
from tile38 import Tile38


async def main():
    # Connect to Tile38 server
    db = await Tile38.connect("localhost", 9851, pool_size=4)
    print("Connected!")

    # Store a few points
    await db.set("fleet", "truck1", "FIELD", "speed", 45, "POINT", 33.5123, -112.2693)
    await db.set("fleet", "truck2", "FIELD", "speed", 60, "POINT", 33.4626, -112.1695)
    await db.expire("fleet", "truck2", 300)
    print(f"truck2 expires in {await db.ttl('fleet', 'truck2')}s")

    # Fetch one object
    truck = await db.get("fleet", "truck1", "WITHFIELDS")
    if truck is not None:
        print(f"truck1: {truck.object} speed={truck.field_value('speed')}")

    missing = await db.get("fleet", "truck9")
    print(f"truck9: {missing}")

    # Scan the collection
    result = await db.scan("fleet", "IDS")
    print(f"{result.count} trucks: {result.ids}")

    # Watch a geofence
    print("\nWatching trucks near Phoenix...")
    print("(SET trucks from another client to see events)")
    print("Press Ctrl+C to exit.\n")

    try:
        async with await db.live("NEARBY", "fleet", "FENCE", "POINT", 33.462, -112.268, 6000) as feed:
            async for event in feed:
                print(f"{event.detect}: {event.id} at {event.time} {event.object}")
    except KeyboardInterrupt:
        pass
    finally:
        await db.close()


if __name__ == "__main__":
    asyncio.run(main())
