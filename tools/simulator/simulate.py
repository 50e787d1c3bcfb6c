#!/usr/bin/env python3
"""Ekinavi walker simulator.

Streams a synthetic heading trace to the server as if a phone were
recording a walk through a station, then stops, publishes the route and
prints the generated guide.

Usage:
    # Default walk at 10x speed
    python -m tools.simulator.simulate --server http://localhost:8000 --speed 10

    # Custom route: legs of "<move>:<seconds>", move in straight/left/right
    python -m tools.simulator.simulate --route straight:12,right:8,straight:40,left:8

    # Noisy compass with occasional glitch samples
    python -m tools.simulator.simulate --jitter 6 --glitch-rate 0.02
"""

from __future__ import annotations

import argparse
import asyncio
import json
import random
import sys
import time
from dataclasses import dataclass

import httpx

_TURNS = {"straight": 0.0, "right": 90.0, "left": -90.0}


@dataclass
class Leg:
    move: str
    seconds: float


@dataclass
class SimWalker:
    heading: float
    samples_sent: int = 0
    events: int = 0
    errors: int = 0


def parse_route(text: str) -> list[Leg]:
    legs = []
    for part in text.split(","):
        move, _, seconds = part.strip().partition(":")
        if move not in _TURNS:
            raise ValueError(f"unknown move {move!r}")
        legs.append(Leg(move=move, seconds=float(seconds or 10)))
    return legs


def heading_trace(
    legs: list[Leg],
    start_heading: float,
    interval_ms: int,
    jitter_deg: float,
    glitch_rate: float,
) -> list[tuple[float, int]]:
    """Generate (angle_deg, offset_ms) pairs for the whole walk."""
    trace = []
    heading = start_heading
    offset_ms = 0
    for leg in legs:
        heading = (heading + _TURNS[leg.move]) % 360
        for _ in range(int(leg.seconds * 1000 / interval_ms)):
            angle = heading + random.gauss(0, jitter_deg)
            # A glitch reads as if the walker briefly faced the old direction.
            if leg.move != "straight" and random.random() < glitch_rate:
                angle -= _TURNS[leg.move]
            trace.append((angle % 360, offset_ms))
            offset_ms += interval_ms
    return trace


async def post_json(client: httpx.AsyncClient, url: str, payload: dict) -> httpx.Response:
    return await client.post(
        url,
        content=json.dumps(payload),
        headers={"content-type": "application/json"},
    )


async def run_simulation(args: argparse.Namespace) -> None:
    """Run the full simulation."""
    legs = parse_route(args.route)
    walker = SimWalker(heading=random.uniform(0, 360))
    trace = heading_trace(legs, walker.heading, args.interval_ms, args.jitter, args.glitch_rate)
    base = f"{args.server}/api/v1"

    print(f"Starting walk: {len(legs)} legs, {len(trace)} samples")
    print(f"  Route: {args.route}")
    print(f"  Interval: {args.interval_ms} ms, speed x{args.speed}")
    print(f"  Server: {args.server}")
    print()

    start = time.monotonic()
    t0_ms = int(time.time() * 1000)

    async with httpx.AsyncClient(timeout=10.0) as client:
        resp = await post_json(client, f"{base}/recording/start",
                               {"initial_angle_deg": walker.heading})
        if resp.status_code != 200:
            print(f"Could not start recording: {resp.status_code} {resp.text}")
            sys.exit(1)

        for i in range(0, len(trace), args.batch):
            chunk = trace[i:i + args.batch]
            payload = {"samples": [
                {"angle_deg": round(angle, 2), "timestamp_ms": t0_ms + offset}
                for angle, offset in chunk
            ]}
            try:
                resp = await post_json(client, f"{base}/recording/samples", payload)
                if resp.status_code == 200:
                    data = resp.json()
                    walker.samples_sent += len(chunk)
                    for event in data["events"]:
                        walker.events += 1
                        print(f"  [{event['emitted_at_ms'] - t0_ms:>7} ms] {event['kind']}")
                    if args.verbose:
                        print(f"    {data['progress']['label']}")
                else:
                    walker.errors += 1
            except httpx.RequestError:
                walker.errors += 1

            await asyncio.sleep(len(chunk) * args.interval_ms / 1000 / args.speed)

        resp = await client.post(f"{base}/recording/stop")
        resp.raise_for_status()

        resp = await post_json(client, f"{base}/recording/publish", {
            "type": args.type,
            "station": args.station,
            "from_line": args.from_line,
            "to_line": args.to_line,
            "tags": [t for t in args.tags.split(",") if t],
        })
        resp.raise_for_status()
        route = resp.json()

    elapsed = time.monotonic() - start
    print(f"\nWalk complete in {elapsed:.1f}s")
    print(f"  Samples sent: {walker.samples_sent}")
    print(f"  Events: {walker.events}")
    print(f"  Errors: {walker.errors}")
    print(f"\nPublished route {route['id']}: {route['title']}")
    print(route["article"])

    # Check server stats
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.get(f"{base}/stats")
        if resp.status_code == 200:
            stats = resp.json()
            print(f"\nServer stats:")
            print(f"  Samples received: {stats['samples_received']}")
            print(f"  Samples rejected: {stats['samples_rejected']}")
            print(f"  Events emitted: {stats['events_emitted']}")
            print(f"  Routes published: {stats['routes_published']}")
    except httpx.RequestError:
        print("\nServer stats unavailable")


def main():
    parser = argparse.ArgumentParser(description="Ekinavi walker simulator")
    parser.add_argument("--server", default="http://localhost:8000", help="Server URL")
    parser.add_argument("--route", default="straight:10,right:8,straight:35,left:8,straight:5",
                        help="Comma-separated legs, e.g. straight:10,right:8")
    parser.add_argument("--interval-ms", type=int, default=50, help="Sample interval in ms")
    parser.add_argument("--batch", type=int, default=10, help="Samples per request")
    parser.add_argument("--speed", type=float, default=1.0, help="Playback speed multiplier")
    parser.add_argument("--jitter", type=float, default=4.0, help="Heading noise (std dev, degrees)")
    parser.add_argument("--glitch-rate", type=float, default=0.0,
                        help="Chance per turning sample of a reverted reading")
    parser.add_argument("--station", default="Shinjuku", help="Station name")
    parser.add_argument("--type", default="transfer", help="Route type")
    parser.add_argument("--from-line", default="JR Yamanote", help="Departure line")
    parser.add_argument("--to-line", default="Marunouchi", help="Arrival line")
    parser.add_argument("--tags", default="", help="Comma-separated tags")
    parser.add_argument("--verbose", action="store_true", help="Print progress labels")

    args = parser.parse_args()
    asyncio.run(run_simulation(args))


if __name__ == "__main__":
    main()
