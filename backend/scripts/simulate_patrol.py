#!/usr/bin/env python3
"""
Walk a simulated officer through one shift against the configured database.

Logs in, accepts the assigned beat, goes on duty, walks a small loop around
the beat center while the duty engine reports positions, takes a break,
resumes, and ends duty. Useful for watching rows appear and disappear in
personnel_locations from the dispatch side.

Usage:
    python -m scripts.simulate_patrol officer@unit.gov patrol-demo-1 --steps 12
"""

import argparse
import asyncio
import math

from epatrol.client import PatrolClient
from epatrol.config import configure_logging, get_settings
from epatrol.errors import EPatrolError
from epatrol.services.position_source import SimulatedPositionSource

# ~11 m per step at Manila's latitude
STEP_DEGREES = 0.0001


async def run(email: str, password: str, steps: int, pause: float) -> int:
    settings = get_settings()
    source = SimulatedPositionSource()
    client = PatrolClient.create(source, settings=settings)

    try:
        principal = await client.session.login(email, password)
        print(f"Logged in as {principal.rank} {principal.full_name}")

        assigned = await client.assignments.get_assigned_beat()
        if assigned is None:
            print("No beat assigned to you")
            return 1
        print(f"Beat: {assigned.beat.name} ({assigned.assignment.status.value})")
        await client.assignments.accept_beat(assigned.assignment.id)

        beat = assigned.beat
        source.move_to(beat.center_lat, beat.center_lng, accuracy=5.0)
        await client.duty.start_duty()
        print("On duty, reporting position")

        for i in range(steps):
            angle = 2 * math.pi * i / steps
            source.move_to(
                beat.center_lat + STEP_DEGREES * math.sin(angle) * steps / 4,
                beat.center_lng + STEP_DEGREES * math.cos(angle) * steps / 4,
                accuracy=5.0,
            )
            if i == steps // 2:
                await client.duty.take_break()
                print("On break")
            elif i == steps // 2 + 1:
                await client.duty.resume_duty()
                print("Resumed duty")
            await client.duty.join()
            record = await client.duty.reported_location()
            if record:
                print(f"  reported {record.latitude:.6f}, {record.longitude:.6f}")
            await asyncio.sleep(pause)

        result = await client.duty.end_duty()
        if result.warning:
            print(f"Warning: {result.warning.message}")
        stats = client.duty.stats
        print(
            f"Duty ended: {stats.samples_synced} synced, "
            f"{stats.samples_failed} failed, {stats.samples_discarded} discarded"
        )
        await client.duty.logout()
        return 0
    except EPatrolError as e:
        print(f"Error: {e.message}")
        return 1
    finally:
        await client.aclose()
        await source.close()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--steps", type=int, default=12)
    parser.add_argument("--pause", type=float, default=1.0, help="seconds between steps")
    args = parser.parse_args()

    configure_logging()
    raise SystemExit(asyncio.run(run(args.email, args.password, args.steps, args.pause)))


if __name__ == "__main__":
    main()
