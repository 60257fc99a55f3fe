"""
dashboard_fetch.py — Populate dependent dashboard panels in rounds.

Demonstrates one scheduler run where `orders` and `alerts` need the id of
the current user, plus a cached lookup that serves stale data while it
refreshes in the background.

Usage:
    python examples/dashboard_fetch.py
"""

import asyncio
import logging

from fetchflow import (
    AdaptiveCache,
    BatchScheduler,
    DependencyGraph,
    GatheringBatchCall,
)


async def call_api(key: str, params: dict) -> dict:
    await asyncio.sleep(0.05)
    if key == "user":
        return {"id": 7, "name": "operator"}
    if key == "alerts":
        raise ConnectionError("alert service unavailable")
    return {"key": key, "params": params}


async def main() -> None:
    logging.basicConfig(level=logging.INFO)

    graph = DependencyGraph()
    graph.add_dependency("orders", "user", lambda user: {"userId": user["id"]})
    graph.add_dependency("alerts", "user", lambda user: {"userId": user["id"]})
    graph.add_dependency("alert_chart", "alerts", lambda alerts: {"series": alerts})

    scheduler = BatchScheduler(graph, GatheringBatchCall(call_api, timeout_s=2.0))
    outcome = await scheduler.run(
        ["user", "orders", "alerts", "alert_chart", "devices"],
        initial_params={"orders": {"limit": 20}},
    )
    print("results:", sorted(outcome.results))
    print("errors:", {key: str(exc) for key, exc in outcome.errors.items()})
    for key, state in outcome.blocked().items():
        print(f"blocked: {key} ({state.reason} via {state.cause_key})")

    async with AdaptiveCache(ttl_s=1.0, stale_s=5.0) as cache:
        value = await cache.get("devices", lambda: call_api("devices", {}))
        print("devices:", value)
        print("stats:", cache.stats())


if __name__ == "__main__":
    asyncio.run(main())
