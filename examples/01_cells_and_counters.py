#!/usr/bin/env python3
"""Cells and Counters - cache-backed values.

This example stores structured values in a Blob, edits a fetched list in
place, and does atomic arithmetic on a Counter. It runs against the
in-memory backend so no server is needed.

Run: python examples/01_cells_and_counters.py
"""
from cachecell import Blob, Counter, CounterIntegerOnly, InMemoryClient


def main():
    print("=" * 60)
    print("Cells and Counters")
    print("=" * 60)

    client = InMemoryClient()

    # === 1. Round-trip a structured value ===
    print("\n[1] Blob round trip")
    settings = Blob(client, "app:settings")
    settings.set({"theme": "dark", "retries": 3})
    print(f"  Stored: {settings.get()}")

    # === 2. In-place edits are written back ===
    print("\n[2] Write-back")
    queue = Blob(client, "jobs:queue", [])
    jobs = queue.get()
    jobs.append("job-1")
    jobs.append("job-2")
    print(f"  Another reader sees: {Blob(client, 'jobs:queue').get()}")

    # === 3. Atomic counters ===
    print("\n[3] Counter")
    hits = Counter(client, "site:hits")
    hits.set(5)
    print(f"  5 + 3 = {hits.increment(3)}")
    print(f"  8 - 100 = {hits.decrement(100)} (floored)")

    try:
        hits.set("abc")
    except CounterIntegerOnly as e:
        print(f"  Rejected: {e}")
    print(f"  Still: {hits.get()}")

    # === 4. Destroy ===
    print("\n[4] Destroy")
    settings.destroy()
    print(f"  destroyed={settings.destroyed}, value kept={client.get('app:settings')}")


if __name__ == "__main__":
    main()
