#!/usr/bin/env python3
"""Interlock and Hosts - taking turns on shared variables.

Two cells bound to the same key contend for the advisory lock, then a
CacheHost subclass declares shared, private and counter variables.

Run: python examples/02_interlock_and_hosts.py
"""
from cachecell import (
    PRIVATE,
    Blob,
    CacheHost,
    InMemoryClient,
    cached_accessor,
    cached_counter,
    cached_reader,
)


class Cart(CacheHost):
    items = cached_accessor()
    views = cached_counter(namer=lambda var: f"site-{var}")
    token = cached_reader(PRIVATE)


def main():
    print("=" * 60)
    print("Interlock and Hosts")
    print("=" * 60)

    client = InMemoryClient()

    # === 1. Two instances, one key ===
    print("\n[1] Lock contention")
    a = Blob(client, "shared:queue")
    b = Blob(client, "shared:queue")
    print(f"  A locks: {a.lock()}")
    print(f"  B locks: {b.lock()}")
    print(f"  A unlocks: {a.unlock()}")
    print(f"  B locks: {b.lock()}")
    b.unlock()

    # === 2. Scoped locking ===
    print("\n[2] held()")
    with a.held() as acquired:
        if acquired:
            a.set((a.get() or []) + ["job-9"])
    print(f"  Queue: {a.get()}")

    # === 3. Declared variables ===
    print("\n[3] CacheHost")
    with Cart(client) as cart, Cart(client) as other:
        cart.items = ["apple"]
        cart.items.append("pear")
        cart.views = 0
        cart.increment("views")
        other.increment("views")
        print(f"  items key: {cart.cell('items').name}")
        print(f"  items: {cart.items}")
        print(f"  shared views: {other.views}")
        token_key = cart.cell("token").name
    print(f"  private entry after close: {client.get(token_key)}")


if __name__ == "__main__":
    main()
