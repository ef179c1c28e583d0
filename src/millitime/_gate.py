"""Availability gate: is a sync attempt warranted right now?

The answer is derived on every call and never cached; each input can
change underneath us (the suppression flag is user-controlled, network
reachability flips on its own, and a completed attempt sets
``synchronized``).
"""

from __future__ import annotations

from collections.abc import Callable


def sync_indicated(
    *,
    suppress_network_calls: bool,
    synchronized: bool,
    network_reachable: Callable[[], bool],
) -> bool:
    """Return ``True`` when the network is permitted, needed, and usable.

    *network_reachable* is only probed when the two flags already allow
    an attempt.
    """
    return not suppress_network_calls and not synchronized and network_reachable()
