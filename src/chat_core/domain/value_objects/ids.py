from __future__ import annotations


def direct_key(user_a: int, user_b: int) -> str:
    """Order-independent key identifying the direct conversation of a pair."""
    low, high = sorted((int(user_a), int(user_b)))
    return f"{low}:{high}"
