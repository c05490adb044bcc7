"""
Example: Dependent async calls with Kompute

This example shows how Kompute combinators describe a small service
workflow: sequential dependent calls, concurrent fan-out, merging,
routing on input shape, and tracing. The "services" are simulated with
asyncio.sleep so the script runs standalone.
"""

import asyncio
from dataclasses import dataclass, replace

from kompute import (
    FailurePolicy,
    Left,
    PrintHook,
    Right,
    computation,
    computation_args,
    explain,
    lift,
    merge,
    split,
    use_tracing,
)

# =============================================================================
# Domain model (frozen for immutability)
# =============================================================================


@dataclass(frozen=True)
class User:
    id: int
    name: str
    tier: str = "standard"


@dataclass(frozen=True)
class Profile:
    user: User
    orders: tuple[str, ...]
    recommendations: tuple[str, ...] = ()


# =============================================================================
# 1. Leaf computations: wrap async calls
# =============================================================================


@computation
async def fetch_user(user_id: int) -> User:
    """Simulate a user service call."""
    await asyncio.sleep(0.02)
    tier = "premium" if user_id % 2 == 0 else "standard"
    return User(id=user_id, name=f"user-{user_id}", tier=tier)


@computation
async def fetch_orders(user_id: int) -> tuple[str, ...]:
    """Simulate an order service call (slower than the user service)."""
    await asyncio.sleep(0.05)
    return tuple(f"order-{user_id}-{n}" for n in range(3))


@computation_args
async def recommend(profile: Profile, limit: int) -> Profile:
    """Simulate a recommendation call that depends on the profile."""
    await asyncio.sleep(0.01)
    picks = tuple(f"pick-for-{o}" for o in profile.orders[:limit])
    return replace(profile, recommendations=picks)


@computation
async def lookup_by_email(email: str) -> int:
    """Simulate resolving an email address to a user id."""
    await asyncio.sleep(0.01)
    return len(email)


# =============================================================================
# 2. Fan-out and merge: fetch concurrently, combine
# =============================================================================

# Both calls start at once; result order is (user, orders)
load_profile = (fetch_user & fetch_orders) >> merge(Profile)


# =============================================================================
# 3. Dependent calls: the next call needs the previous result
# =============================================================================

profile_with_recommendations = load_profile >> recommend(limit=2)


# =============================================================================
# 4. Routing: accept a user id OR an email address
# =============================================================================

# Tagged form: callers say which kind of input they have
resolve_id = lift(lambda user_id: user_id) | lookup_by_email

# Predicate form: inspect the value instead
resolve_any = lift(lambda user_id: user_id).add_input(
    lookup_by_email, lambda value: isinstance(value, str)
)

profile_from_anything = resolve_any >> profile_with_recommendations


# =============================================================================
# 5. Split vs branch: one side effect, two consumers
# =============================================================================

user_twice = split(fetch_user) >> merge(lambda a, b: a is b)


# =============================================================================
# 6. Failure policy: wait for both sides before surfacing an error
# =============================================================================


@computation
async def flaky_inventory(user_id: int) -> int:
    await asyncio.sleep(0.01)
    raise ConnectionError("inventory service down")


strict_dashboard = fetch_orders.branch(flaky_inventory, FailurePolicy.WAIT_ALL)


# =============================================================================
# Run examples
# =============================================================================


async def main() -> None:
    print("=== 1-2. Concurrent fan-out and merge ===")
    print(explain(load_profile), "\n")
    profile = await load_profile.run(4)
    print(f"  {profile.user.name} ({profile.user.tier}) has {len(profile.orders)} orders")

    print("\n=== 3. Dependent calls ===\n")
    profile = await profile_with_recommendations.run(7)
    print(f"  recommendations: {profile.recommendations}")

    print("\n=== 4. Routing ===\n")
    for tagged in [Left(10), Right("someone@example.com")]:
        print(f"  {tagged!r} -> user id {await resolve_id.run(tagged)}")
    for raw in [3, "me@example.com"]:
        profile = await profile_from_anything.run(raw)
        print(f"  {raw!r} -> {profile.user.name}")

    print("\n=== 5. Split vs branch ===\n")
    print(f"  split shares one result object: {await user_twice.run(1)}")

    print("\n=== 6. Failure policy ===\n")
    try:
        await strict_dashboard.run(1)
    except ConnectionError as error:
        print(f"  failed after both sides finished: {error}")

    print("\n=== 7. Tracing ===\n")
    with use_tracing(PrintHook()):
        await profile_with_recommendations.run(2)


if __name__ == "__main__":
    asyncio.run(main())
