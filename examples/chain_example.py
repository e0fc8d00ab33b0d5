"""chain_example.py — walkthrough of nextchain requests and middlewares.

No services required. An in-memory user store is served by a middleware
dispatcher, and composed requests are resolved through it.

Run:
    NEXTCHAIN_LOG_LEVEL=DEBUG python examples/chain_example.py
"""

import asyncio
import copy

import nextchain as nc

# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------

DIVIDER = "─" * 60

def section(title):
    print(f"\n{DIVIDER}")
    print(f"  {title}")
    print(DIVIDER)


# ===========================================================================
# Requests
# ===========================================================================

USERS = {
    "ann": {"name": "Ann", "manager": "bob"},
    "bob": {"name": "Bob", "manager": None},
}

# copy instance attributes (the user id) into chained clones
FAMILY = nc.ChainFamily(name="users", factory=copy.copy)


class GetUser(nc.ChainNode):
    def __init__(self, user_id):
        super().__init__(family=FAMILY)
        self.user_id = user_id


# ===========================================================================
# Middlewares
# ===========================================================================

dispatcher = nc.MiddlewareDispatcher()


@dispatcher.middleware
def trace(req, res, next):
    print(f"  → GetUser({req.user_id!r})")
    next()
    return lambda: print(f"  ← GetUser({req.user_id!r}) closed")


@dispatcher.middleware
def load(req, res, next):
    user = USERS.get(req.user_id)
    if user is None:
        next(LookupError(f"unknown user {req.user_id!r}"))
        return None
    res.next(user)
    return res.complete


@dispatcher.middleware
def reject(err, req, res, next):
    print(f"  ! {err}")
    res.error(err)
    return res.complete


# ===========================================================================
# Flows
# ===========================================================================

async def main():
    nc.configure_logging()

    section("1. Single request")
    request = GetUser("ann")
    request.produce(dispatcher.as_receiver())
    print(await request.to_promise())

    section("2. Sub-request returned by a handler")
    manager_name = (
        GetUser("ann")
        .chain(lambda user: GetUser(user["manager"]))
        .chain(lambda manager: manager["name"])
    )
    manager_name.produce(dispatcher.as_receiver())
    print(await manager_name.to_promise())

    section("3. Failure recovered by a failure handler")
    fallback = GetUser("zed").chain(None, lambda err: GetUser("bob"))
    fallback.produce(dispatcher.as_receiver())
    print(await fallback.to_promise())

    section("4. Shared request runs once")
    shared = GetUser("bob").share()
    shared.produce(dispatcher.as_receiver())
    print(await asyncio.gather(shared.to_promise(), shared.to_promise()))


if __name__ == "__main__":
    asyncio.run(main())
