"""Integration tests — chain nodes served by receivers and middleware dispatchers."""

import copy
import random

import pytest

import nextchain as nc


# ---------------------------------------------------------------------------
# ChainNode with a plain receiver
# ---------------------------------------------------------------------------

class TestChainFlow:
    async def test_recovered_failure_flow(self):
        def fail_with(value):
            raise ValueError(str(value))

        flow = (
            nc.ChainNode()
            .chain(lambda value: value + 1)
            .chain(fail_with)
            .chain(None, lambda err: float(str(err)) + 1)
        )

        def receiver(observer, request):
            observer.next(1)
            observer.complete()

        flow.produce(receiver)
        assert await flow.to_promise() == 3

    async def test_nested_requests_share_one_receiver(self):
        def first(value):
            async def add(current):
                return current + value

            request = nc.ChainNode().chain(add)
            request.value = 1
            return request

        def fail_with(value):
            raise RuntimeError(str(value))

        def recover(err):
            return nc.ChainNode().chain(lambda current: current + float(str(err)))

        async def last(value):
            return nc.ChainNode().chain(lambda current: current + value)

        flow = nc.ChainNode().chain(first).chain(fail_with).chain(None, recover).chain(last)

        def never(value):
            raise AssertionError("unused branch must not run")

        flow.chain(never)

        values = []

        def receiver(observer, request):
            value = getattr(request, "value", None) or random.random()
            values.append(value)
            observer.next(value)
            return observer.complete

        flow.produce(receiver)

        # 1st execution
        assert await flow.to_promise() == pytest.approx(sum(values[0:4]))
        assert len(values) == 4
        assert values[1] == 1

        # 2nd execution
        assert await flow.to_promise() == pytest.approx(sum(values[4:8]))
        assert len(values) == 8
        assert values[5] == 1

    async def test_shared_flow_runs_the_receiver_once(self):
        calls = []

        def receiver(observer, request):
            calls.append(request)
            observer.next(len(calls))
            observer.complete()

        flow = nc.ChainNode().chain(lambda value: value * 10).share()
        flow.produce(receiver)

        assert await flow.to_promise() == 10
        assert await flow.to_promise() == 10
        assert len(calls) == 1


# ---------------------------------------------------------------------------
# ChainNode served by a MiddlewareDispatcher
# ---------------------------------------------------------------------------

def _copy_node(node):
    return copy.copy(node)


LOOKUP = nc.ChainFamily(name="lookup", factory=_copy_node)


class Lookup(nc.ChainNode):
    """Request for a key of an in-memory store."""

    def __init__(self, key):
        super().__init__(family=LOOKUP)
        self.key = key


@pytest.fixture
def store_dispatcher():
    store = {"a": 1, "b": 2}
    log = []
    dispatcher = nc.MiddlewareDispatcher()

    def record(req, res, next):
        log.append(req.key)
        next()

    def lookup(req, res, next):
        if req.key not in store:
            next(KeyError(req.key))
            return None
        res.next(store[req.key])
        return res.complete

    def reject(err, req, res, next):
        res.error(err)
        return res.complete

    dispatcher.use(record, lookup, reject)
    return dispatcher, log


class TestDispatcherReceiver:
    async def test_resolves_a_single_request(self, store_dispatcher):
        dispatcher, log = store_dispatcher
        request = Lookup("a")
        request.produce(dispatcher.as_receiver())

        assert await request.to_promise() == 1
        assert log == ["a"]

    async def test_clones_keep_their_key(self):
        assert Lookup("a").chain().key == "a"

    async def test_resolves_sub_requests(self, store_dispatcher):
        dispatcher, log = store_dispatcher
        flow = Lookup("a").chain(lambda value: Lookup("b")).chain(lambda value: value + 40)
        flow.produce(dispatcher.as_receiver())

        assert await flow.to_promise() == 42
        assert log == ["a", "b"]

    async def test_missing_key_goes_through_error_middleware(self, store_dispatcher):
        dispatcher, log = store_dispatcher
        request = Lookup("missing")
        request.produce(dispatcher.as_receiver())

        with pytest.raises(KeyError):
            await request.to_promise()

    async def test_failure_handler_recovers_with_another_request(self, store_dispatcher):
        dispatcher, log = store_dispatcher
        flow = Lookup("missing").chain(None, lambda err: Lookup("b"))
        flow.produce(dispatcher.as_receiver())

        assert await flow.to_promise() == 2
        assert log == ["missing", "b"]
