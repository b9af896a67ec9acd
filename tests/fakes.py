import asyncio

from cache import QueryCache
from notifications import Notifier


class FakeApi:
    """Async stand-in for ApiClient: canned responses, recorded calls, optional gates."""

    def __init__(self, **responses):
        self.responses = responses
        self.errors = {}
        self.gates = {}
        self.calls = []

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)

        async def method(*args):
            self.calls.append((name, args))
            gate = self.gates.get(name)
            if gate is not None:
                await gate.wait()
            if name in self.errors:
                raise self.errors[name]
            value = self.responses.get(name)
            return value(*args) if callable(value) else value

        return method

    def called(self, name):
        return [args for call, args in self.calls if call == name]


def build(workflow_cls, api, **kwargs):
    return workflow_cls(api, QueryCache(), notifier=Notifier(), **kwargs)


async def start(coro):
    """Schedule a coroutine and let it run up to its first real suspension."""
    task = asyncio.ensure_future(coro)
    for _ in range(10):
        await asyncio.sleep(0)
    return task
