"""
Shared fixtures: deterministic key material and an in-memory RPC node.
"""

import json

import pytest

from octra_wallet.keys import KeyMaterial
from octra_wallet.rpc import RpcClient

SEED_ONE = bytes(31) + b"\x01"


class FakeRpc(RpcClient):
    """RpcClient whose transport is a routing table.

    routes maps (method, path) to (status, body), to a callable taking the
    posted json and returning (status, body), or to an exception to raise.
    Unrouted requests answer 404.
    """

    def __init__(self, routes=None):
        super().__init__("http://node.test")
        self.routes = dict(routes or {})
        self.calls = []

    async def req(self, m, p, d=None, t=None, headers=None):
        self.calls.append((m, p, d, headers))
        r = self.routes.get((m, p))
        if r is None:
            return 404, "not found", None
        if isinstance(r, Exception):
            raise r
        if callable(r):
            r = r(d)
        s, body = r
        if isinstance(body, (dict, list)):
            return s, json.dumps(body), body
        return s, body, None

    def paths(self):
        return [p for _, p, _, _ in self.calls]


def make_key(n):
    return KeyMaterial(bytes([n]) * 32)


@pytest.fixture
def key():
    return KeyMaterial(SEED_ONE)


@pytest.fixture
def other_key():
    return make_key(2)


@pytest.fixture
def addresses():
    return [make_key(10 + i).address for i in range(12)]


@pytest.fixture
def rpc():
    return FakeRpc()
