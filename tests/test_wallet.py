"""
Tests for the Wallet facade: balance checks, nonce wiring and input rejection.
"""

import base64

import pytest

from octra_wallet.errors import (
    DomainNotFound,
    InsufficientBalance,
    InvalidAddress,
    InvalidAmount,
    MessageTooLong,
    RecipientKeyMissing,
)
from octra_wallet.keys import verify
from octra_wallet.tx import signing_payload
from octra_wallet.wallet import Wallet

from conftest import FakeRpc


def node(key, balance="10.0", nonce=5, staged=(), sent=None):
    def accept(d):
        sent.append(d)
        return 200, {"status": "accepted", "tx_hash": f"{d['nonce']:064x}"}
    return FakeRpc({
        ("GET", f"/balance/{key.address}"): (200, {"balance": balance, "nonce": nonce}),
        ("GET", "/staging"): (200, {"staged_transactions": list(staged)}),
        ("POST", "/send-tx"): accept,
    })


class TestSend:

    @pytest.mark.asyncio
    async def test_signed_with_next_nonce(self, key, other_key):
        sent = []
        staged = [{"from": key.address, "nonce": 6}, {"from": other_key.address, "nonce": 40}]
        w = Wallet(key, node(key, staged=staged, sent=sent))

        ok, tx_hash = await w.send(other_key.address, 2_000_000, message="hi")

        assert ok
        assert tx_hash == f"{7:064x}"
        wire = sent[0]
        assert wire["nonce"] == 7
        assert wire["to_"] == other_key.address
        assert wire["message"] == "hi"
        assert verify(signing_payload(wire), base64.b64decode(wire["signature"]), key.public_key)

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, key, other_key):
        sent = []
        w = Wallet(key, node(key, balance="1.0", sent=sent))

        ok, err = await w.send(other_key.address, 1_000_000)

        assert not ok
        assert isinstance(err, InsufficientBalance)
        assert sent == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("to,amount,message,error", [
        ("octnope", 1, None, InvalidAddress),
        (None, 0, None, InvalidAmount),
        (None, -5, None, InvalidAmount),
        (None, 1, "x" * 1025, MessageTooLong),
    ])
    async def test_bad_input_never_reaches_network(self, key, other_key, to, amount, message, error):
        rpc = node(key, sent=[])
        ok, err = await Wallet(key, rpc).send(to or other_key.address, amount, message)

        assert not ok
        assert isinstance(err, error)
        assert rpc.calls == []

    @pytest.mark.asyncio
    async def test_balance_failure(self, key, other_key):
        rpc = FakeRpc({("GET", f"/balance/{key.address}"): (503, "busy")})
        ok, err = await Wallet(key, rpc).send(other_key.address, 1)

        assert not ok
        assert err.retryable


class TestMultiSend:

    @pytest.mark.asyncio
    async def test_starts_at_next_nonce(self, key, addresses):
        sent = []
        w = Wallet(key, node(key, nonce=3, sent=sent))

        ok, results = await w.multi_send([(addresses[0], 100), (addresses[1], 200)])

        assert ok
        assert [r.nonce for r in results] == [4, 5]
        assert all(r.success for r in results)
        assert [d["to_"] for d in sent] == addresses[:2]

    @pytest.mark.asyncio
    async def test_total_must_be_covered(self, key, addresses):
        sent = []
        w = Wallet(key, node(key, balance="0.5", sent=sent))

        ok, err = await w.multi_send([(addresses[0], 300_000), (addresses[1], 300_000)])

        assert isinstance(err, InsufficientBalance)
        assert sent == []

    @pytest.mark.asyncio
    async def test_empty(self, key):
        rpc = FakeRpc()
        assert await Wallet(key, rpc).multi_send([]) == (True, [])
        assert rpc.calls == []


class TestDomainRecipients:

    @pytest.mark.asyncio
    async def test_send_to_domain(self, key, other_key):
        sent = []
        rpc = node(key, sent=sent)
        rpc.routes[("GET", "/lookup/alice.oct")] = (200, {"domain": "alice.oct", "address": other_key.address})

        ok, _ = await Wallet(key, rpc).send("Alice.oct", 1_000)

        assert ok
        assert sent[0]["to_"] == other_key.address

    @pytest.mark.asyncio
    async def test_unknown_domain_sends_nothing(self, key):
        sent = []
        ok, err = await Wallet(key, node(key, sent=sent)).send("nobody.oct", 1_000)

        assert isinstance(err, DomainNotFound)
        assert sent == []

    @pytest.mark.asyncio
    async def test_bad_amount_checked_before_lookup(self, key):
        rpc = node(key, sent=[])
        ok, err = await Wallet(key, rpc).send("alice.oct", 0)

        assert isinstance(err, InvalidAmount)
        assert rpc.calls == []

    @pytest.mark.asyncio
    async def test_private_transfer_to_domain(self, key, other_key):
        rpc = FakeRpc({("GET", "/lookup/bob.oct"): (200, {"address": other_key.address})})
        ok, err = await Wallet(key, rpc).private_transfer("bob.oct", 10)

        assert isinstance(err, RecipientKeyMissing)
        assert rpc.paths() == ["/lookup/bob.oct", f"/address/{other_key.address}"]
