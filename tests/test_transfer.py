"""
Tests for private transfers: sender payloads, recipient decoding and claims.
"""

import base64

import nacl.signing
import pytest

from octra_wallet.codec import seal
from octra_wallet.errors import (
    AlreadyClaimed,
    DecodeFailure,
    InsufficientEncryptedBalance,
    InvalidAddress,
    RecipientKeyMissing,
)
from octra_wallet.transfer import (
    TransferProtocol,
    derive_network_secret,
    derive_shared_secret,
    reveal_amount,
)

from conftest import FakeRpc, make_key


def sender_node(sender, recipient, has_key=True, encrypted_raw=5_000_000, posted=None):
    def accept(d):
        posted.append(d)
        return 200, {"tx_hash": "a" * 64}
    return FakeRpc({
        ("GET", f"/address/{recipient.address}"): (200, {"has_public_key": has_key, "balance": "1.0 OCT"}),
        ("GET", f"/view_encrypted_balance/{sender.address}"): (200, {
            "public_balance_raw": "0", "encrypted_balance_raw": str(encrypted_raw),
        }),
        ("GET", f"/public_key/{recipient.address}"): (200, {"public_key": recipient.public_key_b64}),
        ("POST", "/private_transfer"): accept,
    })


class TestSharedSecret:

    def test_ecdh_is_symmetric(self, key, other_key):
        eph = nacl.signing.SigningKey.generate()
        eph_pub = base64.b64encode(eph.verify_key.encode()).decode()

        assert derive_shared_secret(eph.encode(), other_key.public_key_b64) == \
            derive_shared_secret(other_key.seed, eph_pub)

    def test_different_recipients_differ(self, key, other_key):
        eph = nacl.signing.SigningKey.generate()
        assert derive_shared_secret(eph.encode(), key.public_key) != \
            derive_shared_secret(eph.encode(), other_key.public_key)

    def test_bad_public_key(self, key):
        with pytest.raises(DecodeFailure):
            derive_shared_secret(key.seed, "%%%")

    def test_network_secret_is_order_free(self, key, other_key):
        assert derive_network_secret(key.seed, other_key.public_key) == \
            derive_network_secret(other_key.seed, key.public_key)


class TestCreateTransfer:

    @pytest.mark.asyncio
    async def test_recipient_without_key(self, key, other_key):
        rpc = sender_node(key, other_key, has_key=False, posted=[])
        ok, err = await TransferProtocol(rpc).create_transfer(key, other_key.address, 1_000_000)

        assert not ok
        assert isinstance(err, RecipientKeyMissing)
        assert rpc.paths() == [f"/address/{other_key.address}"]

    @pytest.mark.asyncio
    async def test_unknown_recipient(self, key, other_key):
        rpc = FakeRpc()
        ok, err = await TransferProtocol(rpc).create_transfer(key, other_key.address, 1)

        assert isinstance(err, RecipientKeyMissing)
        assert len(rpc.calls) == 1

    @pytest.mark.asyncio
    async def test_recipient_can_reveal_amount(self, key, other_key):
        posted = []
        rpc = sender_node(key, other_key, posted=posted)
        ok, receipt = await TransferProtocol(rpc).create_transfer(key, other_key.address, 1_250_000)

        assert ok
        assert receipt.tx_hash == "a" * 64
        body = posted[0]
        assert body["from"] == key.address
        assert body["to"] == other_key.address
        assert body["amount"] == "1250000"
        assert body["to_public_key"] == other_key.public_key_b64
        assert receipt.ephemeral_key == body["ephemeral_key"]
        assert reveal_amount(other_key.seed, body["ephemeral_key"], body["encrypted_data"]) == 1_250_000

    @pytest.mark.asyncio
    async def test_third_party_cannot_reveal(self, key, other_key):
        posted = []
        rpc = sender_node(key, other_key, posted=posted)
        await TransferProtocol(rpc).create_transfer(key, other_key.address, 10)

        with pytest.raises(DecodeFailure):
            reveal_amount(make_key(99).seed, posted[0]["ephemeral_key"], posted[0]["encrypted_data"])

    @pytest.mark.asyncio
    async def test_fresh_ephemeral_key_per_transfer(self, key, other_key):
        posted = []
        proto = TransferProtocol(sender_node(key, other_key, posted=posted))
        await proto.create_transfer(key, other_key.address, 10)
        await proto.create_transfer(key, other_key.address, 10)

        assert posted[0]["ephemeral_key"] != posted[1]["ephemeral_key"]

    @pytest.mark.asyncio
    async def test_insufficient_encrypted_balance(self, key, other_key):
        posted = []
        rpc = sender_node(key, other_key, encrypted_raw=100, posted=posted)
        ok, err = await TransferProtocol(rpc).create_transfer(key, other_key.address, 101)

        assert isinstance(err, InsufficientEncryptedBalance)
        assert posted == []

    @pytest.mark.asyncio
    async def test_self_transfer_rejected(self, key):
        rpc = FakeRpc()
        ok, err = await TransferProtocol(rpc).create_transfer(key, key.address, 10)

        assert isinstance(err, InvalidAddress)
        assert rpc.calls == []


class TestListClaimable:

    @pytest.mark.asyncio
    async def test_each_transfer_independent(self, key, other_key):
        eph1 = nacl.signing.SigningKey.generate()
        eph1_pub = base64.b64encode(eph1.verify_key.encode()).decode()
        eph2 = make_key(77)
        pending = [
            {"id": 1, "sender": other_key.address, "recipient": key.address, "epoch_id": 4,
             "ephemeral_key": eph1_pub,
             "encrypted_data": seal(300, derive_shared_secret(eph1.encode(), key.public_key))},
            {"id": 2, "sender": other_key.address, "recipient": key.address, "epoch_id": 4,
             "ephemeral_key": "not-base64!", "encrypted_data": "v2|garbage"},
            {"id": 3, "sender": other_key.address, "recipient": key.address, "epoch_id": 5,
             "ephemeral_key": eph2.public_key_b64,
             "encrypted_data": seal(900, derive_network_secret(key.seed, eph2.public_key))},
        ]
        rpc = FakeRpc({
            ("GET", f"/pending_private_transfers?address={key.address}"): (200, {"pending_transfers": pending}),
        })

        ok, transfers = await TransferProtocol(rpc).list_claimable(key.address, key)

        assert ok
        assert [t.id for t in transfers] == ["1", "2", "3"]
        assert [t.amount for t in transfers] == [300, None, 900]
        assert transfers[2].epoch == 5
        assert rpc.calls[0][3] == {"X-Private-Key": key.private_key_b64}

    @pytest.mark.asyncio
    async def test_malformed_entry_does_not_abort_listing(self, key, other_key):
        eph = make_key(78)
        pending = [
            {"id": 1, "sender": other_key.address, "ephemeral_key": eph.public_key_b64,
             "encrypted_data": 12345},
            {"id": 2, "sender": other_key.address, "ephemeral_key": 42, "encrypted_data": "v2|AAAA"},
            {"id": 3, "sender": other_key.address, "ephemeral_key": eph.public_key_b64,
             "encrypted_data": seal(500, derive_network_secret(key.seed, eph.public_key))},
        ]
        rpc = FakeRpc({
            ("GET", f"/pending_private_transfers?address={key.address}"): (200, {"pending_transfers": pending}),
        })

        ok, transfers = await TransferProtocol(rpc).list_claimable(key.address, key)

        assert ok
        assert [t.amount for t in transfers] == [None, None, 500]

    @pytest.mark.asyncio
    async def test_empty(self, key):
        rpc = FakeRpc({
            ("GET", f"/pending_private_transfers?address={key.address}"): (200, {"pending_transfers": []}),
        })
        assert await TransferProtocol(rpc).list_claimable(key.address, key) == (True, [])


class TestClaim:

    @pytest.mark.asyncio
    async def test_claim(self, key):
        posted = []

        def accept(d):
            posted.append(d)
            return 200, {"amount": "1.5 OCT"}
        rpc = FakeRpc({("POST", "/claim_private_transfer"): accept})

        ok, receipt = await TransferProtocol(rpc).claim(key.address, key, "12")

        assert ok
        assert receipt.amount == "1.5 OCT"
        assert posted[0] == {"recipient_address": key.address, "private_key": key.private_key_b64,
                             "transfer_id": "12"}

    @pytest.mark.asyncio
    async def test_already_claimed(self, key):
        rpc = FakeRpc({("POST", "/claim_private_transfer"): (400, {"error": "Transfer already claimed"})})
        ok, err = await TransferProtocol(rpc).claim(key.address, key, "12")

        assert not ok
        assert isinstance(err, AlreadyClaimed)

    @pytest.mark.asyncio
    async def test_other_failure_passed_through(self, key):
        rpc = FakeRpc({("POST", "/claim_private_transfer"): (500, "boom")})
        ok, err = await TransferProtocol(rpc).claim(key.address, key, "12")

        assert not ok
        assert err.retryable
