import base64
import binascii
import hashlib
import logging
from dataclasses import dataclass
from typing import Optional

import nacl.bindings
import nacl.signing

from .codec import open_sealed, seal
from .errors import (
    AlreadyClaimed,
    DecodeFailure,
    InsufficientEncryptedBalance,
    InvalidAddress,
    InvalidAmount,
    RecipientKeyMissing,
)
from .keys import is_valid_address
from .private import get_encrypted_balance

logger = logging.getLogger(__name__)

SYMMETRIC_TAG = b"OCTRA_SYMMETRIC_V1"


@dataclass
class TransferReceipt:
    tx_hash: str
    ephemeral_key: str


@dataclass
class ClaimReceipt:
    transfer_id: str
    amount: Optional[str]


@dataclass
class PendingPrivateTransfer:
    id: str
    sender: str
    recipient: str
    ephemeral_key: str
    ciphertext: str
    epoch: Optional[int] = None
    created_at: Optional[str] = None
    amount: Optional[int] = None

    @classmethod
    def from_wire(cls, d):
        return cls(
            id=str(d.get("id", "")),
            sender=d.get("sender", ""),
            recipient=d.get("recipient", ""),
            ephemeral_key=d.get("ephemeral_key", ""),
            ciphertext=d.get("encrypted_data", ""),
            epoch=d.get("epoch_id"),
            created_at=d.get("created_at"),
        )


def _pub(key):
    if isinstance(key, (bytes, bytearray)):
        return bytes(key)
    try:
        return base64.b64decode(key, validate=True)
    except (binascii.Error, TypeError) as e:
        raise DecodeFailure("public key is not base64") from e


def _stretch(material):
    return hashlib.sha256(hashlib.sha256(material).digest() + SYMMETRIC_TAG).digest()[:32]


def derive_shared_secret(seed, their_public_key):
    """X25519 between our Ed25519 seed and their Ed25519 public key."""
    try:
        sk = nacl.signing.SigningKey(bytes(seed)).to_curve25519_private_key()
        pk = nacl.signing.VerifyKey(_pub(their_public_key)).to_curve25519_public_key()
        dh = nacl.bindings.crypto_scalarmult(sk.encode(), pk.encode())
    except (ValueError, TypeError, RuntimeError) as e:
        raise DecodeFailure("key agreement failed") from e
    return _stretch(dh)


def derive_network_secret(seed, ephemeral_key):
    """The node's own transfer secret: hash of both public keys, sorted."""
    mine = nacl.signing.SigningKey(bytes(seed)).verify_key.encode()
    eph = _pub(ephemeral_key)
    lo, hi = (eph, mine) if eph < mine else (mine, eph)
    return _stretch(lo + hi)


def reveal_amount(seed, ephemeral_key, ciphertext):
    last = None
    for derive in (derive_shared_secret, derive_network_secret):
        try:
            return open_sealed(ciphertext, derive(seed, ephemeral_key))
        except DecodeFailure as e:
            last = e
    raise last


class TransferProtocol:
    def __init__(self, rpc):
        self.rpc = rpc

    async def create_transfer(self, from_key, to_address, amount_micro):
        if not is_valid_address(to_address):
            return False, InvalidAddress(f"invalid address {to_address!r}")
        if to_address == from_key.address:
            return False, InvalidAddress("cannot send a private transfer to yourself")
        if isinstance(amount_micro, bool) or not isinstance(amount_micro, int) or amount_micro <= 0:
            return False, InvalidAmount("amount must be a positive integer of micro-units")

        ok, info = await self.rpc.address_info(to_address)
        if not ok:
            return False, info
        if not info or not info.get("has_public_key"):
            return False, RecipientKeyMissing(
                "recipient has no public key",
                detail="they need to make a transaction first",
            )

        ok, bal = await get_encrypted_balance(self.rpc, from_key)
        if not ok:
            return False, bal
        if amount_micro > bal.encrypted_raw:
            return False, InsufficientEncryptedBalance(
                "insufficient encrypted balance",
                detail=f"have {bal.encrypted_raw} micro-units",
            )

        ok, to_pub = await self.rpc.public_key(to_address)
        if not ok:
            return False, to_pub
        if not to_pub:
            return False, RecipientKeyMissing("cannot get recipient public key")

        eph = nacl.signing.SigningKey.generate()
        eph_pub = base64.b64encode(eph.verify_key.encode()).decode()
        try:
            secret = derive_shared_secret(eph.encode(), to_pub)
        except DecodeFailure as e:
            return False, RecipientKeyMissing("recipient public key is unusable", detail=str(e))

        data = {
            "from": from_key.address,
            "to": to_address,
            "amount": str(amount_micro),
            "from_private_key": from_key.private_key_b64,
            "to_public_key": to_pub,
            "ephemeral_key": eph_pub,
            "encrypted_data": seal(amount_micro, secret),
        }
        ok, j = await self.rpc.post("/private_transfer", data, "private_transfer")
        if not ok:
            return False, j
        logger.info("private transfer %s -> %s submitted", from_key.address, to_address)
        return True, TransferReceipt(j.get("tx_hash", ""), j.get("ephemeral_key") or eph_pub)

    async def list_claimable(self, address, key):
        ok, raw = await self.rpc.pending_private_transfers(address, key)
        if not ok:
            return False, raw

        out = []
        for d in raw:
            if not isinstance(d, dict):
                continue
            t = PendingPrivateTransfer.from_wire(d)
            if t.ciphertext and t.ephemeral_key:
                try:
                    t.amount = reveal_amount(key.seed, t.ephemeral_key, t.ciphertext)
                except DecodeFailure as e:
                    logger.warning("transfer #%s: amount unknown (%s)", t.id, e)
            out.append(t)
        return True, out

    async def claim(self, address, key, transfer_id):
        data = {
            "recipient_address": address,
            "private_key": key.private_key_b64,
            "transfer_id": transfer_id,
        }
        ok, j = await self.rpc.post("/claim_private_transfer", data, "claim_private_transfer")
        if not ok:
            if "already claimed" in str(j.detail or "").lower():
                return False, AlreadyClaimed(f"transfer #{transfer_id} already claimed", detail=j.detail)
            return False, j
        amt = j.get("amount")
        return True, ClaimReceipt(str(transfer_id), None if amt is None else str(amt))
