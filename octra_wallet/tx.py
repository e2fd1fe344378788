import base64
import hashlib
import json
import math
import random
import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional

from .errors import InvalidAddress, InvalidAmount, InvalidNonce, MessageTooLong, SigningError
from .keys import is_valid_address, verify

μ = 1_000_000
MAX_MESSAGE = 1024
OU_THRESHOLD = 1000

SIGNED_FIELDS = ("from", "to_", "amount", "nonce", "ou", "timestamp")


def fee_for(amount):
    """Fee in native units for a display amount."""
    return 0.001 if amount < OU_THRESHOLD else 0.003


def fee_micro(amount_micro):
    return 1_000 if amount_micro < OU_THRESHOLD * μ else 3_000


def ou_for(amount_micro):
    return "1" if amount_micro < OU_THRESHOLD * μ else "3"


def parse_amount(text, allow_zero=False):
    """Display-unit string -> micro-units."""
    try:
        d = Decimal(str(text).strip())
    except InvalidOperation as e:
        raise InvalidAmount(f"invalid amount {text!r}") from e
    if not d.is_finite():
        raise InvalidAmount(f"invalid amount {text!r}")
    raw = d * μ
    if raw != raw.to_integral_value():
        raise InvalidAmount("amount has more than 6 decimals")
    raw = int(raw)
    if raw < 0 or (raw == 0 and not allow_zero):
        raise InvalidAmount("amount must be positive")
    return raw


def format_amount(amount_micro):
    return f"{Decimal(amount_micro) / μ:.6f}"


def timestamp():
    # jitter keeps rapid successive builds from colliding
    return math.floor((time.time() + random.random() * 0.01) * 1000) / 1000


def signing_payload(fields):
    return json.dumps({k: fields[k] for k in SIGNED_FIELDS}, separators=(",", ":")).encode()


@dataclass(frozen=True)
class Transaction:
    from_: str
    to: str
    amount: str
    nonce: int
    ou: str
    timestamp: float
    signature: str
    public_key: str
    message: Optional[str] = None
    local_hash: str = field(default="", compare=False)

    @property
    def amount_micro(self):
        return int(self.amount)

    def signed_fields(self):
        return {"from": self.from_, "to_": self.to, "amount": self.amount,
                "nonce": self.nonce, "ou": self.ou, "timestamp": self.timestamp}

    def payload(self):
        return signing_payload(self.signed_fields())

    def to_wire(self):
        d = self.signed_fields()
        if self.message:
            d["message"] = self.message
        d["signature"] = self.signature
        d["public_key"] = self.public_key
        return d


def validate(from_addr, to, amount_micro, nonce, key, message=None):
    """Raise the InputError build would raise, without signing. A None `to` is not checked."""
    if from_addr != key.address:
        raise InvalidAddress("sender does not match key material")
    if to is not None and not is_valid_address(to):
        raise InvalidAddress(f"invalid address {to!r}")
    if isinstance(amount_micro, bool) or not isinstance(amount_micro, int) or amount_micro < 0:
        raise InvalidAmount("amount must be a non-negative integer of micro-units")
    if isinstance(nonce, bool) or not isinstance(nonce, int) or nonce < 1:
        raise InvalidNonce("nonce must be a positive integer")
    if message is not None and len(message) > MAX_MESSAGE:
        raise MessageTooLong(f"message exceeds {MAX_MESSAGE} chars")


def build(from_addr, to, amount_micro, nonce, key, message=None, ts=None):
    if to is None:
        raise InvalidAddress("recipient is required")
    validate(from_addr, to, amount_micro, nonce, key, message)

    fields = {
        "from": from_addr,
        "to_": to,
        "amount": str(amount_micro),
        "nonce": nonce,
        "ou": ou_for(amount_micro),
        "timestamp": timestamp() if ts is None else ts,
    }
    bl = signing_payload(fields)
    try:
        sig = key.sign(bl)
    except (ValueError, TypeError) as e:
        raise SigningError("could not sign transaction", detail=str(e)) from e
    return Transaction(
        from_=from_addr,
        to=to,
        amount=fields["amount"],
        nonce=nonce,
        ou=fields["ou"],
        timestamp=fields["timestamp"],
        signature=base64.b64encode(sig).decode(),
        public_key=key.public_key_b64,
        message=message or None,
        local_hash=hashlib.sha256(bl).hexdigest(),
    )


def verify_transaction(tx):
    try:
        sig = base64.b64decode(tx.signature)
        pk = base64.b64decode(tx.public_key)
    except ValueError:
        return False
    return verify(tx.payload(), sig, pk)
