"""Ciphertext format for hidden balances and private transfer amounts.

v2 (current): "v2|" + base64(nonce[12] || AES-256-GCM(ciphertext || tag)),
plaintext is the decimal string of the micro-unit amount.
v1 (read-only): base64(nonce[16] || tag[16] || body), sha256 keystream.
"""
import base64
import binascii
import hashlib
import hmac
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import DecodeFailure, InvalidAmount

V2 = "v2|"
V2_SALT = b"octra_encrypted_balance_v2"
V1_SALT = b"octra_encrypted_balance_v1"
NONCE_LEN = 12
MIN_V2_LEN = NONCE_LEN + 16


def derive_encryption_key(seed):
    return hashlib.sha256(V2_SALT + bytes(seed)).digest()[:32]


def _v1_key(seed):
    seed = bytes(seed)
    return (hashlib.sha256(V1_SALT + seed).digest() + hashlib.sha256(seed + V1_SALT).digest())[:32]


def _amount(plaintext):
    try:
        s = plaintext.decode("ascii")
    except UnicodeDecodeError as e:
        raise DecodeFailure("plaintext is not ascii") from e
    if not s.isdigit():
        raise DecodeFailure("plaintext is not a non-negative integer")
    return int(s)


def seal(raw_amount, secret):
    if isinstance(raw_amount, bool) or not isinstance(raw_amount, int) or raw_amount < 0:
        raise InvalidAmount("amount must be a non-negative integer")
    nonce = secrets.token_bytes(NONCE_LEN)
    ct = AESGCM(bytes(secret)).encrypt(nonce, str(raw_amount).encode(), None)
    return V2 + base64.b64encode(nonce + ct).decode()


def open_sealed(data, secret):
    if not isinstance(data, str) or not data.startswith(V2):
        raise DecodeFailure("not a v2 ciphertext")
    try:
        raw = base64.b64decode(data[len(V2):], validate=True)
    except binascii.Error as e:
        raise DecodeFailure("bad base64") from e
    if len(raw) < MIN_V2_LEN:
        raise DecodeFailure("ciphertext too short")
    try:
        pt = AESGCM(bytes(secret)).decrypt(raw[:NONCE_LEN], raw[NONCE_LEN:], None)
    except (InvalidTag, ValueError) as e:
        raise DecodeFailure("authentication failed") from e
    return _amount(pt)


def _open_v1(data, seed):
    key = _v1_key(seed)
    try:
        raw = base64.b64decode(data, validate=True)
    except binascii.Error as e:
        raise DecodeFailure("bad base64") from e
    if len(raw) < 32:
        raise DecodeFailure("ciphertext too short")
    nonce, tag, body = raw[:16], raw[16:32], raw[32:]
    if not hmac.compare_digest(tag, hashlib.sha256(nonce + body + key).digest()[:16]):
        raise DecodeFailure("authentication failed")
    stream = hashlib.sha256(key + nonce).digest()
    return _amount(bytes(b ^ stream[i % 32] for i, b in enumerate(body)))


def encode(raw_amount, key):
    return seal(raw_amount, derive_encryption_key(key.seed))


def decode(data, key):
    """Inverse of encode. Raises DecodeFailure on any mismatch."""
    if data in ("0", "", None):
        return 0
    if not isinstance(data, str):
        raise DecodeFailure("ciphertext must be a string")
    if data.startswith(V2):
        return open_sealed(data, derive_encryption_key(key.seed))
    return _open_v1(data, key.seed)
