import base64
import hashlib
import hmac
import re
import secrets

import base58
import nacl.exceptions
import nacl.signing
from mnemonic import Mnemonic

from .errors import InvalidMnemonic, InvalidPrivateKey, InvalidSeedLength

b58 = re.compile(r"^oct[1-9A-HJ-NP-Za-km-z]{44}$")

SEED_LEN = 32
MASTER_KEY = b"Octra seed"
_wordlist = Mnemonic("english")


def is_valid_address(address):
    return isinstance(address, str) and bool(b58.match(address))


def address_from_public_key(public_key):
    body = base58.b58encode(hashlib.sha256(public_key).digest()).decode()
    return "oct" + body.rjust(44, "1")


def derive(seed):
    """Return (public_key, address) for a 32-byte Ed25519 seed."""
    if not isinstance(seed, (bytes, bytearray)) or len(seed) != SEED_LEN:
        raise InvalidSeedLength(f"seed must be {SEED_LEN} bytes")
    pk = nacl.signing.SigningKey(bytes(seed)).verify_key.encode()
    return pk, address_from_public_key(pk)


def generate_mnemonic(strength=128):
    return _wordlist.generate(strength=strength)


def seed_from_mnemonic(words, passphrase=""):
    if isinstance(words, (list, tuple)):
        words = " ".join(words)
    phrase = " ".join(str(words).split()).lower()
    if len(phrase.split()) not in (12, 24):
        raise InvalidMnemonic("mnemonic must have 12 or 24 words")
    try:
        ok = _wordlist.check(phrase)
    except (ValueError, LookupError):
        ok = False
    if not ok:
        raise InvalidMnemonic("mnemonic checksum failed")
    bip39 = Mnemonic.to_seed(phrase, passphrase=passphrase)
    return hmac.new(MASTER_KEY, bip39, hashlib.sha512).digest()[:SEED_LEN]


def verify(payload, signature, public_key):
    try:
        nacl.signing.VerifyKey(bytes(public_key)).verify(bytes(payload), bytes(signature))
        return True
    except (nacl.exceptions.BadSignatureError, ValueError, TypeError):
        return False


class KeyMaterial:
    """Seed, signing key and address of one wallet.

    Treated as immutable while a session is alive; wipe() zeroes the seed
    buffer when the session ends.
    """

    __slots__ = ("_seed", "_sk", "public_key", "address", "mnemonic")

    def __init__(self, seed, mnemonic=None):
        pk, address = derive(seed)
        self._seed = bytearray(seed)
        self._sk = nacl.signing.SigningKey(bytes(seed))
        self.public_key = pk
        self.address = address
        self.mnemonic = mnemonic

    @classmethod
    def from_seed(cls, seed):
        return cls(seed)

    @classmethod
    def from_mnemonic(cls, words, passphrase=""):
        seed = seed_from_mnemonic(words, passphrase)
        if isinstance(words, (list, tuple)):
            words = " ".join(words)
        return cls(seed, mnemonic=" ".join(words.split()).lower())

    @classmethod
    def from_private_key(cls, text):
        """Accepts a base64 seed or a 0x-prefixed hex seed."""
        k = (text or "").strip()
        try:
            if k.startswith("0x"):
                raw = bytes.fromhex(k[2:])
            else:
                raw = base64.b64decode(k, validate=True)
        except ValueError as e:
            raise InvalidPrivateKey("private key is neither base64 nor 0x-hex") from e
        if len(raw) != SEED_LEN:
            raise InvalidPrivateKey(f"private key must decode to {SEED_LEN} bytes")
        return cls(raw)

    @classmethod
    def generate(cls, strength=128):
        words = generate_mnemonic(strength)
        return cls.from_mnemonic(words)

    @classmethod
    def random(cls):
        return cls(secrets.token_bytes(SEED_LEN))

    @property
    def seed(self):
        return bytes(self._seed)

    @property
    def secret_key(self):
        # 64-byte form: seed || public key
        return self.seed + self.public_key

    @property
    def private_key_b64(self):
        return base64.b64encode(self.seed).decode()

    @property
    def public_key_b64(self):
        return base64.b64encode(self.public_key).decode()

    @property
    def signing_key(self):
        return self._sk

    @property
    def wiped(self):
        return self._sk is None

    def sign(self, payload):
        if self._sk is None:
            raise ValueError("key material has been wiped")
        return self._sk.sign(bytes(payload)).signature

    def verify(self, payload, signature):
        return verify(payload, signature, self.public_key)

    def wipe(self):
        for i in range(len(self._seed)):
            self._seed[i] = 0
        self._sk = None
        self.mnemonic = None

    def __repr__(self):
        return f"KeyMaterial(address={self.address!r})"
