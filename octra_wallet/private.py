import logging
from dataclasses import dataclass

from .codec import encode
from .errors import InsufficientBalance, InsufficientEncryptedBalance, InvalidAmount, NetworkError
from .tx import μ

logger = logging.getLogger(__name__)

# kept public so the encrypt tx itself can pay its fee
FEE_RESERVE = 1 * μ


@dataclass(frozen=True)
class EncryptedBalance:
    public_raw: int
    encrypted_raw: int
    total_raw: int
    public: float = 0.0
    encrypted: float = 0.0
    total: float = 0.0

    @property
    def max_encrypt(self):
        return max(self.public_raw - FEE_RESERVE, 0)

    @property
    def max_decrypt(self):
        return self.encrypted_raw


def _display(v):
    return float(str(v or "0").split()[0])


def parse_encrypted_balance(j):
    public_raw = int(j.get("public_balance_raw", 0) or 0)
    encrypted_raw = int(j.get("encrypted_balance_raw", 0) or 0)
    total_raw = j.get("total_balance_raw")
    return EncryptedBalance(
        public_raw=public_raw,
        encrypted_raw=encrypted_raw,
        total_raw=int(total_raw) if total_raw is not None else public_raw + encrypted_raw,
        public=_display(j.get("public_balance")),
        encrypted=_display(j.get("encrypted_balance")),
        total=_display(j.get("total_balance")),
    )


async def get_encrypted_balance(rpc, key):
    ok, j = await rpc.encrypted_balance(key)
    if not ok:
        return False, j
    try:
        return True, parse_encrypted_balance(j)
    except (TypeError, ValueError) as e:
        return False, NetworkError("malformed encrypted balance", detail=str(e))


def _check_amount(amount_micro):
    if isinstance(amount_micro, bool) or not isinstance(amount_micro, int) or amount_micro <= 0:
        return InvalidAmount("amount must be a positive integer of micro-units")
    return None


async def _submit(rpc, key, path, amount_micro, new_total):
    data = {
        "address": key.address,
        "amount": str(amount_micro),
        "private_key": key.private_key_b64,
        "encrypted_data": encode(new_total, key),
    }
    ok, j = await rpc.post(path, data)
    if not ok:
        return False, j
    return True, j.get("tx_hash", "")


async def encrypt_balance(rpc, key, amount_micro):
    """Move amount_micro from the public into the encrypted balance.

    The node keeps one ciphertext per address, so the new total is computed
    from a fresh snapshot and re-encoded in full.
    """
    err = _check_amount(amount_micro)
    if err:
        return False, err
    ok, bal = await get_encrypted_balance(rpc, key)
    if not ok:
        return False, bal
    if amount_micro > bal.max_encrypt:
        return False, InsufficientBalance(
            "amount exceeds encryptable public balance",
            detail=f"max {bal.max_encrypt} micro-units",
        )
    logger.info("encrypting %d for %s", amount_micro, key.address)
    return await _submit(rpc, key, "/encrypt_balance", amount_micro, bal.encrypted_raw + amount_micro)


async def decrypt_balance(rpc, key, amount_micro):
    err = _check_amount(amount_micro)
    if err:
        return False, err
    ok, bal = await get_encrypted_balance(rpc, key)
    if not ok:
        return False, bal
    if amount_micro > bal.encrypted_raw:
        return False, InsufficientEncryptedBalance(
            "insufficient encrypted balance",
            detail=f"have {bal.encrypted_raw} micro-units",
        )
    logger.info("decrypting %d for %s", amount_micro, key.address)
    return await _submit(rpc, key, "/decrypt_balance", amount_micro, bal.encrypted_raw - amount_micro)
