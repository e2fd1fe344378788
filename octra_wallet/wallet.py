import logging

from . import private
from .batch import BatchSubmitter, Recipient
from .domains import DomainResolver, resolve_address_or_domain
from .errors import InsufficientBalance, InvalidAmount, WalletError
from .history import fetch_history
from .nonce import NonceSequencer
from .rpc import RpcClient
from .transfer import TransferProtocol
from .tx import build, fee_micro, validate, μ

logger = logging.getLogger(__name__)


class Wallet:
    """One KeyMaterial bound to one RPC endpoint. Every coroutine returns (ok, value_or_error)."""

    def __init__(self, key, rpc=None, resolver=None):
        self.key = key
        self.rpc = rpc or RpcClient()
        self.domains = resolver or DomainResolver(self.rpc)
        self.nonces = NonceSequencer(self.rpc)
        self.batches = BatchSubmitter(self.rpc)
        self.transfers = TransferProtocol(self.rpc)

    @property
    def address(self):
        return self.key.address

    async def close(self):
        await self.rpc.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def balance(self):
        return await self.rpc.balance(self.address)

    async def next_nonce(self):
        return await self.nonces.next_nonce(self.address)

    async def _affordable(self, amounts):
        ok, bal = await self.balance()
        if not ok:
            return bal
        need = sum(a + fee_micro(a) for a in amounts)
        have = int(round(bal.balance * μ))
        if have < need:
            return InsufficientBalance("insufficient balance", detail=f"need {need}, have {have} micro-units")
        return None

    async def send(self, to, amount_micro, message=None):
        # reject bad input before any network call
        if isinstance(amount_micro, int) and not isinstance(amount_micro, bool) and amount_micro <= 0:
            return False, InvalidAmount("amount must be positive")
        try:
            validate(self.address, None, amount_micro, 1, self.key, message)
        except WalletError as e:
            return False, e
        ok, to = await self.resolve(to)
        if not ok:
            return False, to
        err = await self._affordable([amount_micro])
        if err:
            return False, err
        ok, n = await self.next_nonce()
        if not ok:
            return False, n
        tx = build(self.address, to, amount_micro, n, self.key, message)
        ok, v = await self.rpc.send_tx(tx)
        if ok:
            logger.info("sent nonce %d to %s: %s", n, to, v)
        return ok, v

    async def multi_send(self, recipients):
        rcp = [r if isinstance(r, Recipient) else Recipient(*r) for r in recipients]
        if not rcp:
            return True, []
        err = await self._affordable([r.amount for r in rcp])
        if err:
            return False, err
        ok, n = await self.next_nonce()
        if not ok:
            return False, n
        return True, await self.batches.submit_all(rcp, n, self.key)

    async def encrypted_balance(self):
        return await private.get_encrypted_balance(self.rpc, self.key)

    async def encrypt_balance(self, amount_micro):
        return await private.encrypt_balance(self.rpc, self.key, amount_micro)

    async def decrypt_balance(self, amount_micro):
        return await private.decrypt_balance(self.rpc, self.key, amount_micro)

    async def resolve(self, to):
        """Address as given, or the address a .oct domain points at. Plain addresses cost no request."""
        return await resolve_address_or_domain(to, self.domains)

    async def private_transfer(self, to, amount_micro):
        ok, to = await self.resolve(to)
        if not ok:
            return False, to
        return await self.transfers.create_transfer(self.key, to, amount_micro)

    async def claimable(self):
        return await self.transfers.list_claimable(self.address, self.key)

    async def claim(self, transfer_id):
        return await self.transfers.claim(self.address, self.key, transfer_id)

    async def history(self, limit=20):
        return await fetch_history(self.rpc, self.address, limit)
