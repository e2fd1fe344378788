import asyncio
import logging
from dataclasses import dataclass, field
from typing import List

from .errors import BalanceFetchError

logger = logging.getLogger(__name__)


@dataclass
class NonceState:
    confirmed_count: int
    max_pending_nonce: int = 0
    pending_nonces: List[int] = field(default_factory=list)

    @property
    def next_nonce(self):
        return max(self.confirmed_count, self.max_pending_nonce) + 1

    @property
    def gaps(self):
        """Nonces above the confirmed count that no staged transaction holds."""
        held = set(self.pending_nonces)
        return [n for n in range(self.confirmed_count + 1, self.max_pending_nonce) if n not in held]


class NonceSequencer:
    def __init__(self, rpc):
        self.rpc = rpc

    async def state(self, address):
        results = await asyncio.gather(
            self.rpc.balance(address),
            self.rpc.staging(),
            return_exceptions=True,
        )
        if isinstance(results[0], Exception):
            raise BalanceFetchError("balance lookup failed", detail=str(results[0]))
        ok, bal = results[0]
        sok, staged = results[1] if not isinstance(results[1], Exception) else (False, results[1])
        if not ok:
            raise bal if isinstance(bal, BalanceFetchError) else BalanceFetchError(str(bal))

        pending = []
        if sok:
            for tx in staged:
                if not isinstance(tx, dict) or tx.get("from") != address:
                    continue
                try:
                    pending.append(int(tx.get("nonce", 0)))
                except (TypeError, ValueError):
                    logger.warning("ignoring staged tx with bad nonce %r", tx.get("nonce"))
        else:
            logger.warning("staging lookup failed, using confirmed count only: %s", staged)

        st = NonceState(bal.nonce, max(pending, default=0), sorted(pending))
        if st.gaps:
            logger.warning("nonce gap for %s: %s not staged", address, st.gaps)
        return st

    async def next_nonce(self, address):
        try:
            st = await self.state(address)
        except BalanceFetchError as e:
            return False, e
        return True, st.next_nonce
