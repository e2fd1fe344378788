import asyncio
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from .errors import InputError, WalletError
from .keys import is_valid_address
from .tx import build, parse_amount

logger = logging.getLogger(__name__)

BATCH_SIZE = 5
PACE = 0.05


@dataclass
class Recipient:
    address: str
    amount: int
    message: Optional[str] = None


@dataclass
class SendResult:
    success: bool
    recipient: str
    amount: int
    nonce: int
    hash: Optional[str] = None
    error: Optional[WalletError] = None


@dataclass
class ParsedLine:
    line: int
    address: str
    amount: Optional[int] = None
    error: Optional[str] = None

    @property
    def valid(self):
        return self.error is None


def parse_recipients(text, same_amount=None):
    """Parse `address amount` / `address,amount` lines, or bare addresses
    when same_amount is given. Every non-blank line yields a ParsedLine."""
    out = []
    fixed = None
    if same_amount is not None:
        fixed = same_amount if isinstance(same_amount, int) else parse_amount(same_amount)
    for n, raw in enumerate(text.splitlines(), 1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        parts = [p for p in re.split(r"[,\s]+", line) if p]
        p = ParsedLine(n, parts[0])
        if not is_valid_address(p.address):
            p.error = "invalid address"
        elif fixed is not None:
            p.amount = fixed
        elif len(parts) < 2:
            p.error = "amount missing"
        else:
            try:
                p.amount = parse_amount(parts[1])
            except InputError:
                p.error = "invalid amount"
        out.append(p)
    return out


class BatchSubmitter:
    def __init__(self, rpc, batch_size=BATCH_SIZE, pace=PACE):
        self.rpc = rpc
        self.batch_size = batch_size
        self.pace = pace

    async def _send(self, tx):
        return await self.rpc.send_tx(tx)

    async def submit_all(self, recipients: List[Recipient], starting_nonce, key) -> List[SendResult]:
        bs = self.batch_size
        batches = [recipients[i:i + bs] for i in range(0, len(recipients), bs)]
        results = []

        for b, batch in enumerate(batches):
            slots, tasks = [], []
            for i, r in enumerate(batch):
                n = starting_nonce + b * bs + i
                res = SendResult(False, r.address, r.amount, n)
                try:
                    tx = build(key.address, r.address, r.amount, n, key, r.message)
                except WalletError as e:
                    res.error = e
                else:
                    tasks.append(self._send(tx))
                    slots.append(res)
                results.append(res)

            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
            for res, o in zip(slots, outcomes):
                if isinstance(o, Exception):
                    logger.warning("send of nonce %d raised: %r", res.nonce, o)
                    res.error = o if isinstance(o, WalletError) else WalletError("send failed", detail=str(o))
                    continue
                ok, v = o
                if ok:
                    res.success, res.hash = True, v
                else:
                    res.error = v

            sent = sum(1 for r in results[b * bs:] if r.success)
            logger.info("batch %d/%d: %d/%d accepted", b + 1, len(batches), sent, len(batch))
            if b < len(batches) - 1:
                await asyncio.sleep(self.pace)

        return results
