import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Optional, Union

from .tx import μ

logger = logging.getLogger(__name__)


def _micro(v):
    s = str(v if v is not None else "0")
    if "." in s:
        return int(round(float(s) * μ))
    return int(s)


@dataclass(frozen=True)
class PendingTransaction:
    hash: str
    from_: str
    to: str
    amount: int
    nonce: int
    timestamp: float
    stage_status: str
    message: Optional[str] = None
    status = "pending"

    def direction(self, address):
        return "out" if self.from_ == address else "in"


@dataclass(frozen=True)
class ConfirmedTransaction:
    hash: str
    from_: str
    to: str
    amount: int
    nonce: int
    timestamp: float
    epoch: int
    message: Optional[str] = None
    status = "confirmed"

    def direction(self, address):
        return "out" if self.from_ == address else "in"


HistoryEntry = Union[PendingTransaction, ConfirmedTransaction]


def _message(detail):
    if detail.get("message"):
        return detail["message"]
    try:
        return json.loads(detail.get("data") or "{}").get("message")
    except (ValueError, AttributeError):
        return None


def parse_entry(raw, epoch=None):
    """Staging records carry stage_status; /tx detail records carry parsed_tx."""
    if "stage_status" in raw:
        return PendingTransaction(
            hash=raw.get("hash", ""),
            from_=raw.get("from", ""),
            to=raw.get("to") or raw.get("to_", ""),
            amount=_micro(raw.get("amount")),
            nonce=int(raw.get("nonce", 0)),
            timestamp=float(raw.get("timestamp", 0)),
            stage_status=raw["stage_status"],
            message=raw.get("message"),
        )
    p = raw.get("parsed_tx", raw)
    return ConfirmedTransaction(
        hash=raw.get("tx_hash") or raw.get("hash", ""),
        from_=p.get("from", ""),
        to=p.get("to") or p.get("to_", ""),
        amount=_micro(p.get("amount_raw", p.get("amount"))),
        nonce=int(p.get("nonce", 0)),
        timestamp=float(p.get("timestamp", 0)),
        epoch=int(raw.get("epoch", epoch or 0)),
        message=p.get("message") or _message(raw),
    )


async def fetch_history(rpc, address, limit=20):
    (ok, info), (sok, staged) = await asyncio.gather(
        rpc.address_info(address, limit=limit),
        rpc.staging(),
    )
    out = []
    if sok:
        for raw in staged:
            if isinstance(raw, dict) and address in (raw.get("from"), raw.get("to"), raw.get("to_")):
                try:
                    out.append(parse_entry({"stage_status": "staged", **raw}))
                except (TypeError, ValueError, KeyError) as e:
                    logger.warning("skipping staged tx %s: %s", raw.get("hash"), e)
    if not ok:
        if not out:
            return False, info
        logger.warning("history for %s: confirmed lookup failed: %s", address, info)
        return True, out

    refs = [r for r in (info or {}).get("recent_transactions") or [] if isinstance(r, dict) and r.get("hash")]
    details = await asyncio.gather(*[rpc.tx(r["hash"]) for r in refs])
    seen = {e.hash for e in out}
    for ref, (dok, d) in zip(refs, details):
        if not dok or "parsed_tx" not in d:
            logger.debug("skipping %s: no detail", ref["hash"])
            continue
        try:
            e = parse_entry({"tx_hash": ref["hash"], **d}, epoch=ref.get("epoch"))
        except (TypeError, ValueError, KeyError, AttributeError) as err:
            logger.warning("skipping %s: %s", ref["hash"], err)
            continue
        if e.hash not in seen:
            seen.add(e.hash)
            out.append(e)

    out.sort(key=lambda e: e.timestamp, reverse=True)
    return True, out
