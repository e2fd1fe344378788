import asyncio
import json
import logging
import re
import ssl
from dataclasses import dataclass

import aiohttp

from .config import DEFAULT_RPC, DEFAULT_TIMEOUT
from .errors import BalanceFetchError, NetworkError, RejectedError

logger = logging.getLogger(__name__)

ok_hash = re.compile(r"^OK\s+([0-9a-fA-F]{64})", re.IGNORECASE)


@dataclass
class BalanceInfo:
    balance: float
    nonce: int


def failure(s, t, j, what="request"):
    """Turn a non-success (status, text, json) triple into a typed error."""
    detail = j.get("error", t) if isinstance(j, dict) else t
    if s == 0:
        return NetworkError(f"{what} failed", detail=detail, status=0)
    if s >= 500:
        return NetworkError(f"{what} failed with HTTP {s}", detail=detail, status=s)
    return RejectedError(f"{what} rejected with HTTP {s}", detail=detail, status=s)


class RpcClient:
    def __init__(self, base_url=DEFAULT_RPC, timeout=DEFAULT_TIMEOUT, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    def _open(self):
        if self.session is None or self.session.closed:
            ssl_context = ssl.create_default_context()
            connector = aiohttp.TCPConnector(ssl=ssl_context, force_close=True)
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                connector=connector,
                json_serialize=json.dumps,
            )
        return self.session

    async def close(self):
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None

    async def req(self, m, p, d=None, t=None, headers=None):
        """Returns (status, text, json); status 0 means no response."""
        session = self._open()
        url = f"{self.base_url}{p}"
        kwargs = {}
        if headers:
            kwargs["headers"] = headers
        if m == "POST" and d is not None:
            kwargs["json"] = d
        if t is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=t)
        logger.debug("%s %s", m, p)
        try:
            async with session.request(m, url, **kwargs) as resp:
                text = await resp.text()
                try:
                    j = json.loads(text) if text.strip() else None
                except ValueError:
                    j = None
                return resp.status, text, j
        except asyncio.TimeoutError:
            return 0, "timeout", None
        except (aiohttp.ClientError, UnicodeDecodeError) as e:
            return 0, str(e), None

    async def req_private(self, path, key, method="GET", data=None):
        return await self.req(method, path, data, headers={"X-Private-Key": key.private_key_b64})

    async def post(self, path, data, what=None):
        s, t, j = await self.req("POST", path, data)
        if s == 200:
            return True, j if j is not None else {}
        return False, failure(s, t, j, what or path)

    async def balance(self, address):
        s, t, j = await self.req("GET", f"/balance/{address}")
        if s == 200 and isinstance(j, dict):
            try:
                return True, BalanceInfo(float(j.get("balance", 0)), int(j.get("nonce", 0)))
            except (TypeError, ValueError):
                return False, BalanceFetchError("malformed balance response", detail=t, status=s)
        if s == 404:
            return True, BalanceInfo(0.0, 0)
        if s == 200 and t:
            parts = t.strip().split()
            if len(parts) >= 2:
                try:
                    return True, BalanceInfo(float(parts[0]), int(parts[1]))
                except ValueError:
                    pass
            return False, BalanceFetchError("malformed balance response", detail=t, status=s)
        err = failure(s, t, j, "balance")
        return False, BalanceFetchError(str(err), detail=err.detail, status=s)

    async def staging(self, t=5):
        s, text, j = await self.req("GET", "/staging", t=t)
        if s == 200 and isinstance(j, dict):
            txs = j.get("staged_transactions", [])
            if isinstance(txs, list):
                return True, txs
        if s == 200:
            return False, NetworkError("malformed staging response", detail=text, status=s)
        return False, failure(s, text, j, "staging")

    async def send_tx(self, tx):
        wire = tx.to_wire() if hasattr(tx, "to_wire") else tx
        s, t, j = await self.req("POST", "/send-tx", wire)
        if 200 <= s < 300:
            if isinstance(j, dict) and j.get("status") == "accepted":
                return True, j.get("tx_hash", "")
            m = ok_hash.match(t.strip())
            if m:
                return True, m.group(1)
        if s == 0 or s >= 500:
            return False, failure(s, t, j, "send-tx")
        return False, RejectedError("transaction rejected", detail=json.dumps(j) if j else t, status=s)

    async def address_info(self, address, limit=None):
        p = f"/address/{address}" + (f"?limit={limit}" if limit else "")
        s, t, j = await self.req("GET", p)
        if s == 200 and isinstance(j, dict):
            return True, j
        if s == 404:
            return True, None
        return False, failure(s, t, j, "address")

    async def public_key(self, address):
        s, t, j = await self.req("GET", f"/public_key/{address}")
        if s == 200 and isinstance(j, dict):
            return True, j.get("public_key")
        if s == 404:
            return True, None
        return False, failure(s, t, j, "public_key")

    async def tx(self, tx_hash, t=5):
        s, text, j = await self.req("GET", f"/tx/{tx_hash}", t=t)
        if s == 200 and isinstance(j, dict):
            return True, j
        return False, failure(s, text, j, "tx")

    async def encrypted_balance(self, key):
        s, t, j = await self.req_private(f"/view_encrypted_balance/{key.address}", key)
        if s == 200 and isinstance(j, dict):
            return True, j
        return False, failure(s, t, j, "view_encrypted_balance")

    async def pending_private_transfers(self, address, key):
        s, t, j = await self.req_private(f"/pending_private_transfers?address={address}", key)
        if s == 200 and isinstance(j, dict):
            return True, j.get("pending_transfers", []) or []
        return False, failure(s, t, j, "pending_private_transfers")
