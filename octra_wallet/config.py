import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

from .errors import InputError, InvalidAddress
from .keys import KeyMaterial

logger = logging.getLogger(__name__)

DEFAULT_RPC = "https://octra.network"
DEFAULT_TIMEOUT = 10
WALLET_PATHS = ("~/.octra/wallet.json", "wallet.json")


@dataclass
class WalletConfig:
    priv: str
    addr: str
    rpc: str = DEFAULT_RPC
    timeout: float = DEFAULT_TIMEOUT
    path: Optional[str] = None

    @property
    def insecure(self):
        return not self.rpc.startswith("https://") and "localhost" not in self.rpc

    def key(self):
        km = KeyMaterial.from_private_key(self.priv)
        if self.addr and km.address != self.addr:
            raise InvalidAddress(f"wallet address {self.addr} does not match its private key")
        return km


def find_wallet(path=None):
    candidates = [path] if path else [os.environ.get("OCTRA_WALLET")] + list(WALLET_PATHS)
    for p in candidates:
        if p and os.path.exists(os.path.expanduser(p)):
            return os.path.expanduser(p)
    return None


def load_wallet(path=None):
    p = find_wallet(path)
    if not p:
        raise InputError("wallet.json not found")
    with open(p, "r") as f:
        try:
            d = json.load(f)
        except json.JSONDecodeError as e:
            raise InputError(f"{p} is not valid json") from e

    priv, addr = d.get("priv"), d.get("addr")
    if not priv or not addr:
        raise InputError(f"{p} must define priv and addr")

    cfg = WalletConfig(
        priv=priv,
        addr=addr,
        rpc=os.environ.get("OCTRA_RPC_URL") or d.get("rpc") or DEFAULT_RPC,
        timeout=float(os.environ.get("OCTRA_TIMEOUT", d.get("timeout", DEFAULT_TIMEOUT))),
        path=p,
    )
    cfg.rpc = cfg.rpc.rstrip("/")
    if cfg.insecure:
        logger.warning("using insecure http connection to %s", cfg.rpc)
    return cfg


def save_wallet(path, key, rpc=DEFAULT_RPC):
    data = {"priv": key.private_key_b64, "addr": key.address, "rpc": rpc}
    old = os.umask(0o077)
    try:
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
    finally:
        os.umask(old)
    os.chmod(path, 0o600)
    return path
