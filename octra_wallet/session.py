import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .errors import InvalidAddress
from .keys import KeyMaterial

logger = logging.getLogger(__name__)

INIT, ADD, REMOVE, SWITCH, TEARDOWN = "init", "add", "remove", "switch", "teardown"


@dataclass(frozen=True)
class SessionEvent:
    kind: str
    address: Optional[str] = None


class WalletSession:
    """Wallets unlocked in this process and which one is active.

    Observers subscribe for SessionEvents instead of watching storage.
    """

    def __init__(self):
        self._keys: Dict[str, KeyMaterial] = {}
        self._active: Optional[str] = None
        self._subs: List[Callable[[SessionEvent], None]] = []
        self.closed = False

    def subscribe(self, cb):
        self._subs.append(cb)

        def unsubscribe():
            if cb in self._subs:
                self._subs.remove(cb)
        return unsubscribe

    def _publish(self, kind, address=None):
        ev = SessionEvent(kind, address)
        for cb in list(self._subs):
            try:
                cb(ev)
            except Exception:
                logger.exception("session subscriber failed on %s", kind)

    def _check_open(self):
        if self.closed:
            raise RuntimeError("session has been torn down")

    def init(self, keys, active=None):
        self._check_open()
        new = {k.address: k for k in keys}
        if active is not None and active not in new:
            raise InvalidAddress(f"{active} is not in this session")
        kept = {id(k) for k in new.values()}
        for k in self._keys.values():
            if id(k) not in kept:
                k.wipe()
        self._keys = new
        self._active = active or next(iter(self._keys), None)
        self._publish(INIT, self._active)

    @property
    def wallets(self):
        return list(self._keys.values())

    @property
    def active(self):
        return self._keys.get(self._active) if self._active else None

    def get(self, address):
        return self._keys.get(address)

    def add(self, key):
        self._check_open()
        if key.address in self._keys:
            return self._keys[key.address]
        self._keys[key.address] = key
        self._publish(ADD, key.address)
        if self._active is None:
            self.switch_active(key.address)
        return key

    def remove(self, address):
        self._check_open()
        key = self._keys.pop(address, None)
        if key is None:
            raise InvalidAddress(f"{address} is not in this session")
        key.wipe()
        self._publish(REMOVE, address)
        if self._active == address:
            self._active = None
            nxt = next(iter(self._keys), None)
            if nxt:
                self.switch_active(nxt)

    def switch_active(self, address):
        self._check_open()
        if address not in self._keys:
            raise InvalidAddress(f"{address} is not in this session")
        if address != self._active:
            self._active = address
            self._publish(SWITCH, address)

    def teardown(self):
        if self.closed:
            return
        for k in self._keys.values():
            k.wipe()
        self._keys.clear()
        self._active = None
        self._publish(TEARDOWN)
        self._subs.clear()
        self.closed = True
