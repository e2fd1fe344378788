import re

from .errors import DomainNotFound, InvalidAddress, InvalidDomain
from .keys import is_valid_address
from .rpc import failure

SUFFIX = ".oct"
name_re = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?$")

RESERVED = frozenset({
    "admin.oct", "root.oct", "api.oct", "www.oct", "mail.oct",
    "ftp.oct", "localhost.oct", "octra.oct", "oct.oct",
})


def sanitize_domain(domain):
    if not isinstance(domain, str):
        return ""
    return domain.strip().lower()


def validate_domain(domain):
    """3-32 chars of letters, digits and inner hyphens, then `.oct`."""
    if not isinstance(domain, str) or not domain.endswith(SUFFIX):
        return False
    name = domain[:-len(SUFFIX)]
    return 3 <= len(name) <= 32 and bool(name_re.match(name))


def is_reserved_domain(domain):
    return sanitize_domain(domain) in RESERVED


def registration_message(domain):
    d = sanitize_domain(domain)
    if not validate_domain(d):
        raise InvalidDomain(f"invalid domain {domain!r}")
    return f"register_domain:{d}"


class DomainResolver:
    """Lookups against the domain registry service (an RpcClient on its base url)."""

    def __init__(self, rpc):
        self.rpc = rpc

    async def lookup(self, domain):
        s, t, j = await self.rpc.req("GET", f"/lookup/{sanitize_domain(domain)}")
        if s == 200 and isinstance(j, dict):
            return True, j.get("address")
        if s == 404:
            return True, None
        return False, failure(s, t, j, "domain lookup")

    async def reverse(self, address):
        s, t, j = await self.rpc.req("GET", f"/reverse/{address}")
        if s == 200 and isinstance(j, dict):
            return True, j.get("domain")
        if s == 404:
            return True, None
        return False, failure(s, t, j, "reverse lookup")


async def resolve_address_or_domain(text, resolver):
    v = text.strip() if isinstance(text, str) else ""
    if is_valid_address(v):
        return True, v
    d = sanitize_domain(v)
    if not validate_domain(d):
        return False, InvalidAddress(f"{text!r} is neither an address nor a domain")
    ok, addr = await resolver.lookup(d)
    if not ok:
        return False, addr
    if not addr or not is_valid_address(addr):
        return False, DomainNotFound(f"domain {d} not found")
    return True, addr
