"""octra wallet core: keys, signing, nonces, batched sends and private balances."""

__version__ = "0.2.0"

from .batch import BatchSubmitter, Recipient, SendResult, parse_recipients
from .codec import decode, encode
from .domains import DomainResolver, resolve_address_or_domain, sanitize_domain, validate_domain
from .errors import WalletError
from .keys import KeyMaterial, derive, is_valid_address
from .nonce import NonceSequencer, NonceState
from .rpc import RpcClient
from .session import WalletSession
from .transfer import PendingPrivateTransfer, TransferProtocol
from .tx import Transaction, build, fee_for, validate, verify_transaction, μ
from .wallet import Wallet

__all__ = [
    "BatchSubmitter",
    "DomainResolver",
    "KeyMaterial",
    "NonceSequencer",
    "NonceState",
    "PendingPrivateTransfer",
    "Recipient",
    "RpcClient",
    "SendResult",
    "Transaction",
    "TransferProtocol",
    "Wallet",
    "WalletError",
    "WalletSession",
    "build",
    "decode",
    "derive",
    "encode",
    "fee_for",
    "is_valid_address",
    "parse_recipients",
    "resolve_address_or_domain",
    "sanitize_domain",
    "validate_domain",
    "validate",
    "verify_transaction",
    "μ",
]
