class WalletError(Exception):
    code = "wallet_error"
    retryable = False

    def __init__(self, message="", detail=None):
        super().__init__(message or self.code)
        self.detail = detail

    def __str__(self):
        msg = super().__str__()
        if self.detail and self.detail != msg:
            return f"{msg}: {self.detail}"
        return msg


class InputError(WalletError, ValueError):
    code = "invalid_input"


class InvalidSeedLength(InputError):
    code = "invalid_seed_length"


class InvalidMnemonic(InputError):
    code = "invalid_mnemonic"


class InvalidPrivateKey(InputError):
    code = "invalid_private_key"


class InvalidAddress(InputError):
    code = "invalid_address"


class InvalidAmount(InputError):
    code = "invalid_amount"


class InvalidNonce(InputError):
    code = "invalid_nonce"


class MessageTooLong(InputError):
    code = "message_too_long"


class InvalidDomain(InputError):
    code = "invalid_domain"


class NetworkError(WalletError):
    """Timeouts, 5xx and unreadable responses. Safe to retry."""
    code = "network_error"
    retryable = True

    def __init__(self, message="", detail=None, status=0):
        super().__init__(message, detail)
        self.status = status


class BalanceFetchError(NetworkError):
    code = "balance_fetch_error"


class RejectedError(WalletError):
    """The node answered but refused the request; detail is its response body."""
    code = "rejected"

    def __init__(self, message="", detail=None, status=0):
        super().__init__(message, detail)
        self.status = status


class ProtocolError(WalletError):
    code = "protocol_error"


class RecipientKeyMissing(ProtocolError):
    code = "recipient_key_missing"


class InsufficientBalance(ProtocolError):
    code = "insufficient_balance"


class InsufficientEncryptedBalance(ProtocolError):
    code = "insufficient_encrypted_balance"


class AlreadyClaimed(ProtocolError):
    code = "already_claimed"


class DomainNotFound(ProtocolError):
    code = "domain_not_found"


class CryptoError(WalletError):
    code = "crypto_error"


class DecodeFailure(CryptoError):
    code = "decode_failure"


class SigningError(CryptoError):
    code = "signing_error"
