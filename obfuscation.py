"""
Keyed, reversible obfuscation of internal database IDs.

Two token shapes are produced from two independent keys:

* ``general`` tokens are alphanumeric hashids strings used as public record IDs.
  The hashids payload carries the ID together with a short HMAC tag, so a token
  that hashids accepts still has to verify against the key.
* ``numeric`` tokens are fixed-width digit strings used inside pagination keys.
  The ID and an HMAC check value are packed into an 18 digit number which is then
  permuted by a balanced decimal Feistel network.

Both transforms are pure functions of the key material and the input.
"""
import hashlib
import hmac
import re
from dataclasses import dataclass
from enum import Enum

from hashids import Hashids


class InvalidToken(ValueError):
    """Raised when a token is malformed or does not verify against the key."""


class TokenMode(str, Enum):
    GENERAL = "general"
    NUMERIC = "numeric"


@dataclass(frozen=True)
class ObfuscationKeys:
    """Key material for both token modes. Loaded once, never mutated."""
    general_key: str
    numeric_key: str
    min_length: int = 8


# --- Numeric mode ---

# IDs occupy 12 decimal digits and the check value 6, giving an 18 digit block
# that splits into two halves of 9 digits each.
ID_DIGITS = 12
CHECK_DIGITS = 6
TOKEN_DIGITS = ID_DIGITS + CHECK_DIGITS
MAX_NUMERIC_ID = 10**ID_DIGITS - 1

HALF_MODULUS = 10**(TOKEN_DIGITS // 2)
CHECK_MODULUS = 10**CHECK_DIGITS
FEISTEL_ROUNDS = 8

NUMERIC_TOKEN_RE = re.compile(r"[0-9]{%d}" % TOKEN_DIGITS)


class NumericCipher:
    """Format-preserving permutation over the space of 18 digit strings."""

    def __init__(self, key: str):
        self._key = key.encode("utf-8")

    def _prf(self, label: bytes, value: int) -> int:
        digest = hmac.new(self._key, label + str(value).encode("ascii"), hashlib.sha256).digest()
        return int.from_bytes(digest[:8], "big")

    def _check_value(self, n: int) -> int:
        return self._prf(b"check:", n) % CHECK_MODULUS

    def _round(self, i: int, half: int) -> int:
        return self._prf(b"round:%d:" % i, half) % HALF_MODULUS

    def _permute(self, block: int) -> int:
        left, right = divmod(block, HALF_MODULUS)
        for i in range(FEISTEL_ROUNDS):
            left, right = right, (left + self._round(i, right)) % HALF_MODULUS
        return left * HALF_MODULUS + right

    def _unpermute(self, block: int) -> int:
        left, right = divmod(block, HALF_MODULUS)
        for i in reversed(range(FEISTEL_ROUNDS)):
            left, right = (right - self._round(i, left)) % HALF_MODULUS, left
        return left * HALF_MODULUS + right

    def encrypt(self, n: int) -> str:
        if not 0 <= n <= MAX_NUMERIC_ID:
            raise ValueError("Input ID is out of the valid numeric obfuscation range.")
        block = n * CHECK_MODULUS + self._check_value(n)
        return f"{self._permute(block):0{TOKEN_DIGITS}d}"

    def decrypt(self, token: str) -> int:
        if not isinstance(token, str) or not NUMERIC_TOKEN_RE.fullmatch(token):
            raise InvalidToken("Numeric token must be exactly %d digits." % TOKEN_DIGITS)
        n, check = divmod(self._unpermute(int(token)), CHECK_MODULUS)
        if not hmac.compare_digest(str(check), str(self._check_value(n))):
            raise InvalidToken("Numeric token failed verification.")
        return n


# --- General mode ---

# Largest sqlite INTEGER.
MAX_GENERAL_ID = 2**63 - 1
GENERAL_TOKEN_RE = re.compile(r"[A-Za-z0-9]{1,64}")
TAG_BITS = 24


class GeneralCipher:
    """hashids encoding of ``(id, tag)`` where the tag is an HMAC of the ID."""

    def __init__(self, key: str, min_length: int = 8):
        self._key = key.encode("utf-8")
        self._hashids = Hashids(salt=key, min_length=min_length)

    def _tag(self, n: int) -> int:
        digest = hmac.new(self._key, b"tag:" + str(n).encode("ascii"), hashlib.sha256).digest()
        return int.from_bytes(digest[:4], "big") >> (32 - TAG_BITS)

    def encrypt(self, n: int) -> str:
        if not 0 <= n <= MAX_GENERAL_ID:
            raise ValueError("Input ID is out of the valid general obfuscation range.")
        return self._hashids.encode(n, self._tag(n))

    def decrypt(self, token: str) -> int:
        if not isinstance(token, str) or not GENERAL_TOKEN_RE.fullmatch(token):
            raise InvalidToken("Token contains characters outside the token alphabet.")
        decoded = self._hashids.decode(token)
        if len(decoded) != 2:
            raise InvalidToken("Token is not a valid identifier.")
        n, tag = decoded
        if n > MAX_GENERAL_ID:
            raise InvalidToken("Token is not a valid identifier.")
        if not hmac.compare_digest(str(tag), str(self._tag(n))):
            raise InvalidToken("Token failed verification.")
        return n


class IdObfuscator:
    """Bijective mapping between internal IDs and external tokens."""

    def __init__(self, keys: ObfuscationKeys):
        self.keys = keys
        self._ciphers = {
            TokenMode.GENERAL: GeneralCipher(keys.general_key, keys.min_length),
            TokenMode.NUMERIC: NumericCipher(keys.numeric_key),
        }

    def encode(self, n: int, mode: TokenMode = TokenMode.GENERAL) -> str:
        return self._ciphers[TokenMode(mode)].encrypt(n)

    def decode(self, token: str, mode: TokenMode = TokenMode.GENERAL) -> int:
        return self._ciphers[TokenMode(mode)].decrypt(token)
