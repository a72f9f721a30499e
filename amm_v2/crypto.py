"""
Hashing helpers.
"""
from Crypto.Hash import keccak


def generate_hash(data: bytes) -> bytes:
    """Generates a Keccak-256 hash."""
    return keccak.new(digest_bits=256, data=data).digest()


def pair_id(token0: bytes, token1: bytes) -> bytes:
    """Order-independent identifier for a token pair."""
    a, b = sorted((token0, token1))
    return generate_hash(a + b)


# Value a flash borrower must return from on_flash_loan
CALLBACK_SUCCESS = generate_hash(b"ERC3156FlashBorrower.onFlashLoan")
