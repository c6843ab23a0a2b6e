"""
Value derivation from block content hashes.

The hash is rendered as standard base64, every decimal digit in that text
is collected in order, and the resulting number is reduced modulo 100.
A hash whose text holds no digits maps to 0.
"""

import base64
import re

from .types import BlockContent, BlockRef, PersistedRecord

DICE_RANGE = 100

_DIGITS_RE = re.compile("[0-9]+")


def hash_text(file_hash: bytes) -> str:
    return base64.b64encode(file_hash).decode("ascii")


def extract_digits(text: str) -> str:
    """Concatenate every run of decimal digits in text."""
    return "".join(_DIGITS_RE.findall(text))


def _reduce(digits: str, modulus: int) -> int:
    if not digits:
        return 0
    return int(digits) % modulus


def derive_value(file_hash: bytes, modulus: int = DICE_RANGE) -> int:
    """Map a content hash deterministically into [0, modulus)."""
    return _reduce(extract_digits(hash_text(file_hash)), modulus)


def build_record(ref: BlockRef, content: BlockContent) -> PersistedRecord:
    """Derive the persisted record for one discovered block."""
    text = hash_text(content.file_hash)
    digits = extract_digits(text)
    return PersistedRecord(
        workchain=ref.workchain,
        shard=ref.shard,
        seqno=ref.seqno,
        hash=text,
        digits=digits,
        value=_reduce(digits, DICE_RANGE),
    )
