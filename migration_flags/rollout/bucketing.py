"""
Consistent session bucketing for percentage-based rollout.

Maps an opaque session identifier to a stable integer in ``[0, 100)``. The hash is a
32-bit rolling polynomial over UTF-16 code units (``hash = hash * 31 + unit`` with
two's-complement wraparound at every step), the same recurrence used by the browser
client, so a session lands in the same bucket on every process and in every language
implementing it.
"""

import struct

_UINT32_MASK = 0xFFFFFFFF
_INT32_SIGN_BIT = 0x80000000


def _to_int32(value: int) -> int:
    """Reinterpret the low 32 bits of value as a signed integer."""
    value &= _UINT32_MASK
    if value & _INT32_SIGN_BIT:
        value -= 1 << 32
    return value


def _utf16_code_units(value: str):
    # surrogatepass keeps lone surrogates as single code units
    data = value.encode('utf-16-le', 'surrogatepass')
    for (unit,) in struct.iter_unpack('<H', data):
        yield unit


class ConsistentBucketer:
    """
    Deterministic session-to-bucket mapping.

    Bucket values are independent of the rollout percentage, which keeps rollout
    monotonic: a session inside the rollout at P percent stays inside for every
    percentage above P.
    """

    BUCKET_COUNT = 100
    MULTIPLIER = 31

    @classmethod
    def hash_string(cls, value: str) -> int:
        """
        Compute the signed 32-bit rolling hash of value.

        Args:
            value: Session identifier

        Returns:
            Signed 32-bit hash
        """
        result = 0
        for unit in _utf16_code_units(value):
            result = _to_int32(result * cls.MULTIPLIER + unit)
        return result

    @classmethod
    def bucket(cls, session_id: str) -> int:
        """
        Map a session identifier to its rollout bucket.

        Args:
            session_id: Session identifier

        Returns:
            Integer in [0, 100)
        """
        return abs(cls.hash_string(session_id)) % cls.BUCKET_COUNT


def bucket(session_id: str) -> int:
    """Module-level shortcut for ``ConsistentBucketer.bucket``."""
    return ConsistentBucketer.bucket(session_id)


__all__ = ['ConsistentBucketer', 'bucket']
