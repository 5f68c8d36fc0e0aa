"""Storage key derivation for the factory's indexed pair list."""

from __future__ import annotations

from stellar_sdk import scval, xdr

from soroswap_indexer.constants import PAIR_INDEX_SYMBOL
from soroswap_indexer.errors import InvalidRequest

U32_MAX = 2**32 - 1


def pair_key_xdr(pair_index: int) -> str:
    """Base64 key of ``PairAddressesNIndexed(pair_index)`` in factory storage."""
    if isinstance(pair_index, bool) or not isinstance(pair_index, int):
        raise InvalidRequest(f"Pair index must be an integer, got {pair_index!r}")
    if not 0 <= pair_index <= U32_MAX:
        raise InvalidRequest(f"Pair index {pair_index} does not fit in u32")
    key = scval.to_vec([scval.to_symbol(PAIR_INDEX_SYMBOL), scval.to_uint32(pair_index)])
    return key.to_xdr()


def pair_index_from_key(key_xdr: str) -> int:
    """Inverse of pair_key_xdr(). Raises InvalidRequest for any other key."""
    try:
        val = xdr.SCVal.from_xdr(key_xdr)
        items = scval.from_vec(val)
    except Exception as exc:
        raise InvalidRequest(f"Not a pair index key: {key_xdr}") from exc

    if len(items) != 2 or items[0].type != xdr.SCValType.SCV_SYMBOL:
        raise InvalidRequest(f"Not a pair index key: {key_xdr}")
    if scval.from_symbol(items[0]) != PAIR_INDEX_SYMBOL:
        raise InvalidRequest(f"Not a pair index key: {key_xdr}")
    if items[1].type != xdr.SCValType.SCV_U32:
        raise InvalidRequest(f"Pair index key without u32 index: {key_xdr}")
    return scval.from_uint32(items[1])
