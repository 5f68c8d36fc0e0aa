"""Convert decoded SCVal trees into plain Python values."""

from __future__ import annotations

from typing import Any

from stellar_sdk import scval, xdr

_T = xdr.SCValType


def scval_to_native(val: xdr.SCVal) -> Any:
    """Best-effort conversion of an SCVal to str/int/bool/bytes/list/dict.

    Addresses become strkey strings, symbols and strings become str, and
    maps become dicts keyed by the native form of their keys. Types with no
    natural Python form are returned unchanged.
    """
    t = val.type
    if t == _T.SCV_VOID:
        return None
    if t == _T.SCV_BOOL:
        return scval.from_bool(val)
    if t == _T.SCV_U32:
        return scval.from_uint32(val)
    if t == _T.SCV_I32:
        return scval.from_int32(val)
    if t == _T.SCV_U64:
        return scval.from_uint64(val)
    if t == _T.SCV_I64:
        return scval.from_int64(val)
    if t == _T.SCV_U128:
        return scval.from_uint128(val)
    if t == _T.SCV_I128:
        return scval.from_int128(val)
    if t == _T.SCV_U256:
        return scval.from_uint256(val)
    if t == _T.SCV_I256:
        return scval.from_int256(val)
    if t == _T.SCV_SYMBOL:
        return scval.from_symbol(val)
    if t == _T.SCV_STRING:
        raw = scval.from_string(val)
        return raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)
    if t == _T.SCV_BYTES:
        return scval.from_bytes(val)
    if t == _T.SCV_ADDRESS:
        return scval.from_address(val).address
    if t == _T.SCV_VEC:
        return [scval_to_native(v) for v in scval.from_vec(val)]
    if t == _T.SCV_MAP:
        return {
            _hashable(scval_to_native(e.key)): scval_to_native(e.val)
            for e in map_entries(val)
        }
    return val


def map_entries(val: xdr.SCVal) -> list[xdr.SCMapEntry]:
    """Entries of an SCV_MAP value, or of a contract instance's storage map."""
    if val.type == _T.SCV_CONTRACT_INSTANCE:
        storage = val.instance.storage
        return list(storage.sc_map) if storage is not None else []
    if val.type == _T.SCV_MAP:
        return list(val.map.sc_map) if val.map is not None else []
    return []


def _hashable(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_hashable(v) for v in value)
    if isinstance(value, dict):
        return tuple(sorted((k, _hashable(v)) for k, v in value.items()))
    return value
