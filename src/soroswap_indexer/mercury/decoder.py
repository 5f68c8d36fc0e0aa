"""Entry decoder - turns Mercury ledger entry responses into typed records.

Values arrive as base64 XDR ``SCVal``s. Contract instance values carry a
storage map whose keys are the contract's ``DataKey`` variants. These are
re-mapped to named fields through an explicit ordinal table: an integer key
is its own ordinal, any other key uses its position in the map. Ordinals
past the end of the table are ignored.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator

from stellar_sdk import xdr

from soroswap_indexer.errors import MalformedEntry
from soroswap_indexer.models.entries import (
    FACTORY_DATA_KEYS,
    PAIR_DATA_KEYS,
    FactoryInstanceEntry,
    PairInstanceEntry,
)
from soroswap_indexer.stellar.scval_native import map_entries, scval_to_native

log = logging.getLogger(__name__)

ENTRY_FIELD = "entryUpdateByContractIdAndKey"
ALIAS_PREFIX = "pair"


def _edges(container: Any) -> list[dict]:
    if not isinstance(container, dict) or not isinstance(container.get("edges"), list):
        raise MalformedEntry("No entries provided")
    return container["edges"]


def _node_value(edge: dict) -> tuple[dict, xdr.SCVal]:
    """Return (node, parsed SCVal) for one edge. Raises if valueXdr is absent."""
    node = edge.get("node") if isinstance(edge, dict) else None
    value_xdr = node.get("valueXdr") if isinstance(node, dict) else None
    if not value_xdr:
        raise MalformedEntry("No valueXdr found in the entry")
    try:
        return node, xdr.SCVal.from_xdr(value_xdr)
    except Exception as exc:
        raise MalformedEntry(f"Undecodable valueXdr: {exc}") from exc


def _aliased(data: Any) -> Iterator[tuple[int, Any]]:
    """Yield (alias number, container) for pair1..pairN in numeric order."""
    if not isinstance(data, dict):
        raise MalformedEntry("No entries provided")
    numbered = []
    for alias, container in data.items():
        suffix = alias[len(ALIAS_PREFIX):]
        if alias.startswith(ALIAS_PREFIX) and suffix.isdigit():
            numbered.append((int(suffix), container))
    return iter(sorted(numbered, key=lambda item: item[0]))


def ordinal_fields(val: xdr.SCVal, table: tuple[str, ...]) -> dict[str, Any] | None:
    """Map a contract instance storage to {field: native value}.

    Returns None when ``val`` is not a contract instance or map.
    """
    if val.type not in (xdr.SCValType.SCV_CONTRACT_INSTANCE, xdr.SCValType.SCV_MAP):
        return None
    fields: dict[str, Any] = {}
    for position, entry in enumerate(map_entries(val)):
        key = scval_to_native(entry.key)
        ordinal = key if isinstance(key, int) and not isinstance(key, bool) else position
        if 0 <= ordinal < len(table):
            fields[table[ordinal]] = scval_to_native(entry.val)
        else:
            log.debug("Ignoring storage ordinal %s outside table of %d", ordinal, len(table))
    return fields


def decode_factory_instance(data: Any) -> list[FactoryInstanceEntry]:
    """Decode a GET_LAST_CONTRACT_ENTRY response into factory snapshots.

    Zero edges decode to an empty list (the factory has no stored instance yet).
    """
    container = data.get(ENTRY_FIELD) if isinstance(data, dict) else None
    if container is None:
        raise MalformedEntry("No entries provided")

    parsed: list[FactoryInstanceEntry] = []
    for edge in _edges(container):
        _, val = _node_value(edge)
        fields = ordinal_fields(val, FACTORY_DATA_KEYS)
        if fields is None:
            continue
        total_pairs = fields.get("total_pairs", 0)
        if isinstance(total_pairs, bool) or not isinstance(total_pairs, int) or total_pairs < 0:
            raise MalformedEntry(f"Invalid total_pairs value: {total_pairs!r}")
        parsed.append(FactoryInstanceEntry(
            fee_to=_opt_str(fields.get("fee_to")),
            fee_to_setter=_opt_str(fields.get("fee_to_setter")),
            total_pairs=total_pairs,
            fees_enabled=bool(fields.get("fees_enabled", False)),
        ))
    return parsed


def decode_pair_addresses(data: Any) -> dict[int, str]:
    """Decode a batched pair address response into {pair index: address}.

    Alias ``pairN`` holds factory index N-1. Indices that have no stored
    entry yet are absent from the result, so callers never see a later
    address shifted into an earlier index.
    """
    addresses: dict[int, str] = {}
    for alias, container in _aliased(data):
        edges = _edges(container)
        if not edges:
            log.debug("No entry for pair index %d", alias - 1)
            continue
        _, val = _node_value(edges[-1])
        if val.type != xdr.SCValType.SCV_ADDRESS:
            raise MalformedEntry(f"Pair alias {alias} value is not an address")
        addresses[alias - 1] = scval_to_native(val)
    return addresses


def decode_pair_instances(
    data: Any, addresses: list[str] | None = None,
) -> dict[str, PairInstanceEntry]:
    """Decode a batched pair instance response into {pair address: entry}.

    ``addresses`` maps alias N back to its contract when a node omits
    ``contractId``. Pairs without any stored entry are left out.
    """
    addresses = addresses or []
    decoded: dict[str, PairInstanceEntry] = {}
    for alias, container in _aliased(data):
        edges = _edges(container)
        if not edges:
            continue
        node, val = _node_value(edges[-1])
        contract_id = node.get("contractId")
        if not contract_id and 0 < alias <= len(addresses):
            contract_id = addresses[alias - 1]
        if not contract_id:
            raise MalformedEntry(f"Pair alias {alias} has no contract id")
        fields = ordinal_fields(val, PAIR_DATA_KEYS)
        if fields is None:
            continue
        decoded[contract_id] = PairInstanceEntry(
            contract_id=contract_id,
            token0=_opt_str(fields.get("token0")),
            token1=_opt_str(fields.get("token1")),
            reserve0=_opt_int(fields.get("reserve0")),
            reserve1=_opt_int(fields.get("reserve1")),
            factory=_opt_str(fields.get("factory")),
            total_shares=_opt_int(fields.get("total_shares")),
        )
    return decoded


def _opt_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _opt_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value
