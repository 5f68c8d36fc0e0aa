"""GraphQL documents sent to the Mercury ledger query service."""

from __future__ import annotations

from soroswap_indexer.constants import INSTANCE_STORAGE_KEY
from soroswap_indexer.errors import InvalidRequest
from soroswap_indexer.stellar.keys import pair_key_xdr

GET_LAST_CONTRACT_ENTRY = """
query GetLastContractEntry($contractId: String!, $ledgerKey: String!) {
  entryUpdateByContractIdAndKey(contract: $contractId, ledgerKey: $ledgerKey) {
    edges {
      node {
        contractId
        keyXdr
        valueXdr
      }
    }
  }
}
"""

GET_ALL_LEDGER_ENTRY_SUBSCRIPTIONS = """
query GetAllLedgerEntrySubscriptions {
  allLedgerEntrySubscriptions {
    edges {
      node {
        contractId
        keyXdr
      }
    }
  }
}
"""

AUTHENTICATE = """
mutation Authenticate($email: String!, $password: String!) {
  authenticate(input: {email: $email, password: $password}) {
    jwtToken
  }
}
"""

_ENTRY_FIELDS = """{
    edges {
      node {
        contractId
        keyXdr
        valueXdr
      }
    }
  }"""


def _require_count(count: int) -> None:
    if count < 1:
        raise InvalidRequest(f"Batch query needs at least one item, got {count}")


def build_get_pair_addresses_query(pair_count: int) -> str:
    """One aliased lookup per factory index: pair1..pairN over ledgerKey1..N."""
    _require_count(pair_count)
    params = ", ".join(f"$ledgerKey{i}: String!" for i in range(1, pair_count + 1))
    fields = "\n".join(
        f"  pair{i}: entryUpdateByContractIdAndKey("
        f"contract: $contractId, ledgerKey: $ledgerKey{i}) {_ENTRY_FIELDS}"
        for i in range(1, pair_count + 1)
    )
    return f"query GetPairAddresses($contractId: String!, {params}) {{\n{fields}\n}}\n"


def build_get_pairs_with_tokens_and_reserves_query(address_count: int) -> str:
    """One aliased instance-storage lookup per pair: pair1..pairN over contractId1..N."""
    _require_count(address_count)
    params = ", ".join(f"$contractId{i}: String!" for i in range(1, address_count + 1))
    fields = "\n".join(
        f"  pair{i}: entryUpdateByContractIdAndKey("
        f'contract: $contractId{i}, ledgerKey: "{INSTANCE_STORAGE_KEY}") {_ENTRY_FIELDS}'
        for i in range(1, address_count + 1)
    )
    return f"query GetPairsWithTokensAndReserves({params}) {{\n{fields}\n}}\n"


def pair_addresses_variables(factory_address: str, pair_count: int) -> dict[str, str]:
    variables = {"contractId": factory_address}
    for i in range(pair_count):
        variables[f"ledgerKey{i + 1}"] = pair_key_xdr(i)
    return variables


def pairs_with_tokens_and_reserves_variables(addresses: list[str]) -> dict[str, str]:
    return {f"contractId{i + 1}": address for i, address in enumerate(addresses)}
