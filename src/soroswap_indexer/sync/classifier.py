"""Subscription classifier and reconciliation pass.

Every subscription maps to one (protocol, contract type, storage type)
triple through an ordered rule table; the first matching rule wins. A
subscription no rule matches is unclassifiable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from soroswap_indexer.constants import (
    INSTANCE_STORAGE_KEY,
    PHOENIX_CONFIG_KEY,
    PHOENIX_FACTORY_ADDRESSES,
    PHOENIX_INITIALIZED_KEY,
    PHOENIX_LP_VEC_KEY,
    SOROSWAP_FACTORY_ADDRESSES,
)
from soroswap_indexer.errors import ServiceUnavailable
from soroswap_indexer.interfaces.ledger import LedgerService
from soroswap_indexer.interfaces.store import SubscriptionStore
from soroswap_indexer.mercury.queries import GET_ALL_LEDGER_ENTRY_SUBSCRIPTIONS
from soroswap_indexer.models.records import (
    Classification,
    ContractType,
    Network,
    Protocol,
    ReconcileReport,
    StorageType,
    Subscription,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Subject:
    contract_id: str
    key_xdr: str
    soroswap: bool
    phoenix: bool
    instance: bool


@dataclass(frozen=True)
class Rule:
    name: str
    matches: Callable[[_Subject], bool]
    outcome: Classification


class SubscriptionClassifier:
    """Classifies (contract_id, key_xdr) pairs against static lookup tables."""

    def __init__(
        self,
        soroswap_factories: Iterable[str] = SOROSWAP_FACTORY_ADDRESSES,
        phoenix_factories: Iterable[str] = PHOENIX_FACTORY_ADDRESSES,
        instance_key: str = INSTANCE_STORAGE_KEY,
        phoenix_config_key: str = PHOENIX_CONFIG_KEY,
        phoenix_lp_vec_key: str = PHOENIX_LP_VEC_KEY,
        phoenix_initialized_key: str = PHOENIX_INITIALIZED_KEY,
    ) -> None:
        self._soroswap = frozenset(soroswap_factories)
        self._phoenix = frozenset(phoenix_factories)
        self._instance_key = instance_key
        self.phoenix_keys = {
            phoenix_config_key: "phoenix_factory_config",
            phoenix_lp_vec_key: "phoenix_factory_lp_vec",
            phoenix_initialized_key: "phoenix_factory_initialized",
        }
        self.rules: tuple[Rule, ...] = (
            Rule(
                "soroswap_factory_instance",
                lambda s: s.soroswap and s.instance,
                Classification(Protocol.SOROSWAP, ContractType.FACTORY, StorageType.INSTANCE),
            ),
            Rule(
                "phoenix_factory_instance",
                lambda s: s.phoenix and s.instance,
                Classification(Protocol.PHOENIX, ContractType.FACTORY, StorageType.INSTANCE),
            ),
            Rule(
                "soroswap_factory_persistent",
                lambda s: s.soroswap and not s.instance,
                Classification(Protocol.SOROSWAP, ContractType.FACTORY, StorageType.PERSISTENT),
            ),
            Rule(
                "phoenix_factory_persistent",
                lambda s: s.phoenix and s.key_xdr in self.phoenix_keys,
                Classification(Protocol.PHOENIX, ContractType.FACTORY, StorageType.PERSISTENT),
            ),
            Rule(
                "pair_storage",
                lambda s: not s.soroswap and not s.phoenix and s.instance,
                Classification(None, ContractType.PAIR, StorageType.INSTANCE),
            ),
        )

    def matching_rules(self, contract_id: str, key_xdr: str) -> list[Rule]:
        """Every rule that accepts the subscription, in table order."""
        subject = _Subject(
            contract_id=contract_id,
            key_xdr=key_xdr,
            soroswap=contract_id in self._soroswap,
            phoenix=contract_id in self._phoenix,
            instance=key_xdr == self._instance_key,
        )
        return [rule for rule in self.rules if rule.matches(subject)]

    def match(self, contract_id: str, key_xdr: str) -> Rule | None:
        """First rule matching the subscription, or None if unclassifiable."""
        rules = self.matching_rules(contract_id, key_xdr)
        return rules[0] if rules else None

    def classify(self, contract_id: str, key_xdr: str) -> Classification | None:
        rule = self.match(contract_id, key_xdr)
        return rule.outcome if rule else None


class SubscriptionReconciler:
    """Rebuilds local subscription rows from the service's bulk listing."""

    def __init__(
        self,
        ledger: LedgerService,
        store: SubscriptionStore,
        classifier: SubscriptionClassifier,
        network: Network,
    ) -> None:
        self._ledger = ledger
        self._store = store
        self._classifier = classifier
        self._network = network

    async def populate(self) -> ReconcileReport:
        """Classify and insert every listed subscription.

        Unclassifiable subscriptions are counted under ``others`` and skipped;
        the rest of the listing is still processed.
        """
        log.info("Updating database... (MERCURY %s)", self._network.value)
        report = ReconcileReport(network=self._network)

        response = await self._ledger.custom_query(GET_ALL_LEDGER_ENTRY_SUBSCRIPTIONS)
        if not response.ok:
            log.error("Error getting ledger entry subscriptions: %s", response.error)
            raise ServiceUnavailable("Error getting ledger entry subscriptions")

        if response.data is None:
            log.info("Database up to date! (MERCURY %s)", self._network.value)
            return report

        listing = response.data.get("allLedgerEntrySubscriptions") or {}
        for edge in listing.get("edges") or []:
            node = edge.get("node") or {}
            contract_id = node.get("contractId")
            key_xdr = node.get("keyXdr")
            report.total_seen += 1
            if not contract_id or not key_xdr:
                report.counters["others"] += 1
                log.debug("Skipping subscription node without contract/key: %s", node)
                continue

            rule = self._classifier.match(contract_id, key_xdr)
            if rule is None:
                report.counters["others"] += 1
                log.debug("Unclassifiable subscription %s key=%s", contract_id[:16], key_xdr)
                continue

            report.counters[self._counter_name(rule, key_xdr)] += 1
            created = await self._store.create_subscription(Subscription(
                contract_id=contract_id,
                key_xdr=key_xdr,
                network=self._network,
            ).classify_as(rule.outcome))
            if created:
                report.created += 1

        log.info(
            "Database up to date! (MERCURY %s) seen=%d created=%d others=%d",
            self._network.value, report.total_seen, report.created, report.counters["others"],
        )
        return report

    def _counter_name(self, rule: Rule, key_xdr: str) -> str:
        if rule.name == "phoenix_factory_persistent":
            return self._classifier.phoenix_keys[key_xdr]
        return rule.name
