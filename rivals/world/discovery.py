"""Shared-state discovery and cache.

Locates the singleton shared objects and admin capabilities created when
the package was published, so that repeated runs reuse them instead of
creating them again. The result is persisted through a StateRepository.

A cached state is authoritative when its package id matches the active
deployment and at least one singleton id is populated. In that case no
ledger call is made at all.
"""

from __future__ import annotations

import logging
from typing import Iterator

from ..errors import DiscoveryIncomplete, RivalsError
from ..ledger.client import LedgerClient, OwnedObject
from .resource_types import OwnedKind, ResourceTypeRegistry, SingletonKind
from .state import DEFAULT_PRIMARY_NAME, DEFAULT_RIVAL_NAME, AgentState, PersistedState
from .store import StateRepository

logger = logging.getLogger(__name__)

# Singletons created by package init; their absence after the tx scan
# triggers the owned-object fallback.
REQUIRED_SINGLETONS: tuple[SingletonKind, ...] = (
    SingletonKind.TREASURY,
    SingletonKind.MISSION_REGISTRY,
    SingletonKind.GOVERNANCE_REGISTRY,
    SingletonKind.CODE_REGISTRY,
)

PLANET_EVENT = ("planet", "PlanetDiscovered")
TEMPLATE_EVENT = ("missions", "MissionTemplateCreated")


class SharedStateDiscovery:
    """Builds a valid PersistedState for one package deployment."""

    def __init__(
        self,
        ledger: LedgerClient,
        repository: StateRepository,
        package_id: str,
        tx_page_limit: int = 50,
        event_page_limit: int = 50,
        primary_name: str = DEFAULT_PRIMARY_NAME,
        rival_name: str = DEFAULT_RIVAL_NAME,
    ) -> None:
        self.ledger = ledger
        self.repository = repository
        self.registry = ResourceTypeRegistry(package_id)
        self.package_id = self.registry.package_id
        self.tx_page_limit = tx_page_limit
        self.event_page_limit = event_page_limit
        self.primary_name = primary_name
        self.rival_name = rival_name

    def _matches_package(self, state: PersistedState) -> bool:
        try:
            return ResourceTypeRegistry(state.package_id).package_id == self.package_id
        except ValueError:
            return False

    def discover(self, primary_address: str, rival_address: str) -> PersistedState:
        """Return the authoritative state, scanning the ledger only on a miss.

        The primary agent is the bootstrapping (publishing) account.
        """
        cached = self.repository.load()
        if cached is not None and self._matches_package(cached):
            if cached.shared_objects.has_any_singleton():
                logger.info("Loaded cached state for package %s", self.package_id[:10])
                cached.primary.address = primary_address
                cached.rival.address = rival_address
                return cached
            state = cached
            state.primary.address = primary_address
            state.rival.address = rival_address
        else:
            if cached is not None:
                logger.info("Cached state is for another package, rebuilding")
            state = PersistedState.fresh(
                self.package_id,
                primary_address,
                rival_address,
                primary_name=self.primary_name,
                rival_name=self.rival_name,
            )

        logger.info("Discovering shared objects and admin caps...")
        self._scan_transactions(state, primary_address)

        owned = self._owned_objects_or_empty(primary_address)
        self._collect_admin_caps(state, owned)
        self._fallback_singletons(state, owned)

        self.repository.save(state)
        logger.info(
            "Discovery complete: %d singletons, %d admin caps",
            len(state.shared_objects.singletons),
            len(state.shared_objects.admin_caps),
        )
        return state

    def _scan_transactions(self, state: PersistedState, address: str) -> None:
        try:
            records = self.ledger.list_transactions_from(address, self.tx_page_limit)
        except RivalsError as e:
            error = DiscoveryIncomplete(f"Transaction scan failed: {e.message}", address=address)
            logger.warning("%s", error.message)
            return

        # Most recent first: the first match per kind wins
        for record in records:
            for change in record.object_changes:
                if change.change_type != "created":
                    continue
                kind = self.registry.classify_singleton(change.object_type)
                if kind is not None:
                    state.shared_objects.set_once(kind, change.object_id)

    def iter_owned_objects(self, address: str) -> Iterator[OwnedObject]:
        """All objects owned by ``address``, following the page cursor."""
        cursor: str | None = None
        while True:
            page = self.ledger.list_owned_objects(address, cursor)
            yield from page.items
            if not page.has_more or not page.next_cursor:
                return
            cursor = page.next_cursor

    def _owned_objects_or_empty(self, address: str) -> list[OwnedObject]:
        try:
            return list(self.iter_owned_objects(address))
        except RivalsError as e:
            error = DiscoveryIncomplete(f"Owned-object scan failed: {e.message}", address=address)
            logger.warning("%s", error.message)
            return []

    def _collect_admin_caps(self, state: PersistedState, owned: list[OwnedObject]) -> None:
        for obj in owned:
            kind = self.registry.classify_admin_cap(obj.object_type)
            if kind is not None:
                state.shared_objects.admin_caps[kind] = obj.object_id

    def _fallback_singletons(self, state: PersistedState, owned: list[OwnedObject]) -> None:
        missing = [k for k in REQUIRED_SINGLETONS if not state.shared_objects.get(k)]
        if not missing:
            return
        for obj in owned:
            kind = self.registry.classify_singleton(obj.object_type)
            if kind in missing:
                state.shared_objects.set_once(kind, obj.object_id)
        still_missing = [k.value for k in missing if not state.shared_objects.get(k)]
        if still_missing:
            logger.warning("Singletons not found: %s", ", ".join(still_missing))

    # --- event-derived lists ----------------------------------------------

    def _event_ids(self, module: str, event: str, id_field: str) -> list[str]:
        event_type = self.registry.event_type(module, event)
        try:
            payloads = self.ledger.query_events(event_type, self.event_page_limit)
        except RivalsError as e:
            error = DiscoveryIncomplete(f"Event query {event} failed: {e.message}")
            logger.debug("%s", error.message)
            return []
        ids = [p[id_field] for p in payloads if p.get(id_field)]
        if not ids:
            logger.debug("No %s events yet", event)
        return ids

    def discover_planets(self) -> list[str]:
        return self._event_ids(*PLANET_EVENT, "planet_id")

    def discover_mission_templates(self) -> list[str]:
        return self._event_ids(*TEMPLATE_EVENT, "template_id")

    @staticmethod
    def merge_discovered(
        state: PersistedState, planets: list[str], templates: list[str]
    ) -> bool:
        """Append unseen ids in order. Returns True if anything was added."""
        before = (len(state.planet_ids), len(state.mission_template_ids))
        for planet_id in planets:
            state.add_planet(planet_id)
        for template_id in templates:
            state.add_mission_template(template_id)
        return before != (len(state.planet_ids), len(state.mission_template_ids))

    # --- owned fleet sync --------------------------------------------------

    def sync_owned(self, agent_state: AgentState) -> bool:
        """Replace cached agent/ship/station ids with what the chain reports.

        Returns False (leaving the cache untouched) when the scan fails.
        """
        try:
            owned = list(self.iter_owned_objects(agent_state.address))
        except RivalsError as e:
            error = DiscoveryIncomplete(
                f"Owned sync for {agent_state.name} failed: {e.message}"
            )
            logger.warning("%s", error.message)
            return False

        by_kind: dict[OwnedKind, list[str]] = {
            OwnedKind.AGENT: [],
            OwnedKind.SHIP: [],
            OwnedKind.STATION: [],
        }
        for obj in owned:
            kind = self.registry.classify(obj.object_type)
            if kind in by_kind:
                by_kind[kind].append(obj.object_id)

        agent_state.owned_agent_ids = by_kind[OwnedKind.AGENT]
        agent_state.owned_ship_ids = by_kind[OwnedKind.SHIP]
        agent_state.owned_station_ids = by_kind[OwnedKind.STATION]
        logger.debug(
            "%s owns %d agents, %d ships, %d stations",
            agent_state.name,
            len(agent_state.owned_agent_ids),
            len(agent_state.owned_ship_ids),
            len(agent_state.owned_station_ids),
        )
        return True
