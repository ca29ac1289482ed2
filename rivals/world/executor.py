"""Action execution: one decision in, one submitted transaction out.

Two layers live here:

- GameTransactions: one method per Move entry point. Each builds a
  TransactionPlan whose argument order and types match the Move
  signature exactly, submits it, and returns the digest plus the id of the
  created object of the expected kind (if any).
- ActionExecutor: dispatches a validated decision model to its handler,
  shapes the collaborator's arguments (u64 clamping, defaults, balance
  caps, pre-checks), resolves shared ids from the persisted state and
  writes created ids back into it.

Neither layer retries. A non-success status raises TransactionFailure
carrying the ledger's reason.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from ..agents.catalog import (
    ActionId,
    ActionParams,
    AddCrewParams,
    AddLiquidityParams,
    AssignOperatorParams,
    AssignPilotParams,
    BuildShipParams,
    BuildStationParams,
    CastVoteParams,
    ColonizePlanetParams,
    CompleteMissionParams,
    CreateMissionTemplateParams,
    CreateProposalParams,
    DiscoverPlanetParams,
    DockShipParams,
    ExecuteProposalParams,
    ExtractResourcesParams,
    FinalizeProposalParams,
    FundRewardPoolParams,
    IdSource,
    KnownIds,
    MintAgentParams,
    MintGalacticParams,
    PurchaseInsuranceParams,
    StartMissionParams,
    SwapGalacticForSuiParams,
    SwapSuiForGalacticParams,
    TrainAgentParams,
    UpgradeAgentParams,
    UpgradeDefenseParams,
    validate_decision,
)
from ..errors import ErrorCode, InvalidDecision, MissingResourceFailure, TransactionFailure
from ..ledger.client import LedgerClient, Signer, TransactionOutcome
from ..ledger.transaction import (
    Address,
    Bool,
    Id,
    NestedResult,
    OptionAddress,
    OptionU8,
    String,
    TransactionPlan,
    U8,
    U64,
    VectorU8,
    VectorU64,
)
from .queries import AgentInfo, GameQueries
from .resource_types import AdminCapKind, OwnedKind, ResourceKind, ResourceTypeRegistry, SharedKind, SingletonKind
from .state import AgentState, PersistedState
from .types import (
    BPS_DENOMINATOR,
    DECIMALS,
    GAS_RESERVE,
    INSURANCE_PREMIUM_BPS,
    MINIMUM_LIQUIDITY,
    PROPOSAL_COSTS,
    galactic_coin_type,
    to_raw,
)

logger = logging.getLogger(__name__)

# Model name recorded on minted agents
AGENT_AI_MODEL_TAG = "GLM-4"
TRAINING_EXPERIENCE = 100
DEFAULT_TOTAL_SUPPLY = 1_000_000 * DECIMALS


def insurance_premium(insured_amount: int) -> int:
    """Ceiling of 2% of ``insured_amount``, in integer arithmetic."""
    return (insured_amount * INSURANCE_PREMIUM_BPS + BPS_DENOMINATOR - 1) // BPS_DENOMINATOR


@dataclass
class ExecutionContext:
    """Per-agent handle on the ledger. Not persisted."""

    ledger: LedgerClient
    signer: Signer
    package_id: str

    @property
    def address(self) -> str:
        return self.signer.address

    def target(self, module: str, function: str) -> str:
        return f"{self.package_id}::{module}::{function}"


@dataclass
class TxReceipt:
    digest: str
    created_id: str | None = None


@dataclass
class ActionOutcome:
    """Result of one executed decision, as recorded in the activity feed."""

    digest: str
    description: str
    created_id: str | None = None


@dataclass
class MissionTemplateArgs:
    """Raw (already shaped) arguments of ``missions::create_mission_template``."""

    name: str
    description: str
    mission_type: int
    difficulty: int
    min_agent_level: int
    min_processing: int
    min_mobility: int
    min_power: int
    required_ship_class: int | None
    energy_cost: int
    galactic_cost: int
    duration_epochs: int
    base_reward: int
    experience_reward: int
    loot_chance: int


class GameTransactions:
    """Builds and submits the game's Move calls for one signer."""

    def __init__(self, ctx: ExecutionContext) -> None:
        self.ctx = ctx
        self.registry = ResourceTypeRegistry(ctx.package_id)
        self.galactic_coin_type = galactic_coin_type(self.registry.package_id)

    # --- plumbing ----------------------------------------------------------

    def _submit(self, plan: TransactionPlan, created: ResourceKind | None = None) -> TxReceipt:
        outcome = self.ctx.ledger.submit(plan, self.ctx.signer)
        if not outcome.succeeded:
            raise TransactionFailure(outcome.error or "Transaction failed", digest=outcome.digest)
        created_id = self.find_created(outcome, created) if created is not None else None
        return TxReceipt(outcome.digest, created_id)

    def find_created(self, outcome: TransactionOutcome, kind: ResourceKind) -> str | None:
        """Id of the first created object of ``kind`` in this package."""
        for change in outcome.created():
            if self.registry.is_kind(change.object_type, kind):
                return change.object_id
        return None

    def _split_payment(
        self, plan: TransactionPlan, coin_type: str, amount: int, kind: str
    ) -> NestedResult:
        """Split ``amount`` (0 allowed) off the signer's first coin of ``coin_type``."""
        coins = self.ctx.ledger.list_coins(self.ctx.address, coin_type)
        if not coins:
            raise MissingResourceFailure(kind, owner=self.ctx.address)
        return plan.split_coins(plan.object(coins[0].coin_object_id), [amount])[0]

    def _split_galactic(self, plan: TransactionPlan, amount: int) -> NestedResult:
        return self._split_payment(plan, self.galactic_coin_type, amount, "GALACTIC coin")

    def _share(self, plan: TransactionPlan, obj: NestedResult, kind: SharedKind) -> None:
        plan.share_object(obj, self.registry.type_string(kind))

    # --- agents, ships, stations ------------------------------------------

    def mint_agent(self, recipient: str, name: str, agent_type: int, agent_class: int) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(
            self.ctx.target("agent", "mint_agent_to"),
            [String(name), U8(agent_type), U8(agent_class), String(AGENT_AI_MODEL_TAG), Address(recipient)],
        )
        return self._submit(plan, OwnedKind.AGENT)

    def build_ship(self, recipient: str, name: str, ship_class: int) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(
            self.ctx.target("ship", "build_ship_to"),
            [String(name), U8(ship_class), Address(recipient)],
        )
        return self._submit(plan, OwnedKind.SHIP)

    def build_station(
        self, recipient: str, name: str, station_type: int, x: int, y: int, z: int
    ) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(
            self.ctx.target("station", "build_station_to"),
            [String(name), U8(station_type), VectorU8(b""), U64(x), U64(y), U64(z), Address(recipient)],
        )
        return self._submit(plan, OwnedKind.STATION)

    def train_agent(self, agent_id: str, experience: int = TRAINING_EXPERIENCE) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(self.ctx.target("agent", "add_experience"), [plan.object(agent_id), U64(experience)])
        return self._submit(plan)

    def upgrade_agent(self, agent_id: str) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(self.ctx.target("agent", "upgrade_firmware"), [plan.object(agent_id)])
        return self._submit(plan)

    def assign_pilot(self, ship_id: str, agent_id: str) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(self.ctx.target("ship", "assign_pilot"), [plan.object(ship_id), Id(agent_id)])
        return self._submit(plan)

    def add_crew(self, ship_id: str, agent_id: str) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(self.ctx.target("ship", "add_crew"), [plan.object(ship_id), Id(agent_id)])
        return self._submit(plan)

    def assign_operator(self, station_id: str, agent_id: str) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(
            self.ctx.target("station", "assign_operator"), [plan.object(station_id), Id(agent_id)]
        )
        return self._submit(plan)

    def dock_ship(self, station_id: str, ship_id: str) -> TxReceipt:
        """Dock on both sides: the station records the ship and vice versa."""
        plan = TransactionPlan()
        plan.move_call(self.ctx.target("station", "dock_ship"), [plan.object(station_id), Id(ship_id)])
        plan.move_call(self.ctx.target("ship", "dock"), [plan.object(ship_id), Id(station_id)])
        return self._submit(plan)

    # --- planets -----------------------------------------------------------

    def discover_planet(
        self,
        admin_cap_id: str,
        name: str,
        planet_type: int,
        galaxy_id: int,
        system_id: int,
        x: int,
        y: int,
        z: int,
        primary_resource: int,
        secondary_resource: int | None,
        total_reserves: int,
    ) -> TxReceipt:
        plan = TransactionPlan()
        planet = plan.move_call(
            self.ctx.target("planet", "discover_planet"),
            [
                plan.object(admin_cap_id),
                String(name),
                U8(planet_type),
                U64(galaxy_id),
                U64(system_id),
                U64(x),
                U64(y),
                U64(z),
                U8(primary_resource),
                OptionU8(secondary_resource),
                U64(total_reserves),
            ],
        )
        self._share(plan, planet.nested(0), SharedKind.PLANET)
        return self._submit(plan, SharedKind.PLANET)

    def colonize_planet(self, planet_id: str) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(self.ctx.target("planet", "colonize"), [plan.object(planet_id)])
        return self._submit(plan)

    def extract_resources(self, planet_id: str, epoch: int) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(
            self.ctx.target("planet", "extract_resources"), [plan.object(planet_id), U64(epoch)]
        )
        return self._submit(plan)

    def upgrade_defense(self, planet_id: str, amount: int) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(
            self.ctx.target("planet", "upgrade_defense"), [plan.object(planet_id), U64(amount)]
        )
        return self._submit(plan)

    # --- missions ----------------------------------------------------------

    def create_mission_template(self, admin_cap_id: str, args: MissionTemplateArgs) -> TxReceipt:
        plan = TransactionPlan()
        template = plan.move_call(
            self.ctx.target("missions", "create_mission_template"),
            [
                plan.object(admin_cap_id),
                String(args.name),
                String(args.description),
                U8(args.mission_type),
                U8(args.difficulty),
                U64(args.min_agent_level),
                U64(args.min_processing),
                U64(args.min_mobility),
                U64(args.min_power),
                OptionU8(args.required_ship_class),
                U64(args.energy_cost),
                U64(args.galactic_cost),
                U64(args.duration_epochs),
                U64(args.base_reward),
                U64(args.experience_reward),
                U64(args.loot_chance),
            ],
        )
        self._share(plan, template.nested(0), SharedKind.MISSION_TEMPLATE)
        return self._submit(plan, SharedKind.MISSION_TEMPLATE)

    def fund_reward_pool(self, registry_id: str, amount: int) -> TxReceipt:
        plan = TransactionPlan()
        payment = self._split_galactic(plan, amount)
        plan.move_call(self.ctx.target("missions", "fund_reward_pool"), [plan.object(registry_id), payment])
        return self._submit(plan)

    def start_mission(
        self,
        registry_id: str,
        template_id: str,
        agent: AgentInfo,
        ship_id: str | None,
        galactic_cost: int,
        epoch: int,
        seed: int,
    ) -> TxReceipt:
        plan = TransactionPlan()
        payment = self._split_galactic(plan, galactic_cost)
        mission = plan.move_call(
            self.ctx.target("missions", "start_mission"),
            [
                plan.object(registry_id),
                plan.object(template_id),
                Id(agent.id),
                OptionAddress(ship_id),
                U64(agent.level),
                U64(agent.processing),
                U64(agent.mobility),
                U64(agent.power),
                U64(agent.luck),
                payment,
                U64(epoch),
                U64(seed),
            ],
        )
        plan.transfer_objects([mission.nested(0)], self.ctx.address)
        return self._submit(plan, OwnedKind.ACTIVE_MISSION)

    def complete_mission(
        self, registry_id: str, template_id: str, mission_id: str, epoch: int
    ) -> TxReceipt:
        plan = TransactionPlan()
        result = plan.move_call(
            self.ctx.target("missions", "complete_mission"),
            [plan.object(registry_id), plan.object(template_id), plan.object(mission_id), U64(epoch)],
        )
        plan.transfer_objects([result.nested(0)], self.ctx.address)
        return self._submit(plan)

    # --- tokens and DeFi ---------------------------------------------------

    def mint_galactic(self, treasury_id: str, amount: int, recipient: str) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(
            self.ctx.target("galactic_token", "mint"),
            [plan.object(treasury_id), U64(amount), Address(recipient)],
        )
        return self._submit(plan)

    def transfer_sui(self, recipient: str, amount: int) -> TxReceipt:
        plan = TransactionPlan()
        [coin] = plan.split_coins(plan.gas, [amount])
        plan.transfer_objects([coin], recipient)
        return self._submit(plan)

    def create_reactor(self, admin_cap_id: str) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(self.ctx.target("defi", "create_and_share_reactor"), [plan.object(admin_cap_id)])
        return self._submit(plan, SingletonKind.REACTOR)

    def create_insurance_pool(self, admin_cap_id: str) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(
            self.ctx.target("defi", "create_and_share_insurance_pool"), [plan.object(admin_cap_id)]
        )
        return self._submit(plan, SingletonKind.INSURANCE_POOL)

    def add_liquidity(self, reactor_id: str, galactic_amount: int, sui_amount: int, epoch: int) -> TxReceipt:
        plan = TransactionPlan()
        galactic = self._split_galactic(plan, galactic_amount)
        [sui] = plan.split_coins(plan.gas, [sui_amount])
        receipt = plan.move_call(
            self.ctx.target("defi", "add_liquidity"),
            [plan.object(reactor_id), galactic, sui, U64(epoch)],
        )
        plan.transfer_objects([receipt.nested(0)], self.ctx.address)
        return self._submit(plan, OwnedKind.LP_RECEIPT)

    def swap_galactic_for_sui(self, reactor_id: str, amount: int, min_out: int) -> TxReceipt:
        plan = TransactionPlan()
        galactic = self._split_galactic(plan, amount)
        out = plan.move_call(
            self.ctx.target("defi", "swap_galactic_for_sui"),
            [plan.object(reactor_id), galactic, U64(min_out)],
        )
        plan.transfer_objects([out.nested(0)], self.ctx.address)
        return self._submit(plan)

    def swap_sui_for_galactic(self, reactor_id: str, amount: int, min_out: int) -> TxReceipt:
        plan = TransactionPlan()
        [sui] = plan.split_coins(plan.gas, [amount])
        out = plan.move_call(
            self.ctx.target("defi", "swap_sui_for_galactic"),
            [plan.object(reactor_id), sui, U64(min_out)],
        )
        plan.transfer_objects([out.nested(0)], self.ctx.address)
        return self._submit(plan)

    def purchase_insurance(self, pool_id: str, insured_amount: int, epoch: int) -> TxReceipt:
        plan = TransactionPlan()
        premium = self._split_galactic(plan, insurance_premium(insured_amount))
        policy = plan.move_call(
            self.ctx.target("defi", "purchase_insurance"),
            [plan.object(pool_id), premium, U64(insured_amount), U64(epoch)],
        )
        plan.transfer_objects([policy.nested(0)], self.ctx.address)
        return self._submit(plan, OwnedKind.INSURANCE_POLICY)

    # --- governance --------------------------------------------------------

    def create_voting_power(
        self,
        token_balance: int,
        staked_balance: int,
        total_agent_levels: int,
        controlled_planets: int,
        epoch: int,
    ) -> TxReceipt:
        plan = TransactionPlan()
        power = plan.move_call(
            self.ctx.target("governance", "create_voting_power"),
            [U64(token_balance), U64(staked_balance), U64(total_agent_levels), U64(controlled_planets), U64(epoch)],
        )
        plan.transfer_objects([power.nested(0)], self.ctx.address)
        return self._submit(plan, OwnedKind.VOTING_POWER)

    def create_proposal(
        self,
        registry_id: str,
        voting_power_id: str,
        title: str,
        description: str,
        proposal_type: int,
        target_module: str,
        target_function: str,
        parameters: list[int],
        deposit: int,
        epoch: int,
    ) -> TxReceipt:
        plan = TransactionPlan()
        payment = self._split_galactic(plan, deposit)
        proposal = plan.move_call(
            self.ctx.target("governance", "create_proposal"),
            [
                plan.object(registry_id),
                plan.object(voting_power_id),
                String(title),
                String(description),
                U8(proposal_type),
                String(target_module),
                String(target_function),
                VectorU64(tuple(parameters)),
                payment,
                U64(epoch),
            ],
        )
        self._share(plan, proposal.nested(0), SharedKind.PROPOSAL)
        return self._submit(plan, SharedKind.PROPOSAL)

    def cast_vote(self, proposal_id: str, voting_power_id: str, support: bool, epoch: int) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(
            self.ctx.target("governance", "cast_vote"),
            [plan.object(proposal_id), plan.object(voting_power_id), Bool(support), U64(epoch)],
        )
        return self._submit(plan)

    def update_governance_parameters(
        self,
        admin_cap_id: str,
        registry_id: str,
        voting_period: int,
        execution_delay: int,
        proposal_threshold: int,
        quorum_threshold: int,
    ) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(
            self.ctx.target("governance", "update_parameters"),
            [
                plan.object(admin_cap_id),
                plan.object(registry_id),
                U64(voting_period),
                U64(execution_delay),
                U64(proposal_threshold),
                U64(quorum_threshold),
            ],
        )
        return self._submit(plan)

    def finalize_proposal(self, registry_id: str, proposal_id: str, total_supply: int, epoch: int) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(
            self.ctx.target("governance", "finalize_proposal"),
            [plan.object(registry_id), plan.object(proposal_id), U64(total_supply), U64(epoch)],
        )
        return self._submit(plan)

    def execute_proposal(self, registry_id: str, proposal_id: str, epoch: int) -> TxReceipt:
        plan = TransactionPlan()
        plan.move_call(
            self.ctx.target("governance", "execute_proposal"),
            [plan.object(registry_id), plan.object(proposal_id), U64(epoch)],
        )
        return self._submit(plan)


# --- decision dispatch ------------------------------------------------------

_SINGLETON_NAMES: dict[SingletonKind, str] = {
    SingletonKind.TREASURY: "GalacticTreasury",
    SingletonKind.MISSION_REGISTRY: "MissionRegistry",
    SingletonKind.GOVERNANCE_REGISTRY: "GovernanceRegistry",
    SingletonKind.CODE_REGISTRY: "CodeRegistry",
    SingletonKind.REACTOR: "Energy Reactor",
    SingletonKind.INSURANCE_POOL: "Insurance Pool",
}

_CAP_NAMES: dict[AdminCapKind, str] = {
    AdminCapKind.PLANET: "PlanetAdminCap",
    AdminCapKind.MISSION: "MissionAdminCap",
    AdminCapKind.DEFI: "DefiAdminCap",
    AdminCapKind.GOVERNANCE: "GovernanceAdminCap",
    AdminCapKind.AGENT: "AgentAdminCap",
    AdminCapKind.SHIP: "ShipAdminCap",
    AdminCapKind.STATION: "StationAdminCap",
    AdminCapKind.REGISTRY: "RegistryAdminCap",
    AdminCapKind.GALACTIC: "AdminCap",
}


def known_ids_from_state(
    state: PersistedState, agent_state: AgentState, mission_ids: list[str] | None = None
) -> KnownIds:
    """Ids an agent may legitimately reference, per source."""
    known = KnownIds()
    known.add(IdSource.OWN_AGENT, agent_state.owned_agent_ids)
    known.add(IdSource.OWN_SHIP, agent_state.owned_ship_ids)
    known.add(IdSource.OWN_STATION, agent_state.owned_station_ids)
    known.add(IdSource.OWN_MISSION, mission_ids or [])
    known.add(IdSource.PLANET, state.planet_ids)
    known.add(IdSource.MISSION_TEMPLATE, state.mission_template_ids)
    known.add(IdSource.PROPOSAL, state.proposal_ids)
    return known


Handler = Callable[[Any, PersistedState, AgentState], ActionOutcome]


class ActionExecutor:
    """Executes collaborator decisions for one agent.

    ``seed_source`` supplies the mission-start seed; it is injected so that
    runs are reproducible under test.
    """

    def __init__(
        self,
        ctx: ExecutionContext,
        queries: GameQueries,
        seed_source: Callable[[], int],
    ) -> None:
        self.ctx = ctx
        self.queries = queries
        self.tx = GameTransactions(ctx)
        self.seed_source = seed_source
        self._handlers: dict[ActionId, Handler] = {
            ActionId.MINT_AGENT: self._mint_agent,
            ActionId.BUILD_SHIP: self._build_ship,
            ActionId.BUILD_STATION: self._build_station,
            ActionId.TRAIN_AGENT: self._train_agent,
            ActionId.UPGRADE_AGENT: self._upgrade_agent,
            ActionId.ASSIGN_PILOT: self._assign_pilot,
            ActionId.ADD_CREW: self._add_crew,
            ActionId.DISCOVER_PLANET: self._discover_planet,
            ActionId.COLONIZE_PLANET: self._colonize_planet,
            ActionId.EXTRACT_RESOURCES: self._extract_resources,
            ActionId.UPGRADE_DEFENSE: self._upgrade_defense,
            ActionId.CREATE_MISSION_TEMPLATE: self._create_mission_template,
            ActionId.FUND_REWARD_POOL: self._fund_reward_pool,
            ActionId.START_MISSION: self._start_mission,
            ActionId.COMPLETE_MISSION: self._complete_mission,
            ActionId.MINT_GALACTIC: self._mint_galactic,
            ActionId.CREATE_AND_SHARE_REACTOR: self._create_reactor,
            ActionId.CREATE_AND_SHARE_INSURANCE_POOL: self._create_insurance_pool,
            ActionId.ADD_LIQUIDITY: self._add_liquidity,
            ActionId.SWAP_GALACTIC_FOR_SUI: self._swap_galactic_for_sui,
            ActionId.SWAP_SUI_FOR_GALACTIC: self._swap_sui_for_galactic,
            ActionId.PURCHASE_INSURANCE: self._purchase_insurance,
            ActionId.ASSIGN_OPERATOR: self._assign_operator,
            ActionId.DOCK_SHIP: self._dock_ship,
            ActionId.CREATE_VOTING_POWER: self._create_voting_power,
            ActionId.CREATE_PROPOSAL: self._create_proposal,
            ActionId.CAST_VOTE: self._cast_vote,
            ActionId.FINALIZE_PROPOSAL: self._finalize_proposal,
            ActionId.EXECUTE_PROPOSAL: self._execute_proposal,
        }
        missing = set(ActionId) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for actions: {sorted(a.value for a in missing)}")

    @property
    def address(self) -> str:
        return self.ctx.address

    def execute(
        self, decision: ActionParams, state: PersistedState, agent_state: AgentState
    ) -> ActionOutcome:
        """Run ``decision`` as one transaction and fold its result into state.

        Raises:
            InvalidDecision: An id is malformed or unknown (nothing submitted).
            MissingResourceFailure: A coin, capability or singleton is absent.
            TransactionFailure: The ledger rejected the transaction.
        """
        self._check_references(decision, state, agent_state)
        outcome = self._handlers[decision.action_id](decision, state, agent_state)
        logger.info("%s: %s (%s)", agent_state.name, outcome.description, outcome.digest[:12])
        return outcome

    def _check_references(
        self, decision: ActionParams, state: PersistedState, agent_state: AgentState
    ) -> None:
        refs = decision.referenced_ids()
        mission_ids: list[str] = []
        if any(source == IdSource.OWN_MISSION for source, _ in refs.values()):
            mission_ids = [m.id for m in self.queries.fleet(self.address).missions]
        known = known_ids_from_state(state, agent_state, mission_ids)
        validate_decision(decision, frozenset(ActionId), known)

    # --- resolution helpers ------------------------------------------------

    @staticmethod
    def _singleton(state: PersistedState, kind: SingletonKind) -> str:
        object_id = state.shared_objects.get(kind)
        if not object_id:
            raise MissingResourceFailure(_SINGLETON_NAMES[kind])
        return object_id

    @staticmethod
    def _cap(state: PersistedState, kind: AdminCapKind) -> str:
        object_id = state.shared_objects.cap(kind)
        if not object_id:
            raise MissingResourceFailure(_CAP_NAMES[kind])
        return object_id

    def _require_own_planet(self, planet_id: str) -> None:
        planet = self.queries.planet(planet_id)
        if planet is not None and planet.owner != self.address:
            owner = planet.owner[:10] if planet.owner else "none"
            raise InvalidDecision(
                f"Planet {planet_id[:10]}... is not yours (owner: {owner}...)",
                code=ErrorCode.NOT_OWNER,
                planet_id=planet_id,
            )

    # --- handlers ----------------------------------------------------------

    def _mint_agent(self, d: MintAgentParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        receipt = self.tx.mint_agent(self.address, d.name, d.agent_type, d.agent_class)
        if receipt.created_id:
            agent.owned_agent_ids.append(receipt.created_id)
        return ActionOutcome(
            receipt.digest,
            f'Minted agent "{d.name}" ({d.agent_type.name} {d.agent_class.name})',
            receipt.created_id,
        )

    def _build_ship(self, d: BuildShipParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        receipt = self.tx.build_ship(self.address, d.name, d.ship_class)
        if receipt.created_id:
            agent.owned_ship_ids.append(receipt.created_id)
        return ActionOutcome(receipt.digest, f'Built ship "{d.name}" ({d.ship_class.name})', receipt.created_id)

    def _build_station(self, d: BuildStationParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        receipt = self.tx.build_station(self.address, d.name, d.station_type, d.x, d.y, d.z)
        if receipt.created_id:
            agent.owned_station_ids.append(receipt.created_id)
        return ActionOutcome(
            receipt.digest, f'Built station "{d.name}" ({d.station_type.name})', receipt.created_id
        )

    def _train_agent(self, d: TrainAgentParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        receipt = self.tx.train_agent(d.agent_id)
        return ActionOutcome(receipt.digest, f"Trained agent {d.agent_id[:10]}... (+{TRAINING_EXPERIENCE} XP)")

    def _upgrade_agent(self, d: UpgradeAgentParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        receipt = self.tx.upgrade_agent(d.agent_id)
        return ActionOutcome(receipt.digest, f"Upgraded firmware for agent {d.agent_id[:10]}...")

    def _assign_pilot(self, d: AssignPilotParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        receipt = self.tx.assign_pilot(d.ship_id, d.agent_id)
        return ActionOutcome(receipt.digest, "Assigned pilot to ship")

    def _add_crew(self, d: AddCrewParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        receipt = self.tx.add_crew(d.ship_id, d.agent_id)
        return ActionOutcome(receipt.digest, "Added crew to ship")

    def _assign_operator(self, d: AssignOperatorParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        receipt = self.tx.assign_operator(d.station_id, d.agent_id)
        return ActionOutcome(receipt.digest, "Assigned operator to station")

    def _dock_ship(self, d: DockShipParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        receipt = self.tx.dock_ship(d.station_id, d.ship_id)
        return ActionOutcome(receipt.digest, "Docked ship at station")

    def _discover_planet(self, d: DiscoverPlanetParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        cap = self._cap(state, AdminCapKind.PLANET)
        receipt = self.tx.discover_planet(
            cap,
            d.name,
            d.planet_type,
            d.galaxy_id or 1,
            d.system_id or 1,
            d.x,
            d.y,
            d.z,
            d.primary_resource,
            d.secondary_resource,
            d.total_reserves or 10_000,
        )
        if receipt.created_id:
            state.add_planet(receipt.created_id)
        return ActionOutcome(
            receipt.digest,
            f'Discovered planet "{d.name}" ({d.planet_type.name}, {d.primary_resource.name})',
            receipt.created_id,
        )

    def _colonize_planet(self, d: ColonizePlanetParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        planet = self.queries.planet(d.planet_id)
        if planet is not None and planet.owner:
            raise InvalidDecision(
                f"Planet {d.planet_id[:10]}... is already colonized by {planet.owner[:10]}...",
                code=ErrorCode.ALREADY_EXISTS,
                planet_id=d.planet_id,
            )
        receipt = self.tx.colonize_planet(d.planet_id)
        return ActionOutcome(receipt.digest, f"Colonized planet {d.planet_id[:10]}...")

    def _extract_resources(self, d: ExtractResourcesParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        self._require_own_planet(d.planet_id)
        receipt = self.tx.extract_resources(d.planet_id, self.queries.current_epoch())
        return ActionOutcome(receipt.digest, "Extracted resources from planet")

    def _upgrade_defense(self, d: UpgradeDefenseParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        self._require_own_planet(d.planet_id)
        amount = d.amount or 1
        receipt = self.tx.upgrade_defense(d.planet_id, amount)
        return ActionOutcome(receipt.digest, f"Upgraded planet defense by {amount}")

    def _create_mission_template(
        self, d: CreateMissionTemplateParams, state: PersistedState, agent: AgentState
    ) -> ActionOutcome:
        cap = self._cap(state, AdminCapKind.MISSION)
        args = MissionTemplateArgs(
            name=d.name,
            description=d.description,
            mission_type=d.mission_type,
            difficulty=d.difficulty or 1,
            min_agent_level=d.min_agent_level,
            min_processing=d.min_processing,
            min_mobility=d.min_mobility,
            min_power=d.min_power,
            required_ship_class=d.required_ship_class,
            energy_cost=d.energy_cost,
            galactic_cost=to_raw(d.galactic_cost),
            duration_epochs=d.duration_epochs or 1,
            base_reward=to_raw(d.base_reward or 100),
            experience_reward=d.experience_reward or 50,
            loot_chance=d.loot_chance or 20,
        )
        receipt = self.tx.create_mission_template(cap, args)
        if receipt.created_id:
            state.add_mission_template(receipt.created_id)
        return ActionOutcome(
            receipt.digest,
            f'Created mission "{d.name}" ({d.mission_type.name}, diff:{args.difficulty})',
            receipt.created_id,
        )

    def _fund_reward_pool(self, d: FundRewardPoolParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        registry = self._singleton(state, SingletonKind.MISSION_REGISTRY)
        receipt = self.tx.fund_reward_pool(registry, to_raw(d.amount))
        return ActionOutcome(receipt.digest, f"Funded reward pool with {d.amount:g} GALACTIC")

    def _start_mission(self, d: StartMissionParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        registry = self._singleton(state, SingletonKind.MISSION_REGISTRY)
        fleet_agent = self.queries.fleet(self.address).agent(d.agent_id)
        if fleet_agent is None:
            raise InvalidDecision(
                f"Agent {d.agent_id[:10]}... not found in your roster",
                code=ErrorCode.UNKNOWN_OBJECT,
                agent_id=d.agent_id,
            )
        template = self.queries.mission_template(d.template_id)
        galactic_cost = 0
        if template is not None:
            unmet = template.unmet_requirements(fleet_agent)
            if unmet:
                raise InvalidDecision(
                    f"Agent does not meet mission requirements: {', '.join(unmet)}",
                    template_id=d.template_id,
                )
            galactic_cost = template.galactic_cost
        receipt = self.tx.start_mission(
            registry,
            d.template_id,
            fleet_agent,
            d.ship_id,
            galactic_cost,
            self.queries.current_epoch(),
            self.seed_source(),
        )
        return ActionOutcome(
            receipt.digest, f"Started mission on template {d.template_id[:10]}...", receipt.created_id
        )

    def _complete_mission(self, d: CompleteMissionParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        registry = self._singleton(state, SingletonKind.MISSION_REGISTRY)
        receipt = self.tx.complete_mission(registry, d.template_id, d.mission_id, self.queries.current_epoch())
        return ActionOutcome(receipt.digest, f"Completed mission {d.mission_id[:10]}...")

    def _mint_galactic(self, d: MintGalacticParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        treasury = self._singleton(state, SingletonKind.TREASURY)
        recipient = d.recipient or self.address
        receipt = self.tx.mint_galactic(treasury, to_raw(d.amount), recipient)
        return ActionOutcome(receipt.digest, f"Minted {d.amount:g} GALACTIC to {recipient[:10]}...")

    def _create_singleton(
        self,
        state: PersistedState,
        kind: SingletonKind,
        create: Callable[[str], TxReceipt],
    ) -> ActionOutcome:
        if state.shared_objects.get(kind):
            raise InvalidDecision(
                f"{_SINGLETON_NAMES[kind]} already exists",
                code=ErrorCode.ALREADY_EXISTS,
            )
        receipt = create(self._cap(state, AdminCapKind.DEFI))
        if receipt.created_id:
            state.shared_objects.set_once(kind, receipt.created_id)
        return ActionOutcome(receipt.digest, f"Created {_SINGLETON_NAMES[kind]}", receipt.created_id)

    def _create_reactor(self, d: ActionParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        return self._create_singleton(state, SingletonKind.REACTOR, self.tx.create_reactor)

    def _create_insurance_pool(self, d: ActionParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        return self._create_singleton(state, SingletonKind.INSURANCE_POOL, self.tx.create_insurance_pool)

    def _add_liquidity(self, d: AddLiquidityParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        reactor = self._singleton(state, SingletonKind.REACTOR)
        balance = self.queries.galactic_balance(self.address)
        galactic = min(balance, max(to_raw(d.galactic_amount), MINIMUM_LIQUIDITY))
        sui = max(to_raw(d.sui_amount), MINIMUM_LIQUIDITY)
        if galactic < MINIMUM_LIQUIDITY:
            raise MissingResourceFailure(
                f"GALACTIC for liquidity (have {balance}, need >= {MINIMUM_LIQUIDITY})"
            )
        receipt = self.tx.add_liquidity(reactor, galactic, sui, self.queries.current_epoch())
        if receipt.created_id:
            agent.lp_receipt_ids.append(receipt.created_id)
        return ActionOutcome(
            receipt.digest, f"Added liquidity: {galactic} GALACTIC + {sui} SUI", receipt.created_id
        )

    def _swap_galactic_for_sui(
        self, d: SwapGalacticForSuiParams, state: PersistedState, agent: AgentState
    ) -> ActionOutcome:
        reactor = self._singleton(state, SingletonKind.REACTOR)
        amount = min(to_raw(d.galactic_amount), self.queries.galactic_balance(self.address))
        if amount < 1:
            raise MissingResourceFailure("GALACTIC to swap")
        receipt = self.tx.swap_galactic_for_sui(reactor, amount, d.min_sui_out or 1)
        return ActionOutcome(receipt.digest, f"Swapped {amount} GALACTIC for SUI")

    def _swap_sui_for_galactic(
        self, d: SwapSuiForGalacticParams, state: PersistedState, agent: AgentState
    ) -> ActionOutcome:
        reactor = self._singleton(state, SingletonKind.REACTOR)
        spendable = max(self.queries.sui_balance(self.address) - GAS_RESERVE, 0)
        amount = min(to_raw(d.sui_amount), spendable)
        if amount < 1:
            raise MissingResourceFailure("SUI to swap (need reserve for gas)")
        receipt = self.tx.swap_sui_for_galactic(reactor, amount, d.min_galactic_out or 1)
        return ActionOutcome(receipt.digest, f"Swapped {amount} SUI for GALACTIC")

    def _purchase_insurance(self, d: PurchaseInsuranceParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        pool = self._singleton(state, SingletonKind.INSURANCE_POOL)
        receipt = self.tx.purchase_insurance(pool, to_raw(d.insured_amount), self.queries.current_epoch())
        if receipt.created_id:
            agent.insurance_policy_ids.append(receipt.created_id)
        return ActionOutcome(
            receipt.digest, f"Purchased insurance for {d.insured_amount:g} GALACTIC", receipt.created_id
        )

    def _create_voting_power(self, d: ActionParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        balance = self.queries.galactic_balance(self.address)
        levels = self.queries.fleet(self.address).total_agent_levels
        planets = [p for p in self.queries.planets(state.planet_ids) if p.owner == self.address]
        receipt = self.tx.create_voting_power(balance, 0, levels, len(planets), self.queries.current_epoch())
        if receipt.created_id:
            agent.voting_power_id = receipt.created_id
        return ActionOutcome(
            receipt.digest,
            f"Created voting power (balance:{balance}, agents:{levels} levels, planets:{len(planets)})",
            receipt.created_id,
        )

    def _require_voting_power(self, agent: AgentState) -> str:
        if not agent.voting_power_id:
            raise MissingResourceFailure("VotingPower", owner=agent.name)
        return agent.voting_power_id

    def _create_proposal(self, d: CreateProposalParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        registry = self._singleton(state, SingletonKind.GOVERNANCE_REGISTRY)
        voting_power = self._require_voting_power(agent)
        deposit = PROPOSAL_COSTS.get(int(d.proposal_type), PROPOSAL_COSTS[0])
        receipt = self.tx.create_proposal(
            registry,
            voting_power,
            d.title,
            d.description,
            d.proposal_type,
            d.target_module or "defi",
            d.target_function or "update_swap_fee",
            list(d.parameters) or [25],
            deposit,
            self.queries.current_epoch(),
        )
        if receipt.created_id:
            state.add_proposal(receipt.created_id)
        return ActionOutcome(
            receipt.digest,
            f'Created proposal: "{d.title}" (cost: {deposit // DECIMALS} GALACTIC)',
            receipt.created_id,
        )

    def _cast_vote(self, d: CastVoteParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        voting_power = self._require_voting_power(agent)
        receipt = self.tx.cast_vote(d.proposal_id, voting_power, d.support, self.queries.current_epoch())
        agent.record_vote(d.proposal_id)
        return ActionOutcome(receipt.digest, f"Voted {'FOR' if d.support else 'AGAINST'} proposal")

    def _finalize_proposal(self, d: FinalizeProposalParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        registry = self._singleton(state, SingletonKind.GOVERNANCE_REGISTRY)
        receipt = self.tx.finalize_proposal(
            registry, d.proposal_id, d.total_supply or DEFAULT_TOTAL_SUPPLY, self.queries.current_epoch()
        )
        return ActionOutcome(receipt.digest, f"Finalized proposal {d.proposal_id[:10]}...")

    def _execute_proposal(self, d: ExecuteProposalParams, state: PersistedState, agent: AgentState) -> ActionOutcome:
        registry = self._singleton(state, SingletonKind.GOVERNANCE_REGISTRY)
        receipt = self.tx.execute_proposal(registry, d.proposal_id, self.queries.current_epoch())
        return ActionOutcome(receipt.digest, f"Executed proposal {d.proposal_id[:10]}...")

    # --- orchestrator-only operations -------------------------------------

    def update_governance_parameters(
        self,
        state: PersistedState,
        voting_period: int,
        execution_delay: int,
        proposal_threshold: int,
        quorum_threshold: int,
    ) -> ActionOutcome:
        cap = self._cap(state, AdminCapKind.GOVERNANCE)
        registry = self._singleton(state, SingletonKind.GOVERNANCE_REGISTRY)
        receipt = self.tx.update_governance_parameters(
            cap, registry, voting_period, execution_delay, proposal_threshold, quorum_threshold
        )
        return ActionOutcome(
            receipt.digest,
            f"Governance parameters: voting {voting_period}, delay {execution_delay}, quorum {quorum_threshold}",
        )

    def transfer_sui(self, recipient: str, amount: int) -> ActionOutcome:
        receipt = self.tx.transfer_sui(recipient, amount)
        return ActionOutcome(receipt.digest, f"Transferred {amount / DECIMALS:.4f} SUI to {recipient[:10]}...")
