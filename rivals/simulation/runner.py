"""SimulationRunner - two-agent round loop over the shared game world.

Handles:
- One-time bootstrap (rival funding, discovery, premint, governance params)
- Round-robin turns: primary then rival, each a single transaction
- Automatic governance lifecycle in the governance phases
- Phase transitions, persistence and the frontend activity feed
- Session summary and error statistics on shutdown
"""

from __future__ import annotations

import logging
import random
import signal
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from ..agents.catalog import (
    ActionId,
    ActionParams,
    CastVoteParams,
    CreateVotingPowerParams,
    ExecuteProposalParams,
    FinalizeProposalParams,
)
from ..agents.decision import DecisionMaker
from ..agents.phases import (
    OwnCounts,
    apply_transition,
    check_transition,
    get_available_actions,
    phase_objectives,
    phase_temperature,
    reconcile_phase,
    record_round,
    should_skip_turn,
    waiting_advance,
)
from ..agents.prerequisites import (
    GOVERNANCE_PHASES,
    executable,
    filter_by_holdings,
    filter_by_world,
    finalizable,
    is_governance_round,
    ordered,
    restrict_to_governance,
    votable,
)
from ..agents.prompts import PromptView, build_system_prompt, build_user_prompt
from ..config_schema import AgentProfileConfig, AppConfig
from ..errors import InvalidDecision, RivalsError, TransactionFailure
from ..ledger.client import LedgerClient, Signer
from ..logger import ActivityEntry, ActivityLog, EventLogger, SummaryCollector
from ..world.discovery import SharedStateDiscovery
from ..world.executor import ActionExecutor, ExecutionContext
from ..world.queries import GameQueries
from ..world.state import AgentState, PersistedState
from ..world.store import StateRepository
from ..world.types import Role, to_raw
from .types import ErrorStats

logger = logging.getLogger(__name__)

TURN_ORDER: tuple[Role, ...] = (Role.PRIMARY, Role.RIVAL)


def _default_seed() -> int:
    return random.getrandbits(64)


@dataclass
class AgentRuntime:
    """Per-agent collaborators: persona, signing key and executor."""

    role: Role
    profile: AgentProfileConfig
    signer: Signer
    executor: ActionExecutor

    @property
    def name(self) -> str:
        return self.profile.name

    @property
    def address(self) -> str:
        return self.signer.address


class SimulationRunner:
    """Orchestrates the two competing agents.

    Both agents share one PersistedState and take strictly alternating
    turns in a single thread, so no two transactions are ever in flight
    at once.

    Usage:
        runner = SimulationRunner(config, ledger, primary_signer, rival_signer)
        state = runner.run()
    """

    def __init__(
        self,
        config: AppConfig,
        ledger: LedgerClient,
        primary_signer: Signer,
        rival_signer: Signer,
        decision_maker: DecisionMaker | None = None,
        verbose: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        seed_source: Callable[[], int] | None = None,
        run_id: str | None = None,
    ) -> None:
        package_id = config.ledger.package_id
        if not package_id:
            raise ValueError("ledger.package_id is required (set PACKAGE_ID)")

        self.config = config
        self.ledger = ledger
        self.verbose = verbose
        self._sleep = sleep
        self._running = False

        self.queries = GameQueries(ledger, package_id)
        self.repository = StateRepository(config.state.state_file)
        self.discovery = SharedStateDiscovery(
            ledger,
            self.repository,
            package_id,
            tx_page_limit=config.ledger.tx_page_limit,
            event_page_limit=config.ledger.event_page_limit,
            primary_name=config.agents.primary.name,
            rival_name=config.agents.rival.name,
        )
        seeds = seed_source or _default_seed
        self.runtimes: dict[Role, AgentRuntime] = {
            Role.PRIMARY: self._make_runtime(Role.PRIMARY, config.agents.primary, primary_signer, seeds),
            Role.RIVAL: self._make_runtime(Role.RIVAL, config.agents.rival, rival_signer, seeds),
        }
        self.decision_maker = decision_maker or DecisionMaker(
            config.llm.model,
            timeout=config.llm.timeout,
            num_retries=config.llm.num_retries,
            structured=config.llm.structured_output,
            max_tokens=config.llm.max_tokens,
            api_base=config.llm.api_base,
        )

        self.activity = ActivityLog(config.state.activity_file, config.state.activity_max_entries)
        self.event_logger = EventLogger(config.logging.logs_dir, run_id)
        self.summary = SummaryCollector()
        self.error_stats = ErrorStats()
        self.state: PersistedState | None = None

    def _make_runtime(
        self,
        role: Role,
        profile: AgentProfileConfig,
        signer: Signer,
        seed_source: Callable[[], int],
    ) -> AgentRuntime:
        ctx = ExecutionContext(self.ledger, signer, self.config.ledger.package_id)
        return AgentRuntime(role, profile, signer, ActionExecutor(ctx, self.queries, seed_source))

    def _print(self, message: str) -> None:
        if self.verbose:
            print(message)

    # --- bootstrap -----------------------------------------------------------

    def setup(self) -> PersistedState:
        """Fund the rival, discover shared state and apply one-time fixups."""
        primary = self.runtimes[Role.PRIMARY]
        rival = self.runtimes[Role.RIVAL]
        self._print("=== Space Rivals ===")
        self._print(f"Package: {self.config.ledger.package_id}")
        self._print(f"{primary.name}: {primary.address}")
        self._print(f"{rival.name}: {rival.address}")

        self.fund_rival()

        state = self.discovery.discover(primary.address, rival.address)
        if self.discovery.merge_discovered(
            state,
            self.discovery.discover_planets(),
            self.discovery.discover_mission_templates(),
        ):
            logger.info(
                "World has %d planets and %d mission templates",
                len(state.planet_ids),
                len(state.mission_template_ids),
            )

        fixed = reconcile_phase(state.rival, state)
        if fixed is not None:
            logger.info("%s phase corrected %s -> %s", state.rival.name, state.rival.phase.value, fixed.value)
            apply_transition(state.rival, fixed)

        for role in TURN_ORDER:
            self.discovery.sync_owned(state.agent(role))

        self.premint(state)
        self.apply_governance_parameters(state)
        self.repository.save(state)

        self._print(
            f"Phases: {state.primary.name}={state.primary.phase.value}, "
            f"{state.rival.name}={state.rival.phase.value}"
        )
        self._print("")
        self.event_logger.log("session_start", {
            "package_id": state.package_id,
            "primary": state.primary.to_dict(),
            "rival": state.rival.to_dict(),
        })
        self.state = state
        return state

    def fund_rival(self) -> None:
        """Top up the rival's gas from the primary when it runs low."""
        bootstrap = self.config.bootstrap
        primary = self.runtimes[Role.PRIMARY]
        rival = self.runtimes[Role.RIVAL]
        try:
            balance = self.queries.sui_balance(rival.address)
            if balance > to_raw(bootstrap.rival_min_balance):
                logger.info("%s already funded (%d MIST)", rival.name, balance)
                return
            outcome = primary.executor.transfer_sui(rival.address, to_raw(bootstrap.rival_funding))
        except RivalsError as e:
            logger.warning("Funding %s failed: %s", rival.name, e.message)
            self._record_error(e, rival.name)
            return
        self._print(f"  {outcome.description}")

    def premint(self, state: PersistedState) -> None:
        """Mint GALACTIC to each agent that holds none."""
        bootstrap = self.config.bootstrap
        if not bootstrap.premint_galactic:
            return
        treasury = state.shared_objects.treasury_id
        if not treasury:
            logger.warning("No treasury discovered, skipping GALACTIC premint")
            return
        primary = self.runtimes[Role.PRIMARY]
        for role in TURN_ORDER:
            agent = state.agent(role)
            try:
                if self.queries.has_galactic(agent.address):
                    continue
                primary.executor.tx.mint_galactic(treasury, to_raw(bootstrap.premint_amount), agent.address)
            except RivalsError as e:
                logger.warning("Premint for %s failed: %s", agent.name, e.message)
                self._record_error(e, agent.name)
                continue
            self._print(f"  Minted {bootstrap.premint_amount:,} GALACTIC to {agent.name}")

    def apply_governance_parameters(self, state: PersistedState) -> None:
        """Shorten voting windows so proposals resolve within a session."""
        params = self.config.bootstrap.governance
        shared = state.shared_objects
        if not params.enabled or not shared.governance_registry_id:
            return
        try:
            outcome = self.runtimes[Role.PRIMARY].executor.update_governance_parameters(
                state,
                params.voting_delay,
                params.execution_delay,
                params.proposal_threshold,
                params.quorum_votes,
            )
        except RivalsError as e:
            logger.warning("Governance parameter update failed: %s", e.message)
            return
        logger.info("%s", outcome.description)

    # --- turns -----------------------------------------------------------------

    def run_turn(self, state: PersistedState, role: Role) -> bool:
        """Play one turn for ``role``. Returns True if a decision was executed."""
        agent = state.agent(role)
        runtime = self.runtimes[role]

        if should_skip_turn(agent, state):
            self._print(f"  {agent.name}: waiting ({agent.phase.value})")
            self.summary.record_skip(agent.name)
            record_round(agent)
            self._advance_phase(state, agent)
            return False

        actions = get_available_actions(agent.phase, role)
        if agent.phase in GOVERNANCE_PHASES:
            self._governance_lifecycle(state, agent, runtime, actions)

        # After the lifecycle, which may have created voting power
        actions = filter_by_holdings(
            actions,
            agent,
            state,
            self.queries.has_galactic(agent.address),
        )

        if is_governance_round(agent, self.config.loop.governance_every):
            self._print(f"  {agent.name}: governance round")
            actions = restrict_to_governance(actions)

        view = self._build_view(state, agent)
        actions = filter_by_world(
            actions,
            state,
            view.planets,
            view.templates,
            view.reactor,
            view.proposals,
            self.queries.current_epoch(),
            agent.voted_proposal_ids,
        )
        if not actions:
            self._print(f"  {agent.name}: no action possible ({agent.phase.value})")
            self.summary.record_skip(agent.name)
            record_round(agent)
            self._advance_phase(state, agent)
            return False

        return self._decide_and_execute(state, agent, runtime, view, actions)

    def _build_view(self, state: PersistedState, agent: AgentState) -> PromptView:
        other = state.other(agent)
        return PromptView(
            state=state,
            agent_state=agent,
            rival_name=other.name,
            own=self.queries.fleet(agent.address),
            rival=self.queries.fleet(other.address),
            planets=self.queries.planets(state.planet_ids),
            templates=self.queries.mission_templates(state.mission_template_ids),
            proposals=self.queries.proposals(state.proposal_ids),
            galactic_balance=self.queries.galactic_balance(agent.address),
            reactor=self.queries.reactor(state.shared_objects.reactor_id),
        )

    def _decide_and_execute(
        self,
        state: PersistedState,
        agent: AgentState,
        runtime: AgentRuntime,
        view: PromptView,
        actions: frozenset[ActionId],
    ) -> bool:
        other = state.other(agent)
        system_prompt = build_system_prompt(
            runtime.profile,
            other.name,
            other.address,
            agent.phase,
            phase_objectives(agent.phase, agent.role),
            ordered(actions),
        )
        user_prompt = build_user_prompt(view)
        temperature = phase_temperature(agent.phase, runtime.profile.temperature)

        try:
            result = self.decision_maker.decide(
                system_prompt, user_prompt, actions, view.known_ids(), temperature
            )
        except RivalsError as e:
            # The round is not counted; the agent retries the same phase
            self._print(f"  {agent.name}: DECISION FAILED: {e.message[:100]}")
            self._record_error(e, agent.name)
            self.summary.record_error(e.code.value, agent.name)
            self.event_logger.log("decision_failed", {"agent": agent.name, **e.to_dict()})
            if isinstance(e, InvalidDecision):
                self._log_activity(
                    agent,
                    str(e.details.get("action", "unknown")),
                    f"Rejected: {e.message[:200]}",
                    success=False,
                )
            return False

        decision = result.decision
        tokens = int(result.usage.get("total_tokens", 0) or 0)
        self.summary.record_llm_usage(tokens, result.cost, agent.name)
        self._print(f"  {agent.name} -> {decision.action_id.value}: {decision.reasoning[:100]}")

        success = self._execute(state, agent, runtime, decision, decision.reasoning)
        self.event_logger.log("turn", {
            "agent": agent.name,
            "phase": agent.phase.value,
            "action": decision.action_id.value,
            "success": success,
            "tokens": tokens,
            "cost": result.cost,
        })
        record_round(agent)
        self._advance_phase(state, agent)
        return True

    def _execute(
        self,
        state: PersistedState,
        agent: AgentState,
        runtime: AgentRuntime,
        decision: ActionParams,
        reasoning: str,
    ) -> bool:
        """Submit one decision and record it. Returns True on success."""
        action = decision.action_id.value
        try:
            outcome = runtime.executor.execute(decision, state, agent)
        except RivalsError as e:
            self._print(f"    FAILED: {e.message[:100]}")
            self._record_error(e, agent.name)
            self.summary.record_action(action, success=False, agent=agent.name)
            digest = e.digest if isinstance(e, TransactionFailure) else None
            self._log_activity(
                agent,
                action,
                f"Failed: {e.message[:200]}",
                reasoning,
                digest,
                success=False,
                details={"params": decision.model_dump(mode="json"), "error": e.to_dict()},
            )
            return False

        self._print(f"    {outcome.description} ({outcome.digest[:12]})")
        self.summary.record_action(action, success=True, agent=agent.name)
        self._log_activity(
            agent,
            action,
            outcome.description,
            reasoning,
            outcome.digest,
            details={"params": decision.model_dump(mode="json")},
        )
        return True

    # --- governance lifecycle ------------------------------------------------

    def _governance_lifecycle(
        self,
        state: PersistedState,
        agent: AgentState,
        runtime: AgentRuntime,
        actions: frozenset[ActionId],
    ) -> None:
        """Create voting power, vote, finalize and execute without asking the LLM."""
        if not agent.voting_power_id and ActionId.CREATE_VOTING_POWER in actions:
            self._auto(state, agent, runtime, CreateVotingPowerParams(), "Voting power is required to vote")

        if not state.proposal_ids:
            return

        if agent.voting_power_id:
            epoch = self.queries.current_epoch()
            for proposal in votable(self.queries.proposals(state.proposal_ids), epoch, agent.voted_proposal_ids):
                params = CastVoteParams(proposal_id=proposal.id, support=True)
                if not self._auto(state, agent, runtime, params, "Supporting open proposal"):
                    # A rejected vote is usually a duplicate; never retry it
                    agent.record_vote(proposal.id)

        epoch = self.queries.current_epoch()
        for proposal in finalizable(self.queries.proposals(state.proposal_ids), epoch):
            self._auto(
                state, agent, runtime,
                FinalizeProposalParams(proposal_id=proposal.id),
                "Voting period has ended",
            )

        epoch = self.queries.current_epoch()
        for proposal in executable(self.queries.proposals(state.proposal_ids), epoch):
            self._auto(
                state, agent, runtime,
                ExecuteProposalParams(proposal_id=proposal.id),
                "Proposal passed and its delay has elapsed",
            )

    def _auto(
        self,
        state: PersistedState,
        agent: AgentState,
        runtime: AgentRuntime,
        params: ActionParams,
        reasoning: str,
    ) -> bool:
        self._print(f"  {agent.name} [auto] -> {params.action_id.value}")
        success = self._execute(state, agent, runtime, params, f"[auto] {reasoning}")
        self.event_logger.log("auto_action", {
            "agent": agent.name,
            "action": params.action_id.value,
            "success": success,
        })
        delay = self.config.loop.auto_action_delay_seconds
        if delay:
            self._sleep(delay)
        return success

    # --- phase bookkeeping ---------------------------------------------------

    def _advance_phase(self, state: PersistedState, agent: AgentState) -> None:
        self.discovery.sync_owned(agent)
        next_phase = waiting_advance(agent, state) or check_transition(agent, OwnCounts.of(agent), state)
        if next_phase is None:
            return
        previous = agent.phase
        apply_transition(agent, next_phase)
        message = f"{agent.name}: {previous.value} -> {next_phase.value}"
        self._print(f"  [PHASE] {message}")
        logger.info("Phase transition %s", message)
        self.summary.add_highlight(message)
        self.event_logger.log("phase_transition", {
            "agent": agent.name,
            "from": previous.value,
            "to": next_phase.value,
            "total_rounds": agent.total_rounds,
        })
        self._log_activity(agent, "phase_transition", f"Advanced from {previous.value} to {next_phase.value}")

    def _log_activity(
        self,
        agent: AgentState,
        action: str,
        description: str,
        reasoning: str = "",
        digest: str | None = None,
        success: bool = True,
        details: dict[str, Any] | None = None,
    ) -> None:
        entry = ActivityEntry(
            agent=agent.name,
            phase=agent.phase.value,
            action=action,
            description=description,
            reasoning=reasoning,
            tx_digest=digest,
            success=success,
            details=details,
        )
        try:
            self.activity.append(entry)
        except OSError as e:
            logger.warning("Could not write activity feed: %s", e)

    def _record_error(self, error: RivalsError, agent_name: str) -> None:
        self.error_stats.record_error(error.code.value, agent_name, error.message)

    # --- loop ------------------------------------------------------------------

    def run_round(self, state: PersistedState, round_number: int) -> None:
        """One turn for each agent, primary first."""
        self._print(f"--- Round {round_number} ---")
        self.summary.record_round()
        for role in TURN_ORDER:
            if not self._running:
                return
            agent = state.agent(role)
            try:
                acted = self.run_turn(state, role)
            except RivalsError as e:
                logger.warning("%s turn aborted: %s", agent.name, e.message)
                self._print(f"  {agent.name}: ERROR: {e.message[:100]}")
                self._record_error(e, agent.name)
                self.summary.record_error(e.code.value, agent.name)
                acted = False
            self.repository.save(state)

            if acted and self._running:
                delay = (
                    self.config.loop.governance_delay_seconds
                    if agent.phase in GOVERNANCE_PHASES
                    else self.config.loop.agent_delay_seconds
                )
                if delay:
                    self._sleep(delay)

    def stop(self) -> None:
        """Finish the current turn, then shut down."""
        self._running = False

    def _handle_sigint(self, signum: int, frame: Any) -> None:
        self._print("\nShutting down after the current turn...")
        self.stop()

    def run(self, max_rounds: int | None = None) -> PersistedState:
        """Run until ``max_rounds`` (0 or None: until interrupted).

        Returns:
            The final persisted state.
        """
        if max_rounds is None:
            max_rounds = self.config.loop.max_rounds
        state = self.state or self.setup()

        previous_handler = None
        if threading.current_thread() is threading.main_thread():
            previous_handler = signal.signal(signal.SIGINT, self._handle_sigint)

        self._running = True
        round_number = 0
        try:
            while self._running:
                if max_rounds and round_number >= max_rounds:
                    break
                round_number += 1
                self.run_round(state, round_number)
        finally:
            self._running = False
            if previous_handler is not None:
                signal.signal(signal.SIGINT, previous_handler)
            self.repository.save(state)

        self._finish(state)
        return state

    # --- summaries ---------------------------------------------------------------

    def _finish(self, state: PersistedState) -> None:
        summary = self.summary.finalize()
        summary["phases"] = {a.name: a.phase.value for a in (state.primary, state.rival)}
        summary["planets"] = len(state.planet_ids)
        summary["mission_templates"] = len(state.mission_template_ids)
        summary["proposals"] = len(state.proposal_ids)
        path = self.event_logger.write_summary(summary)
        self.event_logger.log("session_end", {"rounds": summary["rounds"]})
        self._print_final_summary(summary, str(path))

    def _print_final_summary(self, summary: dict[str, Any], summary_path: str) -> None:
        if not self.verbose:
            return
        print("=== Session Complete ===")
        print(f"Rounds: {summary['rounds']}")
        print(f"Actions: {summary['actions_executed']} ({summary['errors']} errors)")
        for name, phase in summary["phases"].items():
            print(f"  {name}: {phase}")
        print(f"Planets: {summary['planets']}, templates: {summary['mission_templates']}, "
              f"proposals: {summary['proposals']}")
        if summary["total_llm_tokens"]:
            print(f"LLM: {summary['total_llm_tokens']:,} tokens, ${summary['total_llm_cost']:.4f}")
        print(f"Summary: {summary_path}")
        self._print_error_summary()

    def _print_error_summary(self) -> None:
        stats = self.error_stats
        if stats.total_errors == 0:
            return

        print("\n" + "=" * 60)
        print("SESSION ERROR SUMMARY")
        print("=" * 60)
        print(f"Total errors: {stats.total_errors}")

        if stats.by_type:
            print("\nBy type:")
            for error_type, count in sorted(stats.by_type.items(), key=lambda x: -x[1]):
                pct = count * 100 / stats.total_errors
                print(f"  {error_type}: {count} ({pct:.0f}%)")

        if stats.by_agent:
            print("\nBy agent:")
            for agent_id, count in sorted(stats.by_agent.items(), key=lambda x: -x[1]):
                print(f"  {agent_id}: {count}")

        if stats.recent_errors:
            print("\nMost recent error:")
            recent = stats.recent_errors[-1]
            print(f"  Type: {recent.error_type}")
            print(f"  Agent: {recent.agent_id}")
            print(f"  Message: {recent.message[:200]}")
            if recent.suggestion:
                print(f"  Suggestion: {recent.suggestion}")

        print("=" * 60)
