"""Polling orchestrator: assigns board cards to domain agents.

One ``poll()`` cycle:

1. compute free slots (``max_concurrent_agents`` minus running tasks)
2. fetch the todo cards and parse them into Tasks
3. drop tasks already running, already processed, or with no agent
4. stable-sort by priority (urgent, high, medium, low)
5. dispatch the first ``free slots`` tasks, one after the other
   (or concurrently with ``parallel_dispatch``)

Each dispatched card moves to in_progress, runs through its agent, then to
review/done on success or to the failure stage with a diagnostic comment.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from ..errors import DispatchError, ErrorTranslator, MarketingAgentsError, TaskInterruptedError
from ..utils.error_handling import ErrorContext
from ..utils.rich_logging import ContextLogger
from .agent import MarketingAgent
from .config import OrchestratorConfig, SystemConfig
from .deliverables import DeliverableProducer
from .prompt_generator import GeneratedPrompt, PromptGenerator
from .scheduler import PollScheduler
from .task import (
    AgentResult,
    CardCreationRequest,
    CardCreationResult,
    Domain,
    ResultStatus,
    Stage,
    Task,
)

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE_CHARS = 500
NEXT_STEPS_CHECKLIST = "Next steps"
DEFAULT_NEXT_STEPS = ["Review the deliverable", "Approve or request changes"]


class ProcessedSet:
    """Bounded, insertion-ordered set of card ids; oldest entries evicted first."""

    def __init__(self, capacity: int = 500):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._items: "OrderedDict[str, None]" = OrderedDict()

    def add(self, item: str) -> None:
        if item in self._items:
            return
        self._items[item] = None
        while len(self._items) > self.capacity:
            self._items.popitem(last=False)

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)


@dataclass
class RunningTask:
    """In-flight bookkeeping for one dispatched task."""
    task: Task
    agent: MarketingAgent
    started_at: float


@dataclass(frozen=True)
class RunningTaskStatus:
    task_title: str
    card_id: str
    agent: str
    running_for: float


class Orchestrator:
    """Owns the running map, the processed set and the poll scheduler.

    ``poll()`` is not reentrant; the scheduler serializes cycles.
    """

    def __init__(
        self,
        config: OrchestratorConfig,
        board,
        agents: Dict[Domain, MarketingAgent],
        producer: DeliverableProducer,
        card_creator=None,
        prompt_generator: Optional[PromptGenerator] = None,
        translator: Optional[ErrorTranslator] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.board = board
        self.agents = agents
        self.producer = producer
        self.card_creator = card_creator
        self.prompt_generator = prompt_generator
        self.translator = translator or ErrorTranslator()
        self._clock = clock

        self.running: Dict[str, RunningTask] = {}
        self.processed = ProcessedSet(config.processed_history)
        self._unroutable_reported = ProcessedSet(config.processed_history)
        self.scheduler = PollScheduler(config.poll_interval, self.poll)
        self.logger = ContextLogger(logger, "orchestrator")

    @classmethod
    def from_config(cls, config: SystemConfig) -> "Orchestrator":
        """Wire every collaborator from the loaded configuration."""
        from ..integrations.github import GitHubClient
        from ..integrations.trello import CardCreator, TrelloClient
        from ..integrations.umami import UmamiClient
        from ..llm import create_backend
        from ..safeguards.rate_limiter import RateLimiter
        from .agents_catalog import AGENT_MAP
        from .analytics_context import AnalyticsService

        rate_limiter = RateLimiter(config.llm.rate_limit_burst, config.llm.rate_limit_per_second)
        backend = create_backend(config.llm)
        board = TrelloClient(config.trello)
        card_creator = CardCreator(board)
        analytics = AnalyticsService(UmamiClient(config.umami)) if config.umami else None
        producer = DeliverableProducer(
            GitHubClient(config.github),
            output_dir=config.orchestrator.output_dir,
            branch_prefix=config.github.branch_prefix,
            labels=config.github.labels,
        )

        agents = {
            domain: MarketingAgent(
                AGENT_MAP[domain],
                backend,
                rate_limiter,
                card_creator=card_creator,
                analytics=analytics,
                model=config.llm.model,
                max_tokens=config.llm.max_tokens,
                temperature=config.llm.temperature,
                max_delegations=config.orchestrator.max_delegations_per_task,
                max_delegation_depth=config.orchestrator.max_delegation_depth,
            )
            for domain in config.orchestrator.enabled_domains
        }

        return cls(
            config.orchestrator,
            board,
            agents,
            producer,
            card_creator=card_creator,
            prompt_generator=PromptGenerator(backend, rate_limiter, model=config.llm.model),
        )

    # ----- lifecycle -----

    async def start(self) -> None:
        """Connect to the board, poll once, then keep polling on the interval."""
        self.logger.info("🚀 Starting marketing agents orchestrator")
        self.logger.info(f"   Agents loaded: {len(self.agents)}")
        self.logger.info(f"   Max concurrent: {self.config.max_concurrent_agents}")
        self.logger.info(f"   Poll interval: {self.config.poll_interval:g}s")

        await self.board.initialize()
        self.logger.info("Board connected")

        try:
            await self.poll()
        except Exception as e:
            self.logger.error(f"[poll] Error: {str(e)[:MAX_ERROR_MESSAGE_CHARS]}")

        self.scheduler.start()
        self.logger.info("Orchestrator running. Waiting for tasks...")

    async def stop(self) -> None:
        await self.scheduler.stop()
        self.logger.info("Orchestrator stopped")

    @property
    def is_running(self) -> bool:
        return self.scheduler.running

    # ----- polling -----

    async def poll(self) -> List[Task]:
        """Run one cycle; returns the tasks dispatched in it."""
        free_slots = self.config.max_concurrent_agents - len(self.running)
        if free_slots <= 0:
            self.logger.info("All agent slots occupied, skipping poll")
            return []

        cards = await self.board.get_available_tasks()
        self.logger.debug(f"Found {len(cards)} card(s) in Todo")

        candidates = []
        for card in cards:
            task = self.board.parse_card(card)
            if task.id in self.running or task.card_id in self.processed:
                continue
            if task.domain not in self.agents:
                self._report_unroutable(task)
                continue
            candidates.append(task)

        # sorted() is stable: equal priorities keep board order
        candidates = sorted(candidates, key=lambda t: t.priority.rank)
        selected = self.select_batch(candidates, free_slots)
        if not selected:
            return []

        self.logger.info(f"Dispatching {len(selected)} task(s) ({free_slots} free slot(s))")
        if self.config.parallel_dispatch:
            await asyncio.gather(*(self._process_task(task) for task in selected))
        else:
            for task in selected:
                await self._process_task(task)
        return selected

    @staticmethod
    def select_batch(candidates: Sequence[Task], free_slots: int) -> List[Task]:
        return list(candidates[:max(0, free_slots)])

    def _report_unroutable(self, task: Task) -> None:
        if task.card_id in self._unroutable_reported:
            return
        self._unroutable_reported.add(task.card_id)
        self.logger.warning(
            f"No agent for domain '{task.domain.value}' (card {task.card_id}); left for a human"
        )

    def _agent_for(self, task: Task) -> MarketingAgent:
        agent = self.agents.get(task.domain)
        if agent is None:
            raise DispatchError(f"No agent for domain: {task.domain.value}")
        return agent

    async def _process_task(self, task: Task) -> None:
        """Run one task end to end. Failures land on the card.

        Only cancellation propagates, after the card is reported and moved to
        the failure stage.
        """
        agent = self._agent_for(task)
        started = self._clock()
        self.running[task.id] = RunningTask(task=task, agent=agent, started_at=started)
        self.logger.task_started(task.card_id, task.title, agent.name)
        try:
            await self.board.move_card(task.card_id, Stage.IN_PROGRESS)
            self.logger.phase_change("executing_llm")
            result = await agent.execute(task)
            await self._handle_result(task, result)
            self.processed.add(task.card_id)
            self.logger.task_completed(self._clock() - started, result.status.value)
        except asyncio.CancelledError:
            await self._handle_error(task, self._interrupted(task))
            raise
        except Exception as e:
            await self._handle_error(task, e)
        finally:
            self.running.pop(task.id, None)

    @staticmethod
    def _interrupted(task: Task) -> TaskInterruptedError:
        return TaskInterruptedError(f"Orchestrator stopped while processing \"{task.title}\"")

    async def _handle_result(self, task: Task, result: AgentResult) -> str:
        """Produce the deliverable, report it on the card, move the card on."""
        self.logger.phase_change("producing")
        location = await self.producer.produce(result.deliverable)

        self.logger.phase_change("updating_board")
        with ErrorContext("posting result comment", raise_on_error=False, logger_instance=self.logger):
            await self.board.add_comment(task.card_id, f"{result.comment}\n\n📦 Deliverable: {location}")
        with ErrorContext("adding next steps checklist", raise_on_error=False, logger_instance=self.logger):
            await self.board.add_checklist(
                task.card_id, NEXT_STEPS_CHECKLIST, result.next_steps or DEFAULT_NEXT_STEPS
            )

        target = Stage.REVIEW if result.status == ResultStatus.NEEDS_REVIEW else Stage.DONE
        await self.board.move_card(task.card_id, target)
        return location

    async def _handle_error(self, task: Task, error: Exception) -> None:
        """Comment and move are attempted independently; neither failure escalates."""
        message = str(error)[:MAX_ERROR_MESSAGE_CHARS]
        self.logger.phase_change("reporting_failure")
        self.logger.task_failed(f"\"{task.title}\": {type(error).__name__}: {message}")

        friendly = self.translator.translate(error)
        comment = self.translator.format_for_comment(friendly, message)

        with ErrorContext("posting failure comment", raise_on_error=False, logger_instance=self.logger):
            await self.board.add_comment(task.card_id, comment)
        with ErrorContext(
            f"moving card to {self.config.failure_stage.value}",
            raise_on_error=False,
            logger_instance=self.logger,
        ):
            await self.board.move_card(task.card_id, self.config.failure_stage)

    # ----- manual operations -----

    async def run_single(self, card_id: str) -> AgentResult:
        """Force one card through its agent, ignoring the poll filters.

        Failures get the same comment/move treatment, then re-raise.
        """
        await self.board.initialize()
        cards = await self.board.get_all_cards()
        card = next((c for c in cards if c.id == card_id), None)
        if card is None:
            raise DispatchError(f"Card not found: {card_id}")

        task = self.board.parse_card(card)
        agent = self._agent_for(task)
        self.logger.task_started(task.card_id, task.title, agent.name)
        started = self._clock()

        try:
            await self.board.move_card(task.card_id, Stage.IN_PROGRESS)
            result = await agent.execute(task)
            await self._handle_result(task, result)
        except asyncio.CancelledError:
            await self._handle_error(task, self._interrupted(task))
            raise
        except Exception as e:
            await self._handle_error(task, e)
            raise
        self.processed.add(task.card_id)
        self.logger.task_completed(self._clock() - started, result.status.value)
        return result

    def get_status(self) -> List[RunningTaskStatus]:
        now = self._clock()
        return [
            RunningTaskStatus(
                task_title=r.task.title,
                card_id=r.task.card_id,
                agent=r.agent.name,
                running_for=now - r.started_at,
            )
            for r in self.running.values()
        ]

    def _require(self, component, name: str):
        if component is None:
            raise MarketingAgentsError(f"Orchestrator was built without a {name}")
        return component

    async def create_card(self, request: CardCreationRequest) -> CardCreationResult:
        card_creator = self._require(self.card_creator, "card creator")
        await self.board.initialize()
        return await card_creator.create_from_request(request)

    async def generate_prompts(
        self,
        objective: str,
        context: Optional[Dict[str, str]] = None,
        target_domains: Optional[Sequence[Domain]] = None,
    ) -> List[GeneratedPrompt]:
        generator = self._require(self.prompt_generator, "prompt generator")
        return await generator.generate_from_objective(objective, context, target_domains)

    async def generate_and_create_cards(
        self,
        objective: str,
        context: Optional[Dict[str, str]] = None,
        target_domains: Optional[Sequence[Domain]] = None,
        parent_card_id: Optional[str] = None,
    ) -> Tuple[List[GeneratedPrompt], List[CardCreationResult]]:
        card_creator = self._require(self.card_creator, "card creator")
        await self.board.initialize()
        prompts = await self.generate_prompts(objective, context, target_domains)
        cards = await card_creator.create_from_prompts(prompts, parent_card_id)
        return prompts, cards

    async def generate_prompt_for_agent(
        self,
        domain: Domain,
        objective: str,
        context: Optional[Dict[str, str]] = None,
    ) -> GeneratedPrompt:
        generator = self._require(self.prompt_generator, "prompt generator")
        return await generator.generate_for_agent(domain, objective, context)

    async def create_cards_from_prompts(
        self,
        prompts: Sequence[GeneratedPrompt],
        parent_card_id: Optional[str] = None,
    ) -> List[CardCreationResult]:
        card_creator = self._require(self.card_creator, "card creator")
        await self.board.initialize()
        return await card_creator.create_from_prompts(list(prompts), parent_card_id)
