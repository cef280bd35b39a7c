"""Generation pipeline for AI charts, smart insights and the Epesi Agent.

One prompt runs through a fixed chain::

    PromptReceived -> ContextBuilt -> GenerationRequested
        -> GenerationSucceeded | GenerationFailed (retried once in the gateway, then Abort)
        -> PayloadReconciled -> InsightsSynthesized -> BlockPersisted -> HistoryRecorded

Nothing is written until generation and reconciliation have succeeded.
All writes of one turn share a single transaction that is committed at
the end, and rolled back on any failure, so an aborted turn leaves no
block, chat turn or message behind.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy.orm import Session

from src.db.models import Block, BlockChatTurn, DataSourceType
from src.errors.domain import DomainError, ValidationError
from src.orchestrator.models.chart import (
    ChartCandidate,
    ChartPayload,
    DataSourceAnalysis,
    GeneratedChart,
    GenerationMode,
    InsightCategory,
    PriorTurn,
)
from src.orchestrator.nl_engine.context_builder import RelationContext, build_context
from src.orchestrator.nl_engine.gateway import ChartGenerationGateway
from src.orchestrator.nl_engine.insights import synthesize
from src.orchestrator.nl_engine.reconciler import parse_type_switch, reconcile, reconcile_candidate
from src.services.block_position_service import BlockSource
from src.services.block_service import UNTITLED_BLOCK, BlockService, block_chart
from src.services.conversation_service import ConversationService
from src.services.dashboard_service import DashboardService
from src.services.data_normalizer import Relation, normalize
from src.services.data_source_service import DataSourceService, relation_from_source

logger = logging.getLogger(__name__)

MIN_INSIGHTS = 1
MAX_INSIGHTS = 8
AGENT_CHART_COUNT = 4
AGENT_SOURCE_LIMIT = 2
ANALYSIS_ITEM_LIMIT = 5

GREETING_PATTERN = re.compile(
    r"^(hi|hello|hey|good morning|good afternoon|good evening|what's up|how are you|what can you do|help)$",
    re.IGNORECASE,
)

GREETING_REPLY = (
    "Hello! I'm Epesi Agent, your AI analytics assistant. I can help you:\n\n"
    "• Analyze your data and generate insights\n"
    "• Create various types of charts and visualizations\n"
    "• Answer questions about your data\n"
    "• Generate comprehensive reports\n\n"
    "What would you like to explore today?"
)

SAMPLE_SALES_DATA = Relation(
    fields=("product_name", "sales_value", "quarter", "region", "sales_rep"),
    records=(
        {"product_name": "Product A", "sales_value": 15000, "quarter": "Q1", "region": "North", "sales_rep": "John Smith"},
        {"product_name": "Product B", "sales_value": 22000, "quarter": "Q1", "region": "South", "sales_rep": "Emily Johnson"},
        {"product_name": "Product C", "sales_value": 18000, "quarter": "Q2", "region": "East", "sales_rep": "Michael Williams"},
        {"product_name": "Product A", "sales_value": 25000, "quarter": "Q2", "region": "West", "sales_rep": "Jessica Brown"},
        {"product_name": "Product B", "sales_value": 31000, "quarter": "Q3", "region": "North", "sales_rep": "David Jones"},
    ),
)
SAMPLE_SALES_NAME = "Sample Sales Data"


class TurnState(str, Enum):
    """Stages of one generation turn."""

    prompt_received = "PromptReceived"
    context_built = "ContextBuilt"
    generation_requested = "GenerationRequested"
    generation_succeeded = "GenerationSucceeded"
    generation_failed = "GenerationFailed"
    payload_reconciled = "PayloadReconciled"
    insights_synthesized = "InsightsSynthesized"
    block_persisted = "BlockPersisted"
    history_recorded = "HistoryRecorded"
    aborted = "Abort"


@dataclass
class ChartTurnResult:
    """Outcome of a per-block chart generation turn."""

    block: Block
    chart: ChartPayload
    chat_turn: BlockChatTurn
    reused_series: bool = False


@dataclass
class InsightBatch:
    """Smart insights proposed for a dashboard. Never persisted here."""

    insights: list[GeneratedChart]
    requested: int

    @property
    def generated(self) -> int:
        return len(self.insights)


@dataclass
class AgentChatResult:
    """Epesi Agent reply as returned to the client."""

    conversation_id: str
    response: str
    charts: list[ChartPayload] = field(default_factory=list)


@dataclass
class SyntheticDataResult:
    """A generated dataset, optionally stored as a data source."""

    relation: Relation
    data_source_id: str | None = None


def _with_insights(chart: ChartPayload, question: str, fallback: str = "") -> ChartPayload:
    """Attach synthesized insights, falling back to the description."""
    bullets = synthesize(chart.series, question)
    if not bullets and fallback:
        bullets = [fallback]
    return chart.model_copy(update={"insights": bullets})


class GenerationPipeline:
    """Runs prompts through generation and persists the results.

    Args:
        db: Request-scoped session. The pipeline commits it on success and
            rolls it back on failure.
        gateway: Validated access to the generation backend.
    """

    def __init__(self, db: Session, gateway: ChartGenerationGateway) -> None:
        self.db = db
        self.gateway = gateway
        self.blocks = BlockService(db)
        self.conversations = ConversationService(db)
        self.dashboards = DashboardService(db)
        self.data_sources = DataSourceService(db)
        self.states: list[TurnState] = []

    def _advance(self, state: TurnState) -> None:
        self.states.append(state)
        logger.debug("Generation turn -> %s", state.value)

    def _relations(self, dashboard_id: str, limit: int | None = None) -> list[RelationContext]:
        org_id = self.dashboards.organization_id_for_dashboard(dashboard_id)
        return [
            RelationContext(name=name, relation=relation)
            for name, relation in self.data_sources.get_data_sources_by_org(org_id, limit=limit)
        ]

    async def generate_block_chart(
        self,
        prompt: str,
        user_id: str | None = None,
        block_id: str | None = None,
        dashboard_id: str | None = None,
        chart_type: str | None = None,
    ) -> ChartTurnResult:
        """Generate a chart for a block, or for a new AI block.

        A follow-up that only asks for another chart type ("make it a pie
        chart") reuses the block's previous series without a backend call.

        Args:
            prompt: The user's request.
            user_id: Requesting user.
            block_id: Existing block to update.
            dashboard_id: Dashboard for a new block when ``block_id`` is omitted.
            chart_type: Explicit chart type override.

        Returns:
            ChartTurnResult with the persisted block and chat turn.

        Raises:
            GenerationBackendError: Backend unavailable after retry.
            GenerationContractViolation: Unusable output after retry.
            BlockNotFoundError / DashboardNotFoundError: Unknown target.
        """
        self.states = []
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValidationError("Prompt is required")
        if block_id is None and dashboard_id is None:
            raise ValidationError("Pass block_id or dashboard_id")
        self._advance(TurnState.prompt_received)

        block = self.blocks.get_block(block_id) if block_id else None
        if block is not None:
            if dashboard_id and dashboard_id != block.dashboard_id:
                raise ValidationError("Block does not belong to the given dashboard")
            dashboard_id = block.dashboard_id
        else:
            self.dashboards.get_dashboard(dashboard_id)

        prior_turns: list[PriorTurn] = (
            self.conversations.get_recent_context(block_id=block.id) if block else []
        )

        try:
            chart, description, reused = await self._chart_for_prompt(
                prompt, block, dashboard_id, prior_turns, chart_type
            )
            return self._persist_chart_turn(
                prompt, chart, description, block, dashboard_id, user_id, reused
            )
        except Exception:
            self._advance(TurnState.aborted)
            self.db.rollback()
            raise

    async def _chart_for_prompt(
        self,
        prompt: str,
        block: Block | None,
        dashboard_id: str,
        prior_turns: list[PriorTurn],
        chart_type: str | None,
    ) -> tuple[ChartPayload, str, bool]:
        switch_to = parse_type_switch(prompt)
        if switch_to is not None and block is not None:
            previous = block_chart(block)
            if previous is None and prior_turns:
                previous = prior_turns[0].chart
            if previous is not None and previous.series:
                self._advance(TurnState.context_built)
                chart = reconcile(previous, target_type=chart_type or switch_to)
                self._advance(TurnState.payload_reconciled)
                logger.info(
                    "Switched block %s chart to %s without regeneration",
                    block.id, chart.chart_type.value,
                )
                if not chart.insights:
                    chart = _with_insights(chart, prompt)
                self._advance(TurnState.insights_synthesized)
                return chart, block.description or "", True

        package = build_context(
            relations=self._relations(dashboard_id),
            prior_turns=prior_turns,
            existing_titles=self.blocks.existing_titles(dashboard_id),
            user_prompt=prompt,
            mode=GenerationMode.chart,
        )
        self._advance(TurnState.context_built)

        self._advance(TurnState.generation_requested)
        try:
            candidates = await self.gateway.generate(package, expected_count=1)
        except DomainError:
            self._advance(TurnState.generation_failed)
            raise
        self._advance(TurnState.generation_succeeded)

        candidate = candidates[0]
        chart = reconcile_candidate(candidate, target_type=chart_type or switch_to)
        self._advance(TurnState.payload_reconciled)
        chart = _with_insights(chart, prompt, fallback=candidate.description)
        self._advance(TurnState.insights_synthesized)
        return chart, candidate.description, False

    def _persist_chart_turn(
        self,
        prompt: str,
        chart: ChartPayload,
        description: str,
        block: Block | None,
        dashboard_id: str,
        user_id: str | None,
        reused: bool,
    ) -> ChartTurnResult:
        if block is None:
            block = self.blocks.create_block(
                dashboard_id,
                title=(chart.title or prompt)[:255],
                description=description or None,
                source=BlockSource.agent,
                user_id=user_id,
            )
            self.blocks.set_chart_content(block, chart, prompt)
        else:
            self.blocks.set_chart_content(block, chart, prompt)
            if block.title == UNTITLED_BLOCK and chart.title:
                block.title = chart.title[:255]
            if description and not block.description:
                block.description = description
        self._advance(TurnState.block_persisted)

        turn = self.conversations.record_chat_turn(block.id, prompt, chart)
        self.db.commit()
        self._advance(TurnState.history_recorded)
        logger.info(
            "Chart turn complete for block %s (%d points, %s)",
            block.id, len(chart.series), chart.chart_type.value,
        )
        return ChartTurnResult(block=block, chart=chart, chat_turn=turn, reused_series=reused)

    async def generate_insights(
        self,
        dashboard_id: str,
        count: int,
        prompt: str | None = None,
    ) -> InsightBatch:
        """Propose up to ``count`` smart insights for a dashboard.

        ``count`` is clamped to [1, 8]. Fewer insights than requested is a
        valid outcome. Nothing is persisted.
        """
        requested = max(MIN_INSIGHTS, min(count, MAX_INSIGHTS))
        self.dashboards.get_dashboard(dashboard_id)

        user_prompt = (prompt or "").strip() or (
            f"Suggest {requested} smart insights that reveal the most important "
            "patterns, comparisons and anomalies in this data."
        )
        package = build_context(
            relations=self._relations(dashboard_id),
            prior_turns=[],
            existing_titles=self.blocks.existing_titles(dashboard_id),
            user_prompt=user_prompt,
            mode=GenerationMode.insights,
            expected_count=requested,
        )
        candidates = await self.gateway.generate(package, expected_count=requested)

        insights = [self._generated_chart(c) for c in candidates]
        logger.info(
            "Generated %d of %d requested insights for dashboard %s",
            len(insights), requested, dashboard_id,
        )
        return InsightBatch(insights=insights, requested=requested)

    @staticmethod
    def _generated_chart(candidate: ChartCandidate) -> GeneratedChart:
        chart = _with_insights(
            reconcile_candidate(candidate), candidate.title, fallback=candidate.description
        )
        try:
            category = InsightCategory(candidate.category) if candidate.category else None
        except ValueError:
            category = None
        return GeneratedChart(
            question=candidate.title,
            description=candidate.description,
            category=category,
            chart=chart,
        )

    async def agent_chat(
        self,
        dashboard_id: str,
        prompt: str,
        user_id: str | None = None,
        conversation_id: str | None = None,
    ) -> AgentChatResult:
        """Answer an Epesi Agent prompt and record both messages.

        Greetings get a fixed capabilities reply without a backend call.
        The conversation (when new) and both messages are written only
        after the reply is available.
        """
        self.states = []
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValidationError("Prompt is required")
        self.dashboards.get_dashboard(dashboard_id)
        self._advance(TurnState.prompt_received)

        prior_turns: list[PriorTurn] = []
        if conversation_id:
            conversation = self.conversations.get_or_create_conversation(
                dashboard_id, conversation_id
            )
            prior_turns = self.conversations.get_recent_context(conversation_id=conversation.id)

        try:
            if GREETING_PATTERN.match(prompt):
                response, charts = GREETING_REPLY, []
            else:
                response, charts = await self._agent_reply(dashboard_id, prompt, prior_turns)

            conversation = self.conversations.get_or_create_conversation(
                dashboard_id, conversation_id, first_prompt=prompt, user_id=user_id
            )
            self.conversations.append_message(conversation.id, "user", prompt)
            self.conversations.append_message(
                conversation.id,
                "assistant",
                response,
                charts=[c.model_dump(mode="json") for c in charts],
            )
            self.db.commit()
            self._advance(TurnState.history_recorded)
        except Exception:
            self._advance(TurnState.aborted)
            self.db.rollback()
            raise

        return AgentChatResult(conversation_id=conversation.id, response=response, charts=charts)

    async def _agent_reply(
        self,
        dashboard_id: str,
        prompt: str,
        prior_turns: list[PriorTurn],
    ) -> tuple[str, list[ChartPayload]]:
        relations = [
            r for r in self._relations(dashboard_id, limit=AGENT_SOURCE_LIMIT) if r.relation.row_count
        ]
        if not relations:
            relations = [RelationContext(name=SAMPLE_SALES_NAME, relation=SAMPLE_SALES_DATA)]

        package = build_context(
            relations=relations,
            prior_turns=prior_turns,
            existing_titles=[],
            user_prompt=prompt,
            mode=GenerationMode.agent,
            expected_count=AGENT_CHART_COUNT,
        )
        self._advance(TurnState.context_built)
        self._advance(TurnState.generation_requested)
        try:
            reply = await self.gateway.generate_agent_reply(package)
        except DomainError:
            self._advance(TurnState.generation_failed)
            raise
        self._advance(TurnState.generation_succeeded)

        charts = [
            _with_insights(reconcile_candidate(c), c.title, fallback=c.description)
            for c in reply.charts
        ]
        self._advance(TurnState.payload_reconciled)
        return reply.response, charts

    async def analyze_data_source(self, data_source_id: str) -> DataSourceAnalysis:
        """Ask for a first-read analysis of one data source. Nothing is persisted.

        Raises:
            DataSourceNotFoundError: If the data source does not exist.
            GenerationBackendError: Backend failure after retry.
            GenerationContractViolation: No usable summary after retry.
        """
        source = self.data_sources.get_data_source(data_source_id)
        package = build_context(
            relations=[RelationContext(name=source.name, relation=relation_from_source(source))],
            prior_turns=[],
            existing_titles=[],
            user_prompt=(
                f"Analyze the data source \"{source.name}\": summarize what it contains, "
                "list its key findings and suggest questions worth charting."
            ),
            mode=GenerationMode.analysis,
            expected_count=ANALYSIS_ITEM_LIMIT,
        )
        analysis = await self.gateway.generate_analysis(package)
        logger.info(
            "Analyzed data source %s: %d findings, %d suggested questions",
            data_source_id, len(analysis.key_findings), len(analysis.suggested_questions),
        )
        return analysis

    async def generate_synthetic_data(
        self,
        prompt: str,
        organization_id: str | None = None,
        name: str | None = None,
        user_id: str | None = None,
    ) -> SyntheticDataResult:
        """Generate a realistic dataset and optionally store it.

        The records go through the normalizer like any upload. With an
        ``organization_id`` they are stored as a ``generated`` data source.
        """
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValidationError("Prompt is required")
        if organization_id:
            self.dashboards.get_organization(organization_id)

        package = build_context(
            relations=[],
            prior_turns=[],
            existing_titles=[],
            user_prompt=prompt,
            mode=GenerationMode.synthetic_data,
        )
        records = await self.gateway.generate_records(package)
        relation = normalize(records)
        logger.info("Generated %d synthetic records (%d fields)", relation.row_count, len(relation.fields))

        if not organization_id:
            return SyntheticDataResult(relation=relation)

        try:
            source = self.data_sources.create_data_source(
                organization_id,
                name=(name or "").strip() or f"Generated: {prompt[:60]}",
                raw=relation.to_records(),
                source_type=DataSourceType.generated,
                user_id=user_id,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return SyntheticDataResult(relation=relation, data_source_id=source.id)
