"""Service for dashboard blocks.

Block CRUD on top of BlockPositionService, which owns every write to
``position``. Chart data entering a block from any source (user edit,
agent chart, saved insight) is reconciled to the canonical ChartPayload
before it is stored.

Methods flush but do NOT call db.commit(); the caller commits.

Example:
    svc = BlockService(db)
    block = svc.create_block(dashboard_id, title="Revenue", source=BlockSource.agent)
    db.commit()
"""

import json
import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.db.models import Block, BlockType, Dashboard, utc_now_iso
from src.errors.domain import BlockNotFoundError, DashboardNotFoundError, ValidationError
from src.orchestrator.models.chart import ChartPayload
from src.orchestrator.nl_engine.insights import synthesize
from src.orchestrator.nl_engine.reconciler import reconcile
from src.services.block_position_service import BlockPositionService, BlockSource

logger = logging.getLogger(__name__)

UNTITLED_BLOCK = "Untitled Block"
MIN_BLOCK_SIZE = 1
MAX_BLOCK_SIZE = 12


def _validate_size(size: int) -> int:
    if not MIN_BLOCK_SIZE <= size <= MAX_BLOCK_SIZE:
        raise ValidationError(
            f"Block size must be between {MIN_BLOCK_SIZE} and {MAX_BLOCK_SIZE}, got {size}"
        )
    return size


def _validate_type(block_type: str) -> str:
    try:
        return BlockType(block_type).value
    except ValueError as e:
        allowed = ", ".join(t.value for t in BlockType)
        raise ValidationError(f"Invalid block type '{block_type}'. Use one of: {allowed}") from e


def _normalize_content(content: dict[str, Any] | None) -> dict[str, Any]:
    """Copy block content, reconciling any chart data it carries."""
    normalized = dict(content or {})
    if normalized.get("chart_data") is not None:
        normalized["chart_data"] = reconcile(normalized["chart_data"]).model_dump(mode="json")
    return normalized


def block_content(block: Block) -> dict[str, Any]:
    """Parse a block's stored content document."""
    try:
        content = json.loads(block.content_json or "{}")
    except json.JSONDecodeError as e:
        logger.warning("Block %s has unreadable content JSON: %s", block.id, e)
        return {}
    return content if isinstance(content, dict) else {}


def block_chart(block: Block) -> ChartPayload | None:
    """Return the block's current chart, or None if it has none."""
    chart_data = block_content(block).get("chart_data")
    if chart_data is None:
        return None
    return reconcile(chart_data)


def block_to_dict(block: Block) -> dict[str, Any]:
    """Serialize a block for API responses."""
    return {
        "id": block.id,
        "dashboard_id": block.dashboard_id,
        "title": block.title,
        "description": block.description,
        "type": block.type,
        "size": block.size,
        "content": block_content(block),
        "position": block.position,
        "created_by_id": block.created_by_id,
        "created_at": block.created_at,
        "updated_at": block.updated_at,
    }


class BlockService:
    """CRUD operations for dashboard blocks."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.positions = BlockPositionService(db)

    def list_blocks(self, dashboard_id: str) -> list[Block]:
        """Return a dashboard's blocks in display order."""
        if self.db.get(Dashboard, dashboard_id) is None:
            raise DashboardNotFoundError(dashboard_id)
        stmt = (
            select(Block)
            .where(Block.dashboard_id == dashboard_id)
            .order_by(Block.position)
        )
        return list(self.db.execute(stmt).scalars())

    def get_block(self, block_id: str) -> Block:
        block = self.db.get(Block, block_id)
        if block is None:
            raise BlockNotFoundError(block_id)
        return block

    def existing_titles(self, dashboard_id: str) -> list[str]:
        """Titles already on the dashboard, excluding placeholder titles."""
        return [
            b.title
            for b in self.list_blocks(dashboard_id)
            if b.title and b.title.strip() and b.title != UNTITLED_BLOCK
        ]

    def create_block(
        self,
        dashboard_id: str,
        title: str | None = None,
        description: str | None = None,
        block_type: str = BlockType.ai.value,
        size: int = 4,
        content: dict[str, Any] | None = None,
        position: int | None = None,
        source: BlockSource = BlockSource.user,
        user_id: str | None = None,
    ) -> Block:
        """Create a block and insert it into the dashboard order.

        Args:
            dashboard_id: Target dashboard.
            title: Block title. Defaults to "Untitled Block".
            description: Optional description.
            block_type: One of BlockType.
            size: Grid-column span in [1, 12].
            content: Content document; ``chart_data`` is reconciled.
            position: Slot to insert at. Omitted means append (users) or
                the top of the dashboard (agent).
            source: Origin of the block.
            user_id: Creating user.

        Raises:
            DashboardNotFoundError: If the dashboard does not exist.
            ValidationError: On invalid size, type or position.
        """
        block = Block(
            title=(title or "").strip() or UNTITLED_BLOCK,
            description=description,
            type=_validate_type(block_type),
            size=_validate_size(size),
            content_json=json.dumps(_normalize_content(content)),
            created_by_id=user_id,
        )
        return self.positions.insert(dashboard_id, block, at_position=position, source=source)

    def update_block(
        self,
        block_id: str,
        title: str | None = None,
        description: str | None = None,
        block_type: str | None = None,
        size: int | None = None,
        content: dict[str, Any] | None = None,
        position: int | None = None,
    ) -> Block:
        """Partially update a block. A position change is applied as a move."""
        block = self.get_block(block_id)
        if title is not None:
            block.title = title.strip() or UNTITLED_BLOCK
        if description is not None:
            block.description = description
        if block_type is not None:
            block.type = _validate_type(block_type)
        if size is not None:
            block.size = _validate_size(size)
        if content is not None:
            block.content_json = json.dumps(_normalize_content(content))
        block.updated_at = utc_now_iso()
        self.db.flush()

        if position is not None and position != block.position:
            block = self.positions.move(block_id, position)
        return block

    def delete_block(self, block_id: str) -> None:
        self.positions.delete(block_id)

    def reorder_blocks(self, dashboard_id: str, ordered_ids: Sequence[str]) -> list[Block]:
        return self.positions.reorder(dashboard_id, ordered_ids)

    def set_chart_content(self, block: Block, chart: ChartPayload, prompt: str) -> Block:
        """Replace a block's chart with a freshly generated one."""
        content = block_content(block)
        content.update(
            {
                "chart_data": chart.model_dump(mode="json"),
                "last_prompt": prompt,
                "generated_at": utc_now_iso(),
            }
        )
        block.content_json = json.dumps(content)
        block.updated_at = utc_now_iso()
        self.db.flush()
        return block

    def save_insight_blocks(
        self,
        dashboard_id: str,
        insights: Sequence[dict[str, Any]],
        start_position: int | None = None,
        user_id: str | None = None,
    ) -> list[Block]:
        """Persist accepted smart insights as AI blocks in one contiguous run.

        Every payload is reconciled before any write, so a bad item leaves
        the dashboard untouched.

        Args:
            dashboard_id: Target dashboard.
            insights: Items with question, description, chart_type and
                chart_payload (any accepted shape), plus optional insights.
            start_position: First slot of the run; omitted means append.
            user_id: Creating user.

        Returns:
            The created blocks, in insight order.
        """
        if not insights:
            raise ValidationError("No insights to save")

        blocks = []
        for item in insights:
            question = str(item.get("question") or item.get("title") or "").strip()
            chart = reconcile(
                item.get("chart_payload", item.get("chart_data")),
                target_type=item.get("chart_type"),
            )
            if not chart.title:
                chart = chart.model_copy(update={"title": question})
            bullets = list(item.get("insights") or chart.insights)
            if not bullets:
                bullets = synthesize(chart.series, question)
            if bullets != chart.insights:
                chart = chart.model_copy(update={"insights": bullets})

            blocks.append(
                Block(
                    title=question or UNTITLED_BLOCK,
                    description=item.get("description"),
                    type=BlockType.ai.value,
                    content_json=json.dumps(
                        {
                            "chart_data": chart.model_dump(mode="json"),
                            "last_prompt": question,
                            "generated_at": utc_now_iso(),
                        }
                    ),
                    created_by_id=user_id,
                )
            )

        inserted = self.positions.insert_many(dashboard_id, blocks, at_position=start_position)
        logger.info("Saved %d insight blocks to dashboard %s", len(inserted), dashboard_id)
        return inserted
