"""Dense block position engine.

The blocks of a dashboard always occupy positions exactly ``0..N-1``;
position is the display order and there is no other sort key. Every
mutation here:

1. takes the per-dashboard write lock (``lock_dashboard``),
2. reads the dashboard's blocks in position order,
3. applies the shift and the mutation in the same transaction.

Methods flush but do NOT commit. The caller commits once, so a pipeline
that inserts a block and records history in one transaction is never
observed half-done, and a rollback restores the previous order exactly.

Example:
    positions = BlockPositionService(db)
    positions.insert(dashboard_id, block, source=BlockSource.agent)
    db.commit()
"""

import logging
from collections.abc import Sequence
from enum import Enum

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.db.connection import lock_dashboard
from src.db.models import Block, utc_now_iso
from src.errors.domain import (
    BlockNotFoundError,
    DashboardNotFoundError,
    ReorderMismatchError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class BlockSource(str, Enum):
    """Who is adding a block. Agent blocks go to the top of the dashboard."""

    user = "user"
    agent = "agent"


class BlockPositionService:
    """Insert, delete, reorder and move blocks while keeping positions dense."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _locked_blocks(self, dashboard_id: str) -> list[Block]:
        # Pending edits must reach the database before the reload below
        self.db.flush()
        if lock_dashboard(self.db, dashboard_id) is None:
            raise DashboardNotFoundError(dashboard_id)
        stmt = (
            select(Block)
            .where(Block.dashboard_id == dashboard_id)
            .order_by(Block.position, Block.created_at)
            .execution_options(populate_existing=True)
        )
        return list(self.db.execute(stmt).scalars())

    def insert(
        self,
        dashboard_id: str,
        block: Block,
        at_position: int | None = None,
        source: BlockSource = BlockSource.user,
    ) -> Block:
        """Insert a new block, shifting blocks at or after the slot right.

        Args:
            dashboard_id: Target dashboard.
            block: Unsaved Block; its ``position`` is overwritten.
            at_position: Slot to insert at. Omitted means append, or 0 for
                agent blocks. Values past the end are clamped to append.
            source: Origin of the block.

        Returns:
            The inserted block.

        Raises:
            DashboardNotFoundError: If the dashboard does not exist.
            ValidationError: If ``at_position`` is negative.
        """
        return self.insert_many(dashboard_id, [block], at_position, source)[0]

    def insert_many(
        self,
        dashboard_id: str,
        blocks: Sequence[Block],
        at_position: int | None = None,
        source: BlockSource = BlockSource.user,
    ) -> list[Block]:
        """Insert several blocks as one contiguous run starting at a slot.

        The blocks keep their given order. Existing blocks at or after the
        slot shift right by ``len(blocks)``.
        """
        if at_position is not None and at_position < 0:
            raise ValidationError(f"Position must be >= 0, got {at_position}")
        if not blocks:
            return []

        existing = self._locked_blocks(dashboard_id)
        count = len(existing)
        if at_position is None:
            slot = 0 if source == BlockSource.agent else count
        else:
            slot = min(at_position, count)

        width = len(blocks)
        now = utc_now_iso()
        for current in existing[slot:]:
            current.position += width
            current.updated_at = now

        for offset, block in enumerate(blocks):
            block.dashboard_id = dashboard_id
            block.position = slot + offset
            self.db.add(block)
        self.db.flush()

        logger.info(
            "Inserted %d %s block(s) into dashboard %s at position %d (%d shifted)",
            width, source.value, dashboard_id, slot, count - slot,
        )
        return list(blocks)

    def delete(self, block_id: str) -> None:
        """Delete a block and close the gap it leaves.

        Raises:
            BlockNotFoundError: If the block does not exist.
        """
        block = self.db.get(Block, block_id)
        if block is None:
            raise BlockNotFoundError(block_id)
        dashboard_id = block.dashboard_id

        existing = self._locked_blocks(dashboard_id)
        target = next((b for b in existing if b.id == block_id), None)
        if target is None:
            raise BlockNotFoundError(block_id)
        removed_at = target.position

        self.db.delete(target)
        self.db.flush()

        now = utc_now_iso()
        shifted = 0
        for current in existing:
            if current.id != block_id and current.position > removed_at:
                current.position -= 1
                current.updated_at = now
                shifted += 1
        self.db.flush()

        logger.info(
            "Deleted block %s from dashboard %s at position %d (%d shifted)",
            block_id, dashboard_id, removed_at, shifted,
        )

    def reorder(self, dashboard_id: str, ordered_ids: Sequence[str]) -> list[Block]:
        """Assign ``position = index`` for every block in the given order.

        Raises:
            DashboardNotFoundError: If the dashboard does not exist.
            ReorderMismatchError: If the ids are not exactly the dashboard's
                current block set. Nothing is changed in that case.
        """
        existing = self._locked_blocks(dashboard_id)
        by_id = {b.id: b for b in existing}
        requested = list(ordered_ids)
        requested_set = set(requested)

        if len(requested) != len(requested_set) or requested_set != set(by_id):
            raise ReorderMismatchError(
                dashboard_id,
                missing=set(by_id) - requested_set,
                unexpected=requested_set - set(by_id),
            )

        now = utc_now_iso()
        for index, block_id in enumerate(requested):
            block = by_id[block_id]
            if block.position != index:
                block.position = index
                block.updated_at = now
        self.db.flush()

        logger.info("Reordered %d blocks in dashboard %s", len(requested), dashboard_id)
        return [by_id[block_id] for block_id in requested]

    def move(self, block_id: str, new_position: int) -> Block:
        """Move one block, shifting only the blocks between old and new slot.

        Moving down (old < new) shifts blocks in ``(old, new]`` up by one;
        moving up (new < old) shifts blocks in ``[new, old)`` down by one.
        Positions past the end are clamped to the last slot.

        Raises:
            BlockNotFoundError: If the block does not exist.
            ValidationError: If ``new_position`` is negative.
        """
        if new_position < 0:
            raise ValidationError(f"Position must be >= 0, got {new_position}")
        block = self.db.get(Block, block_id)
        if block is None:
            raise BlockNotFoundError(block_id)

        existing = self._locked_blocks(block.dashboard_id)
        target = next((b for b in existing if b.id == block_id), None)
        if target is None:
            raise BlockNotFoundError(block_id)

        old = target.position
        new = min(new_position, len(existing) - 1)
        if new == old:
            return target

        now = utc_now_iso()
        for current in existing:
            if current.id == block_id:
                continue
            if old < new and old < current.position <= new:
                current.position -= 1
                current.updated_at = now
            elif new < old and new <= current.position < old:
                current.position += 1
                current.updated_at = now
        target.position = new
        target.updated_at = now
        self.db.flush()

        logger.info(
            "Moved block %s in dashboard %s from position %d to %d",
            block_id, target.dashboard_id, old, new,
        )
        return target

    def positions(self, dashboard_id: str) -> list[tuple[str, int]]:
        """Return ``(block_id, position)`` pairs in display order."""
        stmt = (
            select(Block.id, Block.position)
            .where(Block.dashboard_id == dashboard_id)
            .order_by(Block.position)
        )
        return [(row.id, row.position) for row in self.db.execute(stmt)]
