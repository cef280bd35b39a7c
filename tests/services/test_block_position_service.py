"""Tests for the dense block position engine."""

import pytest
from sqlalchemy.orm import Session

from src.db.models import Block, Dashboard
from src.errors.domain import (
    BlockNotFoundError,
    DashboardNotFoundError,
    ReorderMismatchError,
    ValidationError,
)
from src.services.block_position_service import BlockPositionService, BlockSource


def _block(title: str) -> Block:
    return Block(title=title)


def _titles(positions: BlockPositionService, db: Session, dashboard_id: str) -> list[str]:
    return [db.get(Block, block_id).title for block_id, _ in positions.positions(dashboard_id)]


def _assert_dense(positions: BlockPositionService, dashboard_id: str) -> None:
    values = [p for _, p in positions.positions(dashboard_id)]
    assert values == list(range(len(values)))


@pytest.fixture
def positions(db: Session) -> BlockPositionService:
    return BlockPositionService(db)


@pytest.fixture
def three_blocks(db: Session, dashboard: Dashboard, positions: BlockPositionService) -> list[Block]:
    """Blocks A, B, C at positions 0, 1, 2 (committed)."""
    blocks = [positions.insert(dashboard.id, _block(t)) for t in ("A", "B", "C")]
    db.commit()
    return blocks


class TestInsert:
    def test_user_blocks_append(self, db, dashboard, positions, three_blocks):
        positions.insert(dashboard.id, _block("D"))
        assert _titles(positions, db, dashboard.id) == ["A", "B", "C", "D"]
        _assert_dense(positions, dashboard.id)

    def test_agent_blocks_go_to_the_top(self, db, dashboard, positions, three_blocks):
        positions.insert(dashboard.id, _block("AI"), source=BlockSource.agent)
        assert _titles(positions, db, dashboard.id) == ["AI", "A", "B", "C"]
        _assert_dense(positions, dashboard.id)

    def test_insert_at_zero_shifts_everything(self, db, dashboard, positions, three_blocks):
        """Inserting at 0 into [0, 1, 2] gives [0, 1, 2, 3]."""
        new = positions.insert(dashboard.id, _block("New"), at_position=0)
        db.commit()

        assert new.position == 0
        assert [p for _, p in positions.positions(dashboard.id)] == [0, 1, 2, 3]
        assert [b.position for b in three_blocks] == [1, 2, 3]

    def test_insert_in_the_middle(self, db, dashboard, positions, three_blocks):
        positions.insert(dashboard.id, _block("X"), at_position=1)
        assert _titles(positions, db, dashboard.id) == ["A", "X", "B", "C"]

    def test_position_past_the_end_is_clamped(self, db, dashboard, positions, three_blocks):
        block = positions.insert(dashboard.id, _block("Z"), at_position=99)
        assert block.position == 3
        _assert_dense(positions, dashboard.id)

    def test_negative_position_rejected(self, dashboard, positions):
        with pytest.raises(ValidationError):
            positions.insert(dashboard.id, _block("bad"), at_position=-1)

    def test_unknown_dashboard(self, db, positions):
        with pytest.raises(DashboardNotFoundError):
            positions.insert("no-such-dashboard", _block("A"))

    def test_insert_many_keeps_the_run_contiguous(self, db, dashboard, positions, three_blocks):
        positions.insert_many(dashboard.id, [_block("X"), _block("Y")], at_position=1)
        assert _titles(positions, db, dashboard.id) == ["A", "X", "Y", "B", "C"]
        _assert_dense(positions, dashboard.id)

    def test_first_block_of_empty_dashboard(self, dashboard, positions):
        block = positions.insert(dashboard.id, _block("only"), source=BlockSource.agent)
        assert block.position == 0


class TestDelete:
    def test_delete_closes_the_gap(self, db, dashboard, positions, three_blocks):
        """Deleting position 1 of [0, 1, 2, 3] gives [0, 1, 2]."""
        positions.insert(dashboard.id, _block("D"))
        db.commit()

        positions.delete(three_blocks[1].id)
        db.commit()

        assert _titles(positions, db, dashboard.id) == ["A", "C", "D"]
        assert [p for _, p in positions.positions(dashboard.id)] == [0, 1, 2]

    def test_delete_last_block(self, db, dashboard, positions, three_blocks):
        positions.delete(three_blocks[2].id)
        assert _titles(positions, db, dashboard.id) == ["A", "B"]

    def test_delete_unknown_block(self, positions):
        with pytest.raises(BlockNotFoundError):
            positions.delete("missing")


class TestMove:
    def test_move_down_shifts_intermediates_up(self, db, dashboard, positions, three_blocks):
        positions.insert(dashboard.id, _block("D"))
        positions.move(three_blocks[0].id, 2)
        assert _titles(positions, db, dashboard.id) == ["B", "C", "A", "D"]
        _assert_dense(positions, dashboard.id)

    def test_move_up_shifts_intermediates_down(self, db, dashboard, positions, three_blocks):
        positions.insert(dashboard.id, _block("D"))
        d_block = positions.move(three_blocks[2].id, 0)
        assert d_block.position == 0
        assert _titles(positions, db, dashboard.id) == ["C", "A", "B", "D"]

    def test_blocks_outside_the_range_do_not_move(self, db, dashboard, positions, three_blocks):
        d = positions.insert(dashboard.id, _block("D"))
        positions.move(three_blocks[1].id, 2)
        assert three_blocks[0].position == 0
        assert d.position == 3

    def test_move_past_the_end_clamps_to_last(self, db, dashboard, positions, three_blocks):
        moved = positions.move(three_blocks[0].id, 50)
        assert moved.position == 2
        assert _titles(positions, db, dashboard.id) == ["B", "C", "A"]

    def test_move_to_same_position_is_a_no_op(self, db, dashboard, positions, three_blocks):
        positions.move(three_blocks[1].id, 1)
        assert _titles(positions, db, dashboard.id) == ["A", "B", "C"]

    def test_negative_target_rejected(self, positions, three_blocks):
        with pytest.raises(ValidationError):
            positions.move(three_blocks[0].id, -2)


class TestReorder:
    def test_reorder_sets_position_to_index(self, db, dashboard, positions, three_blocks):
        a, b, c = three_blocks
        positions.reorder(dashboard.id, [c.id, a.id, b.id])
        assert _titles(positions, db, dashboard.id) == ["C", "A", "B"]

    def test_missing_id_is_a_mismatch(self, db, dashboard, positions, three_blocks):
        a, b, _ = three_blocks
        with pytest.raises(ReorderMismatchError) as exc_info:
            positions.reorder(dashboard.id, [b.id, a.id])
        assert exc_info.value.missing == {three_blocks[2].id}
        db.rollback()
        assert _titles(positions, db, dashboard.id) == ["A", "B", "C"]

    def test_unknown_id_is_a_mismatch(self, dashboard, positions, three_blocks):
        ids = [b.id for b in three_blocks] + ["stranger"]
        with pytest.raises(ReorderMismatchError) as exc_info:
            positions.reorder(dashboard.id, ids)
        assert exc_info.value.unexpected == {"stranger"}

    def test_duplicate_id_is_a_mismatch(self, dashboard, positions, three_blocks):
        a, b, c = three_blocks
        with pytest.raises(ReorderMismatchError):
            positions.reorder(dashboard.id, [a.id, b.id, c.id, a.id])


def test_positions_stay_dense_through_mixed_operations(db, dashboard, positions):
    """Every insert, delete, move and reorder leaves positions at 0..N-1."""
    blocks = []
    for i in range(5):
        blocks.append(positions.insert(dashboard.id, _block(f"B{i}")))
        _assert_dense(positions, dashboard.id)

    positions.insert(dashboard.id, _block("agent"), source=BlockSource.agent)
    _assert_dense(positions, dashboard.id)
    positions.delete(blocks[2].id)
    _assert_dense(positions, dashboard.id)
    positions.move(blocks[4].id, 0)
    _assert_dense(positions, dashboard.id)
    positions.insert(dashboard.id, _block("mid"), at_position=3)
    _assert_dense(positions, dashboard.id)
    positions.delete(blocks[0].id)
    _assert_dense(positions, dashboard.id)

    ids = [block_id for block_id, _ in positions.positions(dashboard.id)]
    positions.reorder(dashboard.id, list(reversed(ids)))
    _assert_dense(positions, dashboard.id)
    db.commit()
    assert len(ids) == 5


def test_rollback_restores_previous_order(db, dashboard, positions, three_blocks):
    positions.insert(dashboard.id, _block("temp"), at_position=0)
    db.rollback()
    assert _titles(positions, db, dashboard.id) == ["A", "B", "C"]
