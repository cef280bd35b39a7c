"""Tests for the conversation and block chat history coordinator."""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.db.models import Dashboard, Message
from src.errors.domain import (
    BlockNotFoundError,
    ChatTurnNotFoundError,
    ConversationNotFoundError,
    DashboardNotFoundError,
    ValidationError,
)
from src.orchestrator.models.chart import ChartPayload, ChartType, SeriesPoint
from src.services.block_service import BlockService
from src.services.conversation_service import (
    DEFAULT_CONVERSATION_TITLE,
    ConversationService,
    chat_turn_to_dict,
    derive_conversation_title,
    message_to_dict,
)
from src.services.dashboard_service import DashboardService


def _chart(title: str, value: int = 1) -> ChartPayload:
    return ChartPayload(
        chart_type=ChartType.bar,
        title=title,
        series=[SeriesPoint(label="A", value=value)],
    )


@pytest.fixture
def service(db: Session) -> ConversationService:
    return ConversationService(db)


class TestDeriveTitle:
    def test_short_prompt_kept_verbatim(self):
        assert derive_conversation_title("Revenue by region") == "Revenue by region"

    def test_exactly_fifty_characters_kept(self):
        prompt = "x" * 50
        assert derive_conversation_title(prompt) == prompt

    def test_long_prompt_truncated_with_ellipsis(self):
        prompt = "Show me the revenue trend for every region over the last two years"
        title = derive_conversation_title(prompt)
        assert title == prompt[:50] + "..."
        assert len(title) == 53

    @pytest.mark.parametrize("prompt", [None, "", "   "])
    def test_empty_prompt_gets_default(self, prompt):
        assert derive_conversation_title(prompt) == DEFAULT_CONVERSATION_TITLE


class TestConversations:
    def test_get_or_create_starts_a_titled_conversation(self, db, dashboard, service):
        conversation = service.get_or_create_conversation(
            dashboard.id, first_prompt="What sold best?", user_id="u-2"
        )
        assert conversation.title == "What sold best?"
        assert conversation.created_by_id == "u-2"

    def test_get_or_create_returns_existing(self, db, dashboard, service):
        created = service.create_conversation(dashboard.id, title="Existing")
        db.commit()
        assert service.get_or_create_conversation(dashboard.id, created.id) is created

    def test_unknown_conversation(self, dashboard, service):
        with pytest.raises(ConversationNotFoundError):
            service.get_or_create_conversation(dashboard.id, "missing")

    def test_conversation_of_another_dashboard(self, db, dashboard, project, service):
        other = DashboardService(db).create_dashboard(project.id, "Other")
        conversation = service.create_conversation(other.id)
        with pytest.raises(ConversationNotFoundError):
            service.get_or_create_conversation(dashboard.id, conversation.id)

    def test_unknown_dashboard(self, service):
        with pytest.raises(DashboardNotFoundError):
            service.create_conversation("missing")

    def test_append_assigns_increasing_sequences(self, db, dashboard, service):
        conversation = service.create_conversation(dashboard.id)
        before = conversation.updated_at
        first = service.append_message(conversation.id, "user", "hi")
        second = service.append_message(
            conversation.id, "assistant", "hello", charts=[_chart("c").model_dump(mode="json")]
        )
        db.commit()

        assert (first.sequence, second.sequence) == (1, 2)
        assert conversation.updated_at >= before
        assert [m.content for m in service.get_messages(conversation.id)] == ["hi", "hello"]
        assert message_to_dict(second)["charts"][0]["title"] == "c"
        assert message_to_dict(first)["charts"] == []

    def test_invalid_role(self, dashboard, service):
        conversation = service.create_conversation(dashboard.id)
        with pytest.raises(ValidationError):
            service.append_message(conversation.id, "system", "nope")

    def test_append_to_unknown_conversation(self, service):
        with pytest.raises(ConversationNotFoundError):
            service.append_message("missing", "user", "hi")

    def test_sequence_is_unique_per_conversation(self, db, dashboard, service):
        conversation = service.create_conversation(dashboard.id)
        service.append_message(conversation.id, "user", "one")
        db.add(Message(conversation_id=conversation.id, role="user", content="dup", sequence=1))
        with pytest.raises(IntegrityError):
            db.flush()

    def test_list_conversations_most_recent_first(self, db, dashboard: Dashboard, service):
        older = service.create_conversation(dashboard.id, title="older")
        newer = service.create_conversation(dashboard.id, title="newer")
        older.updated_at = "2020-01-01T00:00:00+00:00"
        db.commit()
        assert [c.id for c in service.list_conversations(dashboard.id)] == [newer.id, older.id]

    def test_delete_conversation_removes_messages(self, db, dashboard, service):
        conversation = service.create_conversation(dashboard.id)
        service.append_message(conversation.id, "user", "hi")
        db.commit()

        service.delete_conversation(conversation.id)
        db.commit()
        assert db.query(Message).count() == 0


class TestChatHistory:
    def test_record_and_list_most_recent_first(self, db, dashboard, service):
        block = BlockService(db).create_block(dashboard.id)
        service.record_chat_turn(block.id, "first", _chart("one"))
        service.record_chat_turn(block.id, "second", _chart("two"))
        db.commit()

        history = service.get_chat_history(block.id)
        assert [t.question for t in history] == ["second", "first"]
        assert [t.sequence for t in history] == [2, 1]
        assert chat_turn_to_dict(history[0])["chart_data"]["title"] == "two"

    def test_blank_question_rejected(self, db, dashboard, service):
        block = BlockService(db).create_block(dashboard.id)
        with pytest.raises(ValidationError):
            service.record_chat_turn(block.id, "  ", _chart("x"))

    def test_unknown_block(self, service):
        with pytest.raises(BlockNotFoundError):
            service.record_chat_turn("missing", "q", _chart("x"))

    def test_delete_turn(self, db, dashboard, service):
        block = BlockService(db).create_block(dashboard.id)
        turn = service.record_chat_turn(block.id, "q", _chart("x"))
        service.delete_chat_turn(turn.id)
        assert service.get_chat_history(block.id) == []
        with pytest.raises(ChatTurnNotFoundError):
            service.delete_chat_turn(turn.id)


class TestRecentContext:
    def test_block_context_is_most_recent_first_and_limited(self, db, dashboard, service):
        block = BlockService(db).create_block(dashboard.id)
        for i in range(8):
            service.record_chat_turn(block.id, f"q{i}", _chart(f"c{i}", value=i))

        turns = service.get_recent_context(block_id=block.id)
        assert len(turns) == 6
        assert turns[0].question == "q7"
        assert turns[0].chart.title == "c7"
        assert turns[-1].question == "q2"

    def test_conversation_context_pairs_questions_with_answers(self, db, dashboard, service):
        conversation = service.create_conversation(dashboard.id)
        service.append_message(conversation.id, "user", "total sales?")
        service.append_message(
            conversation.id, "assistant", "Sales total 100.",
            charts=[_chart("Sales").model_dump(mode="json")],
        )
        service.append_message(conversation.id, "user", "and by region?")
        service.append_message(conversation.id, "assistant", "North leads.")

        turns = service.get_recent_context(conversation_id=conversation.id)
        assert [t.question for t in turns] == ["and by region?", "total sales?"]
        assert turns[0].answer == "North leads."
        assert turns[0].chart is None
        assert turns[1].chart.title == "Sales"

    def test_unanswered_question_is_included(self, db, dashboard, service):
        conversation = service.create_conversation(dashboard.id)
        service.append_message(conversation.id, "user", "pending?")
        turns = service.get_recent_context(conversation_id=conversation.id)
        assert turns[0].question == "pending?"
        assert turns[0].answer is None

    def test_exactly_one_target_required(self, service):
        with pytest.raises(ValidationError):
            service.get_recent_context()
        with pytest.raises(ValidationError):
            service.get_recent_context(block_id="a", conversation_id="b")

    def test_unreadable_stored_json_is_skipped(self, db, dashboard, service):
        block = BlockService(db).create_block(dashboard.id)
        turn = service.record_chat_turn(block.id, "q", _chart("c"))
        turn.chart_data_json = "{broken"
        conversation = service.create_conversation(dashboard.id)
        service.append_message(conversation.id, "user", "total?")
        answer = service.append_message(conversation.id, "assistant", "100", charts=[{"title": "x"}])
        answer.metadata_json = "not json"
        db.flush()

        block_turns = service.get_recent_context(block_id=block.id)
        assert [(t.question, t.chart) for t in block_turns] == [("q", None)]
        assert chat_turn_to_dict(turn)["chart_data"] == {}

        turns = service.get_recent_context(conversation_id=conversation.id)
        assert turns[0].answer == "100"
        assert turns[0].chart is None
        assert message_to_dict(answer)["charts"] == []
