"""SQLAlchemy ORM models for the Epesi dashboards state database.

This module defines the tenancy hierarchy (organizations, projects,
dashboards), uploaded data sources, positioned dashboard blocks with their
per-block chat history, and Epesi Agent conversations. Uses SQLAlchemy 2.0
style with Mapped and mapped_column.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(UTC).isoformat()


# Enums matching the database schema constraints


class BlockType(str, Enum):
    """Kinds of dashboard blocks."""

    ai = "ai"
    chart = "chart"
    table = "table"
    text = "text"
    metric = "metric"


class ProjectStatus(str, Enum):
    """Lifecycle state of a project. Only active projects count as active."""

    active = "active"
    archived = "archived"
    completed = "completed"


class MessageRole(str, Enum):
    """Author of a conversation message."""

    user = "user"
    assistant = "assistant"


class DataSourceType(str, Enum):
    """Origin of a data source's records."""

    csv = "csv"
    json = "json"
    generated = "generated"


# SQLAlchemy Base


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Models


class Organization(Base):
    """Tenant owning projects and data sources."""

    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    projects: Mapped[list["Project"]] = relationship(
        "Project", back_populates="organization", cascade="all, delete-orphan"
    )
    data_sources: Mapped[list["DataSource"]] = relationship(
        "DataSource", back_populates="organization", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id!r}, name={self.name!r})>"


class Project(Base):
    """Group of dashboards within an organization."""

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    organization_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProjectStatus.active.value
    )
    created_by_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="projects"
    )
    dashboards: Mapped[list["Dashboard"]] = relationship(
        "Dashboard", back_populates="project", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Project(id={self.id!r}, name={self.name!r})>"


class Dashboard(Base):
    """A canvas of positioned blocks.

    Attributes:
        id: UUID primary key.
        project_id: FK to the owning project.
        name: Display name.
        description: Optional description.
        is_public: Whether the dashboard can be shared by link.
        created_by_id: Opaque id of the creating user.
        last_accessed_at: ISO8601 timestamp of the last read.
        created_at: ISO8601 creation timestamp.
        updated_at: ISO8601 last-update timestamp.
    """

    __tablename__ = "dashboards"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    project_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(nullable=False, default=False)
    created_by_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_accessed_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    project: Mapped["Project"] = relationship("Project", back_populates="dashboards")
    blocks: Mapped[list["Block"]] = relationship(
        "Block",
        back_populates="dashboard",
        cascade="all, delete-orphan",
        order_by="Block.position",
    )
    conversations: Mapped[list["Conversation"]] = relationship(
        "Conversation", back_populates="dashboard", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Dashboard(id={self.id!r}, name={self.name!r})>"


class DataSource(Base):
    """Normalized tabular data uploaded to, or generated for, an organization.

    The records are stored already normalized: every record carries the
    full field list, missing values as null.

    Attributes:
        id: UUID primary key.
        organization_id: FK to the owning organization.
        name: Display name used in generation prompts.
        type: Origin of the data (csv, json, generated).
        fields_json: JSON array of field names, in first-seen order.
        records_json: JSON array of flat records.
        row_count: Number of records.
        created_by_id: Opaque id of the uploading user.
        created_at: ISO8601 creation timestamp.
    """

    __tablename__ = "data_sources"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    organization_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DataSourceType.csv.value
    )
    fields_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    records_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    row_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_by_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="data_sources"
    )

    def __repr__(self) -> str:
        return f"<DataSource(id={self.id!r}, name={self.name!r}, rows={self.row_count})>"


class Block(Base):
    """A positioned visual unit on a dashboard.

    ``position`` is the display order. Within one dashboard the positions
    are always exactly 0..N-1 once a transaction commits. Only
    BlockPositionService writes them. There is no unique constraint on
    (dashboard_id, position) because shifts pass through transient
    duplicates inside the transaction.

    Attributes:
        id: UUID primary key.
        dashboard_id: FK to the owning dashboard.
        title: Block title (also the insight question for AI blocks).
        description: Optional description.
        type: Block kind (ai, chart, table, text, metric).
        size: Grid-column span in [1, 12].
        content_json: JSON document {chart_data, last_prompt, generated_at}.
        position: Zero-based display order within the dashboard.
        created_by_id: Opaque id of the creating user.
        created_at: ISO8601 creation timestamp.
        updated_at: ISO8601 last-update timestamp.
    """

    __tablename__ = "blocks"
    __table_args__ = (
        Index("ix_blocks_dashboard_position", "dashboard_id", "position"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    dashboard_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("dashboards.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BlockType.ai.value
    )
    size: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    content_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_by_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    dashboard: Mapped["Dashboard"] = relationship("Dashboard", back_populates="blocks")
    chat_history: Mapped[list["BlockChatTurn"]] = relationship(
        "BlockChatTurn",
        back_populates="block",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Block(id={self.id!r}, dashboard_id={self.dashboard_id!r}, "
            f"position={self.position})>"
        )


class BlockChatTurn(Base):
    """One prompt-to-chart exchange on an AI block. Append-only.

    Attributes:
        id: UUID primary key.
        block_id: FK to the block.
        question: The user's prompt.
        chart_data_json: Canonical chart payload snapshot.
        sequence: Ordering within the block (monotonically increasing).
        generated_at: ISO8601 timestamp of generation.
    """

    __tablename__ = "block_chat_history"
    __table_args__ = (
        UniqueConstraint("block_id", "sequence", name="uq_block_chat_block_seq"),
        Index("ix_block_chat_block_seq", "block_id", "sequence"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    block_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("blocks.id", ondelete="CASCADE"),
        nullable=False,
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    chart_data_json: Mapped[str] = mapped_column(Text, nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    generated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    block: Mapped["Block"] = relationship("Block", back_populates="chat_history")

    def __repr__(self) -> str:
        return f"<BlockChatTurn(id={self.id!r}, block_id={self.block_id!r})>"


class Conversation(Base):
    """Epesi Agent conversation attached to a dashboard.

    Owns an ordered sequence of messages. ``updated_at`` tracks the latest
    message.
    """

    __tablename__ = "conversations"
    __table_args__ = (
        Index("ix_conversations_dashboard_updated", "dashboard_id", "updated_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    dashboard_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("dashboards.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    dashboard: Mapped["Dashboard"] = relationship(
        "Dashboard", back_populates="conversations"
    )
    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.sequence",
    )

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id!r}, title={self.title!r})>"


class Message(Base):
    """A single user or assistant message in a conversation.

    Attributes:
        id: UUID primary key.
        conversation_id: FK to Conversation.
        role: 'user' or 'assistant'.
        content: Message text.
        metadata_json: Optional JSON with {"charts": [...]}.
        sequence: Ordering within the conversation (monotonically increasing).
        created_at: ISO8601 creation timestamp.
    """

    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint(
            "conversation_id", "sequence", name="uq_messages_conversation_seq"
        ),
        Index("ix_messages_conversation_seq", "conversation_id", "sequence"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    conversation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    conversation: Mapped["Conversation"] = relationship(
        "Conversation", back_populates="messages"
    )

    def __repr__(self) -> str:
        return (
            f"<Message(id={self.id!r}, role={self.role!r}, seq={self.sequence})>"
        )
