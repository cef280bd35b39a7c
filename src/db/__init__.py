"""Database module for Epesi dashboards state management and persistence."""

from src.db.connection import (
    SessionLocal,
    engine,
    get_db,
    get_db_context,
    init_db,
    lock_dashboard,
    lock_row,
)
from src.db.models import (
    Block,
    BlockChatTurn,
    BlockType,
    Conversation,
    Dashboard,
    DataSource,
    DataSourceType,
    Message,
    MessageRole,
    Organization,
    Project,
    ProjectStatus,
)

__all__ = [
    # Models
    "Organization",
    "Project",
    "Dashboard",
    "DataSource",
    "Block",
    "BlockChatTurn",
    "Conversation",
    "Message",
    # Enums
    "BlockType",
    "MessageRole",
    "DataSourceType",
    "ProjectStatus",
    # Connection
    "engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    "init_db",
    "lock_dashboard",
    "lock_row",
]
