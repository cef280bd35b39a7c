"""Pydantic schemas for API request/response validation.

This module defines the data contracts for the Epesi REST API:
tenancy, data sources, blocks, chat history, AI generation and the
Epesi Agent. Chart data always leaves the API in the canonical
ChartPayload shape (``series`` of ``{label, value}`` points).
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.db.models import ProjectStatus
from src.orchestrator.models.chart import ChartPayload, ChartType, InsightCategory


class BlockSourceEnum(str, Enum):
    """Origin of a new block. Agent blocks are prepended."""

    user = "user"
    agent = "agent"


# Organization / project / dashboard schemas


class OrganizationCreate(BaseModel):
    """Request schema for creating an organization."""

    name: str = Field(..., min_length=1, max_length=255)


class OrganizationResponse(BaseModel):
    """Response schema for an organization."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    created_at: str


class ProjectCreate(BaseModel):
    """Request schema for creating a project."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class ProjectUpdate(BaseModel):
    """Request schema for updating a project. Omitted fields are unchanged."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    status: ProjectStatus | None = None


class ProjectResponse(BaseModel):
    """Response schema for a project."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    name: str
    description: str | None = None
    status: ProjectStatus = ProjectStatus.active
    created_by_id: str | None = None
    created_at: str
    updated_at: str


class DashboardCreate(BaseModel):
    """Request schema for creating a dashboard."""

    project_id: str
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    is_public: bool = False


class DashboardUpdate(BaseModel):
    """Request schema for partially updating a dashboard."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    is_public: bool | None = None


class DashboardResponse(BaseModel):
    """Response schema for a dashboard."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    name: str
    description: str | None = None
    is_public: bool
    created_by_id: str | None = None
    last_accessed_at: str | None = None
    created_at: str
    updated_at: str


# Data source schemas


class DataSourceCreate(BaseModel):
    """Request schema for uploading a data source.

    ``content`` is CSV text, JSON text, a list of records or one record.
    """

    name: str = Field(..., min_length=1, max_length=255)
    content: str | list[dict[str, Any]] | dict[str, Any]
    format: str | None = Field(None, description="Optional 'csv' or 'json' hint")


class DataSourceResponse(BaseModel):
    """Response schema for a data source, without its records."""

    id: str
    organization_id: str
    name: str
    type: str
    fields: list[str]
    row_count: int
    created_by_id: str | None = None
    created_at: str


class DataSourceDetailResponse(DataSourceResponse):
    """Response schema for a data source with sample records."""

    sample: list[dict[str, Any]] = Field(default_factory=list)


# Block schemas


class DataSourceAnalysisResponse(BaseModel):
    """AI overview of a data source. Nothing is stored."""

    data_source_id: str
    summary: str
    key_findings: list[str] = Field(default_factory=list)
    suggested_questions: list[str] = Field(default_factory=list)


class OverviewStatsResponse(BaseModel):
    """Organization-level counts for the home screen."""

    organization_id: str
    active_projects: int
    total_dashboards: int
    data_sources: int


class BlockCreate(BaseModel):
    """Request schema for creating a block."""

    title: str | None = Field(None, max_length=255)
    description: str | None = None
    type: str = "ai"
    size: int = Field(4, ge=1, le=12)
    content: dict[str, Any] | None = None
    position: int | None = Field(None, ge=0)
    source: BlockSourceEnum = BlockSourceEnum.user


class BlockUpdate(BaseModel):
    """Request schema for partially updating a block."""

    title: str | None = Field(None, max_length=255)
    description: str | None = None
    type: str | None = None
    size: int | None = Field(None, ge=1, le=12)
    content: dict[str, Any] | None = None
    position: int | None = Field(None, ge=0)


class BlockResponse(BaseModel):
    """Response schema for a block."""

    id: str
    dashboard_id: str
    title: str
    description: str | None = None
    type: str
    size: int
    content: dict[str, Any]
    position: int
    created_by_id: str | None = None
    created_at: str
    updated_at: str


class BlockReorderRequest(BaseModel):
    """Request schema for reordering every block of a dashboard."""

    block_ids: list[str]


# Chat history schemas


class ChatHistoryCreate(BaseModel):
    """Request schema for recording a chat history entry."""

    question: str = Field(..., min_length=1)
    chart_data: Any


class ChatHistoryResponse(BaseModel):
    """Response schema for a block chat history entry."""

    id: str
    block_id: str
    question: str
    chart_data: dict[str, Any]
    sequence: int
    generated_at: str


# AI generation schemas


class GenerateChartRequest(BaseModel):
    """Request schema for per-block chart generation."""

    prompt: str = Field(..., min_length=1)
    block_id: str | None = None
    dashboard_id: str | None = None
    chart_type: ChartType | None = None


class GenerateChartResponse(BaseModel):
    """Response schema for per-block chart generation."""

    block: BlockResponse
    chart_data: ChartPayload
    chat_history_id: str
    reused_series: bool = False


class GenerateInsightsRequest(BaseModel):
    """Request schema for a smart insights batch."""

    dashboard_id: str
    count: int = 4
    prompt: str | None = None


class InsightResponse(BaseModel):
    """One proposed smart insight."""

    question: str
    description: str = ""
    chart_type: ChartType
    insight_category: InsightCategory | None = None
    chart_payload: ChartPayload
    insights: list[str] = Field(default_factory=list)


class GenerateInsightsResponse(BaseModel):
    """Response schema for a smart insights batch."""

    insights: list[InsightResponse]
    requested: int
    generated: int


class InsightBlockInput(BaseModel):
    """A smart insight accepted by the user, to be saved as a block."""

    question: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    chart_type: str | None = None
    insight_category: str | None = None
    chart_payload: Any
    insights: list[str] | None = None


class SaveInsightBlocksRequest(BaseModel):
    """Request schema for saving insights as dashboard blocks."""

    insights: list[InsightBlockInput] = Field(..., min_length=1)
    start_position: int | None = Field(None, ge=0)


class GenerateSyntheticDataRequest(BaseModel):
    """Request schema for synthetic data generation."""

    prompt: str = Field(..., min_length=1)
    organization_id: str | None = None
    name: str | None = Field(None, max_length=255)


class GenerateSyntheticDataResponse(BaseModel):
    """Response schema for synthetic data generation."""

    data_source_id: str | None = None
    fields: list[str]
    row_count: int
    records: list[dict[str, Any]]


# Epesi Agent and conversation schemas


class AgentChatRequest(BaseModel):
    """Request schema for an Epesi Agent prompt."""

    prompt: str = Field(..., min_length=1)
    dashboard_id: str
    conversation_id: str | None = None


class AgentChatResponse(BaseModel):
    """Response schema for an Epesi Agent reply."""

    conversation_id: str
    response: str
    charts: list[ChartPayload] = Field(default_factory=list)


class ConversationCreate(BaseModel):
    """Request schema for starting a conversation."""

    title: str | None = None


class ConversationResponse(BaseModel):
    """Response schema for a conversation."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    dashboard_id: str
    title: str
    created_by_id: str | None = None
    created_at: str
    updated_at: str


class MessageResponse(BaseModel):
    """Response schema for a conversation message."""

    id: str
    conversation_id: str
    role: str
    content: str
    charts: list[dict[str, Any]] = Field(default_factory=list)
    sequence: int
    created_at: str
