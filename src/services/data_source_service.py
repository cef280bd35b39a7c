"""Service for organization data sources.

Uploads are normalized on intake (see ``data_normalizer``) and stored as
JSON: the field list, the flat records and the row count. Generation
requests read them back as Relations.

Methods flush but do NOT call db.commit(); the caller commits.
"""

import json
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.db.models import DataSource, DataSourceType, Organization
from src.errors.domain import (
    DataSourceNotFoundError,
    EmptyDataSourceError,
    OrganizationNotFoundError,
    ValidationError,
)
from src.services.data_normalizer import Relation, normalize

logger = logging.getLogger(__name__)


def relation_from_source(source: DataSource) -> Relation:
    """Rebuild the stored Relation of a data source."""
    fields = tuple(json.loads(source.fields_json or "[]"))
    records = tuple(json.loads(source.records_json or "[]"))
    return Relation(fields=fields, records=records)


def _infer_type(raw: str | list | dict, declared_format: str | None) -> DataSourceType:
    fmt = (declared_format or "").lower().lstrip(".")
    if fmt == "json" or not isinstance(raw, str):
        return DataSourceType.json
    if fmt == "csv":
        return DataSourceType.csv
    text = raw.lstrip("\ufeff").lstrip()
    return DataSourceType.json if text.startswith(("[", "{")) else DataSourceType.csv


class DataSourceService:
    """Create, read and delete an organization's data sources."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def create_data_source(
        self,
        organization_id: str,
        name: str,
        raw: str | list | dict,
        declared_format: str | None = None,
        source_type: DataSourceType | None = None,
        user_id: str | None = None,
    ) -> DataSource:
        """Normalize and store uploaded data.

        Args:
            organization_id: Owning organization.
            name: Display name used in generation prompts.
            raw: CSV text, JSON text, a list of records or one record.
            declared_format: Optional "csv" or "json" hint.
            source_type: Stored type. Inferred from the input when omitted.
            user_id: Uploading user.

        Returns:
            The stored DataSource.

        Raises:
            OrganizationNotFoundError: If the organization does not exist.
            UnsupportedFormatError: If the input is neither CSV nor JSON records.
            EmptyDataSourceError: If the input holds no records.
        """
        if self.db.get(Organization, organization_id) is None:
            raise OrganizationNotFoundError(organization_id)
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Data source name is required")

        relation = normalize(raw, declared_format)
        if relation.row_count == 0:
            raise EmptyDataSourceError(clean_name)

        if source_type is None:
            source_type = _infer_type(raw, declared_format)

        source = DataSource(
            organization_id=organization_id,
            name=clean_name,
            type=source_type.value,
            fields_json=json.dumps(list(relation.fields)),
            records_json=json.dumps(relation.to_records(), default=str),
            row_count=relation.row_count,
            created_by_id=user_id,
        )
        self.db.add(source)
        self.db.flush()
        logger.info(
            "Stored %s data source %s '%s' (%d rows, %d fields)",
            source.type, source.id, clean_name, relation.row_count, len(relation.fields),
        )
        return source

    def get_data_source(self, data_source_id: str) -> DataSource:
        source = self.db.get(DataSource, data_source_id)
        if source is None:
            raise DataSourceNotFoundError(data_source_id)
        return source

    def list_data_sources(self, organization_id: str) -> list[DataSource]:
        """List an organization's data sources, oldest first."""
        if self.db.get(Organization, organization_id) is None:
            raise OrganizationNotFoundError(organization_id)
        stmt = (
            select(DataSource)
            .where(DataSource.organization_id == organization_id)
            .order_by(DataSource.created_at, DataSource.name)
        )
        return list(self.db.execute(stmt).scalars())

    def delete_data_source(self, data_source_id: str) -> None:
        source = self.get_data_source(data_source_id)
        self.db.delete(source)
        self.db.flush()
        logger.info("Deleted data source %s", data_source_id)

    def get_data_sources_by_org(
        self,
        organization_id: str,
        limit: int | None = None,
    ) -> list[tuple[str, Relation]]:
        """Return ``(name, Relation)`` pairs for context building.

        Args:
            organization_id: Owning organization.
            limit: Keep only the first ``limit`` sources.
        """
        sources = self.list_data_sources(organization_id)
        if limit is not None:
            sources = sources[:limit]
        return [(s.name, relation_from_source(s)) for s in sources]
