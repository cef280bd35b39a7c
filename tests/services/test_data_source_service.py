"""Tests for DataSourceService."""

import json

import pytest
from sqlalchemy.orm import Session

from src.db.models import DataSourceType, Organization
from src.errors.domain import (
    DataSourceNotFoundError,
    EmptyDataSourceError,
    OrganizationNotFoundError,
    UnsupportedFormatError,
    ValidationError,
)
from src.services.data_source_service import DataSourceService, relation_from_source


@pytest.fixture
def service(db: Session) -> DataSourceService:
    return DataSourceService(db)


def test_csv_upload_is_normalized_and_stored(db, organization: Organization, service):
    source = service.create_data_source(
        organization.id, "  Stores  ", "store,zip\nDowntown,02134\nAirport,\n", user_id="u-1"
    )
    db.commit()

    assert source.name == "Stores"
    assert source.type == DataSourceType.csv.value
    assert source.row_count == 2
    assert json.loads(source.fields_json) == ["store", "zip"]
    assert source.created_by_id == "u-1"

    relation = relation_from_source(source)
    assert relation.records[0] == {"store": "Downtown", "zip": "02134"}
    assert relation.records[1]["zip"] is None


def test_json_records_are_stored_as_json_type(db, organization, service):
    source = service.create_data_source(organization.id, "Orders", [{"id": 1}, {"id": 2, "total": 9.5}])
    assert source.type == DataSourceType.json.value
    assert json.loads(source.fields_json) == ["id", "total"]


def test_json_text_is_detected(organization, service):
    source = service.create_data_source(organization.id, "One", '{"a": 1}')
    assert source.type == DataSourceType.json.value
    assert source.row_count == 1


def test_explicit_type_wins(organization, service):
    source = service.create_data_source(
        organization.id, "Synthetic", [{"a": 1}], source_type=DataSourceType.generated
    )
    assert source.type == "generated"


def test_header_only_csv_is_empty(organization, service):
    with pytest.raises(EmptyDataSourceError) as exc_info:
        service.create_data_source(organization.id, "Empty", "a,b\n")
    assert exc_info.value.context == {"name": "Empty"}


def test_unreadable_content(organization, service):
    with pytest.raises(UnsupportedFormatError):
        service.create_data_source(organization.id, "Bad", "[1, 2]")


def test_blank_name(organization, service):
    with pytest.raises(ValidationError):
        service.create_data_source(organization.id, "  ", "a\n1\n")


def test_unknown_organization(service):
    with pytest.raises(OrganizationNotFoundError):
        service.create_data_source("no-org", "x", "a\n1\n")


def test_get_and_delete(db, organization, service):
    source = service.create_data_source(organization.id, "Temp", "a\n1\n")
    db.commit()
    assert service.get_data_source(source.id) is source

    service.delete_data_source(source.id)
    db.commit()
    with pytest.raises(DataSourceNotFoundError):
        service.get_data_source(source.id)


def test_data_sources_by_org_returns_relations(db, organization, service):
    service.create_data_source(organization.id, "First", "a\n1\n")
    service.create_data_source(organization.id, "Second", "b\n2\n3\n")
    db.commit()

    pairs = service.get_data_sources_by_org(organization.id)
    assert [name for name, _ in pairs] == ["First", "Second"]
    assert pairs[1][1].row_count == 2

    assert len(service.get_data_sources_by_org(organization.id, limit=1)) == 1
