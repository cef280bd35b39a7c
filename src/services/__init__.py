"""Service layer for Epesi dashboards.

Business operations over the SQLAlchemy session: tenancy CRUD, data
source intake, block ordering and the conversation/history stores.
Import services from their modules, e.g.
``from src.services.block_service import BlockService``.
"""
