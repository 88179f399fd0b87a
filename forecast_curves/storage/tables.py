"""
Table definitions for the curve catalog.

Core `Table` objects keep the schema portable between PostgreSQL in deployments and
SQLite in tests. List-valued instance attributes are stored as JSON.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.engine import Engine

metadata = MetaData()

curve_definition = Table(
    "curve_definition",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("curve_name", String(255)),
    Column("market", String(64), nullable=False),
    Column("location", String(128), nullable=False),
    Column("product", String(128)),
    Column("commodity", String(128)),
    Column("battery_duration", String(32)),
    Column("units", String(32)),
    Column("granularity", String(32)),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("update_frequency", String(16)),
    Column("timezone", String(64)),
    Column("description", Text),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

curve_instance = Table(
    "curve_instance",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("definition_id", Integer, ForeignKey("curve_definition.id"), nullable=False, index=True),
    Column("instance_version", String(255), nullable=False),
    Column("status", String(16), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("created_by", String(255)),
    Column("curve_types", JSON, nullable=False, default=list),
    Column("commodities", JSON, nullable=False, default=list),
    Column("scenarios", JSON, nullable=False, default=list),
    Column("granularity", String(32)),
    Column("degradation_type", String(64)),
)

curve_data = Table(
    "curve_data",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("instance_id", Integer, ForeignKey("curve_instance.id"), nullable=False, index=True),
    Column("timestamp", DateTime(timezone=True), nullable=False),
    Column("value", Float),
    Column("curve_type", String(64)),
    Column("commodity", String(128)),
    Column("scenario", String(32), nullable=False),
    Column("units", String(32)),
    Column("updated_at", DateTime(timezone=True)),
    UniqueConstraint(
        "instance_id",
        "timestamp",
        "curve_type",
        "commodity",
        "scenario",
        name="uq_curve_data_point",
    ),
)


def create_schema(engine: Engine) -> None:
    """Create all curve tables that do not exist yet."""

    metadata.create_all(engine)
