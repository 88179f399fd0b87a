# This module reads and writes the curve catalog through an injected SQLAlchemy engine.
# Uploads are written inside one transaction so an instance never exists without its data rows.
# Single-point edits are last-writer-wins; no version column is checked.

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any

import pandas as pd
from sqlalchemy import and_, delete, exists, func, insert, select, update
from sqlalchemy.engine import Connection, Engine

from forecast_curves.curves.export import ExportContext
from forecast_curves.curves.models import (
    TALL_COLUMNS,
    CurveDefinition,
    CurveInstance,
    InstanceStatus,
    build_definition,
    build_instance,
    tall_frame_from_records,
)
from forecast_curves.ingestion.upload_checks import ValidatedRows, ValidatedUpload
from forecast_curves.storage.tables import curve_data, curve_definition, curve_instance

LOGGER = logging.getLogger("storage")

DATA_COLUMNS: list[str] = ["point_id", *TALL_COLUMNS]


@dataclass(frozen=True)
class UploadResult:
    definition_id: int
    instance_id: int
    rows_written: int
    created_definition: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "definition_id": self.definition_id,
            "instance_id": self.instance_id,
            "rows_written": self.rows_written,
            "created_definition": self.created_definition,
        }


class InstanceVersionConflict(ValueError):
    """An instance with the same version already exists for the definition."""


@dataclass(frozen=True)
class InstanceDataResult:
    instance: CurveInstance
    rows_written: int
    rows_skipped: int
    rows_replaced: int


@dataclass(frozen=True)
class PointUpdate:
    point_id: int
    instance_id: int
    value: float
    updated_at: datetime


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _definition_record(row: Any) -> dict[str, Any]:
    record = dict(row._mapping)
    record["definition_id"] = record.pop("id")
    return record


def _instance_record(row: Any) -> dict[str, Any]:
    record = dict(row._mapping)
    record["instance_id"] = record.pop("id")
    return record


def _declared_or_seen(declared: tuple[str, ...], rows: ValidatedRows, column: str) -> tuple[str, ...]:
    return declared or tuple(dict.fromkeys(str(item[column]) for item in rows.records))


class CurveRepository:
    def __init__(self, engine: Engine, *, trusted_marker: str) -> None:
        self._engine = engine
        self._trusted_marker = trusted_marker

    @property
    def engine(self) -> Engine:
        return self._engine

    def list_locations(self) -> list[dict[str, str]]:
        """Distinct market/location pairs that have an active definition with an ACTIVE instance."""

        has_active_instance = exists().where(
            and_(
                curve_instance.c.definition_id == curve_definition.c.id,
                curve_instance.c.status == InstanceStatus.ACTIVE.value,
            )
        )
        query = (
            select(curve_definition.c.market, curve_definition.c.location)
            .where(curve_definition.c.is_active.is_(True), has_active_instance)
            .distinct()
            .order_by(curve_definition.c.market, curve_definition.c.location)
        )
        with self._engine.connect() as connection:
            rows = connection.execute(query).all()
        return [{"market": str(row.market), "location": str(row.location)} for row in rows]

    def list_definitions(
        self,
        *,
        market: str | None = None,
        location: str | None = None,
        include_inactive: bool = False,
    ) -> list[CurveDefinition]:
        query = select(curve_definition).order_by(curve_definition.c.id)
        if market is not None:
            query = query.where(func.lower(curve_definition.c.market) == market.lower())
        if location is not None:
            query = query.where(func.lower(curve_definition.c.location) == location.lower())
        if not include_inactive:
            query = query.where(curve_definition.c.is_active.is_(True))
        with self._engine.connect() as connection:
            rows = connection.execute(query).all()
        return [build_definition(_definition_record(row)) for row in rows]

    def get_definition(self, definition_id: int) -> CurveDefinition | None:
        query = select(curve_definition).where(curve_definition.c.id == definition_id)
        with self._engine.connect() as connection:
            row = connection.execute(query).first()
        return build_definition(_definition_record(row)) if row is not None else None

    def list_instances(
        self,
        *,
        definition_ids: Sequence[int] | None = None,
        instance_ids: Sequence[int] | None = None,
        include_archived: bool = False,
    ) -> list[CurveInstance]:
        query = select(curve_instance).order_by(curve_instance.c.id)
        if definition_ids is not None:
            query = query.where(curve_instance.c.definition_id.in_(list(definition_ids)))
        if instance_ids is not None:
            query = query.where(curve_instance.c.id.in_(list(instance_ids)))
        if not include_archived:
            query = query.where(curve_instance.c.status != InstanceStatus.ARCHIVED.value)
        with self._engine.connect() as connection:
            rows = connection.execute(query).all()
        return [build_instance(_instance_record(row), trusted_marker=self._trusted_marker) for row in rows]

    def get_instance(self, instance_id: int) -> CurveInstance | None:
        query = select(curve_instance).where(curve_instance.c.id == instance_id)
        with self._engine.connect() as connection:
            row = connection.execute(query).first()
        if row is None:
            return None
        return build_instance(_instance_record(row), trusted_marker=self._trusted_marker)

    def fetch_data(
        self,
        instance_ids: Sequence[int],
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        scenarios: Sequence[str] | None = None,
    ) -> pd.DataFrame:
        """Tall data points for the instances, ordered by instance and timestamp."""

        if not instance_ids:
            return pd.DataFrame(columns=DATA_COLUMNS)

        query = (
            select(
                curve_data.c.id.label("point_id"),
                curve_data.c.instance_id,
                curve_data.c.timestamp,
                curve_data.c.curve_type,
                curve_data.c.commodity,
                curve_data.c.scenario,
                curve_data.c.value,
                curve_data.c.units,
            )
            .where(curve_data.c.instance_id.in_(list(instance_ids)))
            .order_by(curve_data.c.instance_id, curve_data.c.timestamp, curve_data.c.scenario)
        )
        if start is not None:
            query = query.where(curve_data.c.timestamp >= start)
        if end is not None:
            query = query.where(curve_data.c.timestamp <= end)
        if scenarios:
            query = query.where(curve_data.c.scenario.in_(list(scenarios)))

        with self._engine.connect() as connection:
            records = [dict(row._mapping) for row in connection.execute(query)]
        if not records:
            return pd.DataFrame(columns=DATA_COLUMNS)

        frame = tall_frame_from_records(records)
        frame.insert(0, "point_id", [int(item["point_id"]) for item in records])
        return frame

    def export_contexts(self, instance_ids: Sequence[int]) -> dict[int, ExportContext]:
        """Definition and instance pairs keyed by instance id, archived instances included."""

        instances = self.list_instances(instance_ids=list(instance_ids), include_archived=True)
        wanted = {instance.definition_id for instance in instances}
        definitions = {
            item.definition_id: item
            for item in self.list_definitions(include_inactive=True)
            if item.definition_id in wanted
        }
        return {
            instance.instance_id: ExportContext(definition=definitions[instance.definition_id], instance=instance)
            for instance in instances
            if instance.definition_id in definitions
        }

    def mark_dates(self, definition_id: int) -> list[datetime]:
        """Creation timestamps of the definition's non-archived instances."""

        return [item.created_at for item in self.list_instances(definition_ids=[definition_id])]

    def _resolve_definition(self, connection: Connection, upload: ValidatedUpload) -> tuple[int, bool]:
        details = upload.details
        if details.definition_id is not None:
            found = connection.execute(
                select(curve_definition.c.id).where(curve_definition.c.id == details.definition_id)
            ).scalar()
            if found is None:
                raise LookupError(f"Curve definition {details.definition_id} does not exist")
            return int(found), False

        curve_name = details.curve_name or f"{details.market} {details.location} {details.value_type}"
        existing = connection.execute(
            select(curve_definition.c.id).where(
                curve_definition.c.market == details.market,
                curve_definition.c.location == details.location,
                curve_definition.c.curve_name == curve_name,
            )
        ).scalar()
        if existing is not None:
            return int(existing), False

        created = connection.execute(
            insert(curve_definition).values(
                curve_name=curve_name,
                market=details.market,
                location=details.location,
                commodity=details.value_type,
                units=details.units,
                granularity=details.granularity,
                is_active=True,
                update_frequency=details.update_frequency.value if details.update_frequency else None,
                description=details.description,
                created_at=_utc_now(),
            )
        )
        return int(created.inserted_primary_key[0]), True

    def create_upload(self, upload: ValidatedUpload) -> UploadResult:
        """Write the instance and all of its data rows in one transaction."""

        details = upload.details
        with self._engine.begin() as connection:
            definition_id, created_definition = self._resolve_definition(connection, upload)
            inserted = connection.execute(
                insert(curve_instance).values(
                    definition_id=definition_id,
                    instance_version=details.resolved_instance_version(),
                    status=details.status.value,
                    created_at=details.mark_timestamp(),
                    created_by=details.curve_creator,
                    curve_types=[details.mark_type],
                    commodities=[details.value_type],
                    scenarios=[details.mark_case],
                    granularity=details.granularity,
                    degradation_type=details.degradation_type,
                )
            )
            instance_id = int(inserted.inserted_primary_key[0])
            rows = upload.to_tall_records(instance_id)
            if rows:
                connection.execute(insert(curve_data), rows)

        LOGGER.info(
            "Stored upload instance_id=%s definition_id=%s rows=%s",
            instance_id,
            definition_id,
            len(rows),
        )
        return UploadResult(
            definition_id=definition_id,
            instance_id=instance_id,
            rows_written=len(rows),
            created_definition=created_definition,
        )

    def create_draft_instance(
        self,
        *,
        definition_id: int,
        instance_version: str,
        created_by: str | None,
        curve_types: Sequence[str] = (),
        commodities: Sequence[str] = (),
        scenarios: Sequence[str] = (),
        granularity: str | None = None,
        degradation_type: str | None = None,
    ) -> CurveInstance:
        """Declare a DRAFT instance whose labels later gate `replace_instance_data`."""

        with self._engine.begin() as connection:
            found = connection.execute(
                select(curve_definition.c.id).where(curve_definition.c.id == definition_id)
            ).scalar()
            if found is None:
                raise LookupError(f"Curve definition {definition_id} does not exist")
            clash = connection.execute(
                select(curve_instance.c.id).where(
                    curve_instance.c.definition_id == definition_id,
                    curve_instance.c.instance_version == instance_version,
                )
            ).scalar()
            if clash is not None:
                raise InstanceVersionConflict(
                    f"Instance version '{instance_version}' already exists for definition {definition_id}"
                )
            inserted = connection.execute(
                insert(curve_instance).values(
                    definition_id=definition_id,
                    instance_version=instance_version,
                    status=InstanceStatus.DRAFT.value,
                    created_at=_utc_now(),
                    created_by=created_by,
                    curve_types=list(curve_types),
                    commodities=list(commodities),
                    scenarios=list(scenarios),
                    granularity=granularity,
                    degradation_type=degradation_type,
                )
            )
            instance_id = int(inserted.inserted_primary_key[0])
            row = connection.execute(select(curve_instance).where(curve_instance.c.id == instance_id)).one()
        LOGGER.info("Created DRAFT instance %s for definition %s", instance_id, definition_id)
        return build_instance(_instance_record(row), trusted_marker=self._trusted_marker)

    def replace_instance_data(self, instance_id: int, rows: ValidatedRows) -> InstanceDataResult | None:
        """Swap the instance's data rows and promote it to ACTIVE in one transaction.

        Undeclared label lists are filled from the written rows. Raises ValueError for archived instances.
        """

        with self._engine.begin() as connection:
            row = connection.execute(select(curve_instance).where(curve_instance.c.id == instance_id)).first()
            if row is None:
                return None
            current = build_instance(_instance_record(row), trusted_marker=self._trusted_marker)
            moved = current.with_status(InstanceStatus.ACTIVE)
            labels = {
                "curve_types": _declared_or_seen(current.curve_types, rows, "curve_type"),
                "commodities": _declared_or_seen(current.commodities, rows, "commodity"),
                "scenarios": _declared_or_seen(current.scenarios, rows, "scenario"),
            }
            replaced = connection.execute(delete(curve_data).where(curve_data.c.instance_id == instance_id)).rowcount
            connection.execute(
                insert(curve_data), [{**item, "instance_id": instance_id} for item in rows.records]
            )
            connection.execute(
                update(curve_instance)
                .where(curve_instance.c.id == instance_id)
                .values(status=moved.status.value, **{key: list(value) for key, value in labels.items()})
            )
        LOGGER.info(
            "Stored %s rows for instance %s (%s replaced, %s blank skipped)",
            len(rows.records),
            instance_id,
            replaced,
            rows.skipped,
        )
        return InstanceDataResult(
            instance=replace(moved, **labels),
            rows_written=len(rows.records),
            rows_skipped=rows.skipped,
            rows_replaced=int(replaced or 0),
        )

    def update_point(self, point_id: int, value: float) -> PointUpdate | None:
        """Overwrite one stored value; the latest write wins."""

        stamp = _utc_now()
        with self._engine.begin() as connection:
            result = connection.execute(
                update(curve_data)
                .where(curve_data.c.id == point_id)
                .values(value=value, updated_at=stamp)
            )
            if result.rowcount == 0:
                return None
            instance_id = connection.execute(
                select(curve_data.c.instance_id).where(curve_data.c.id == point_id)
            ).scalar_one()
        return PointUpdate(point_id=point_id, instance_id=int(instance_id), value=value, updated_at=stamp)

    def set_instance_status(self, instance_id: int, status: InstanceStatus) -> CurveInstance | None:
        """Apply a lifecycle transition; raises ValueError when the transition is not allowed."""

        with self._engine.begin() as connection:
            row = connection.execute(select(curve_instance).where(curve_instance.c.id == instance_id)).first()
            if row is None:
                return None
            current = build_instance(_instance_record(row), trusted_marker=self._trusted_marker)
            moved = current.with_status(status)
            connection.execute(
                update(curve_instance).where(curve_instance.c.id == instance_id).values(status=moved.status.value)
            )
        LOGGER.info("Instance %s moved from %s to %s", instance_id, current.status.value, moved.status.value)
        return moved
