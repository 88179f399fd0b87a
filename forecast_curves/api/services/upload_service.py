# This file implements both upload flows: one-shot price points, and a declared DRAFT instance fed labelled rows.
# Validation failures raise before any database work starts; writes happen in one transaction.

from __future__ import annotations

import logging
from typing import Any

from forecast_curves.api.api_config import ApiConfig
from forecast_curves.curves.curve_config import CurveConfig
from forecast_curves.api.services.curve_service import instance_payload
from forecast_curves.curves.models import InstanceStatus
from forecast_curves.ingestion.upload_checks import price_points_from_csv, validate_instance_rows, validate_upload
from forecast_curves.storage.repository import CurveRepository

LOGGER = logging.getLogger("api")

CSV_PAYLOAD_KEY = "pricePointsCsv"


class UploadService:
    """Validation plus transactional write for new curve instances."""

    def __init__(self, *, config: ApiConfig, curve_config: CurveConfig, repository: CurveRepository) -> None:
        self.config = config
        self.curve_config = curve_config
        self.repository = repository

    def upload(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Returns the write summary; raises UploadValidationError or LookupError."""

        body = dict(payload)
        csv_text = body.pop(CSV_PAYLOAD_KEY, None)
        if isinstance(csv_text, str):
            body["pricePoints"] = price_points_from_csv(csv_text)

        validated = validate_upload(
            body,
            min_value=self.curve_config.upload_min_value,
            max_value=self.curve_config.upload_max_value,
            date_format=self.curve_config.upload_date_format,
        )
        result = self.repository.create_upload(validated)
        LOGGER.info("Upload accepted for %s/%s", validated.details.market, validated.details.location)
        return result.to_dict()

    def create_instance(
        self,
        *,
        definition_id: int,
        instance_version: str,
        created_by: str | None,
        curve_types: list[str],
        commodities: list[str],
        scenarios: list[str],
        granularity: str | None = None,
        degradation_type: str | None = None,
    ) -> dict[str, Any]:
        """Declare a DRAFT instance; raises LookupError or InstanceVersionConflict."""

        created = self.repository.create_draft_instance(
            definition_id=definition_id,
            instance_version=instance_version,
            created_by=created_by,
            curve_types=curve_types,
            commodities=commodities,
            scenarios=scenarios,
            granularity=granularity,
            degradation_type=degradation_type,
        )
        return instance_payload(created)

    def upload_instance_data(self, instance_id: int, payload: dict[str, Any]) -> dict[str, Any] | None:
        """Validate labelled rows against the instance, then replace its data and promote it to ACTIVE.

        Returns None for an unknown instance; raises ValueError for an archived one.
        """

        instance = self.repository.get_instance(instance_id)
        if instance is None:
            return None
        if instance.status is InstanceStatus.ARCHIVED:
            raise ValueError(f"Instance {instance_id} is ARCHIVED and cannot take new data")
        definition = self.repository.get_definition(instance.definition_id)

        rows = validate_instance_rows(
            payload,
            instance,
            min_value=self.curve_config.upload_min_value,
            max_value=self.curve_config.upload_max_value,
            default_units=definition.units if definition is not None else None,
        )
        result = self.repository.replace_instance_data(instance_id, rows)
        if result is None:
            return None
        return {
            "instance": instance_payload(result.instance),
            "rows_written": result.rows_written,
            "rows_skipped": result.rows_skipped,
            "rows_replaced": result.rows_replaced,
        }
