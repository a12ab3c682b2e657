"""Tests for StrEnum types in the collection-monitoring domain.

Covers:
- Wire values of every member
- Value roundtrip through a Pydantic model
- Invalid values rejected
"""

from enum import StrEnum

import pytest
from pydantic import BaseModel, ValidationError

from Collection_Watch.models.enums import (
    DiscoveryPhase,
    PartitionType,
    PriceUpdateType,
    ScheduleOutcome,
)


class _EnumTestModel(BaseModel):
    """Helper model for testing enum JSON serialization."""

    partition: PartitionType
    phase: DiscoveryPhase


class TestPartitionType:
    """Tests for PartitionType enum."""

    def test_values(self) -> None:
        assert PartitionType.REGULAR == "regular"
        assert PartitionType.PARTNER == "partner"
        assert PartitionType.TIME_BOXED == "regular_snowball"

    def test_is_strenum(self) -> None:
        assert issubclass(PartitionType, StrEnum)

    def test_member_count(self) -> None:
        assert len(PartitionType) == 3

    def test_invalid_value_rejected(self) -> None:
        with pytest.raises(ValueError, match="snowball"):
            PartitionType("snowball")


class TestOtherEnums:
    def test_discovery_phases(self) -> None:
        assert [p.value for p in DiscoveryPhase] == ["uninitialized", "initializing", "ready"]

    def test_schedule_outcomes(self) -> None:
        assert ScheduleOutcome.ALREADY_SCHEDULED == "already_scheduled"
        assert ScheduleOutcome.ALREADY_FIRED == "already_fired"
        assert len(ScheduleOutcome) == 6

    def test_price_update_types(self) -> None:
        assert PriceUpdateType("add") is PriceUpdateType.ADD
        assert PriceUpdateType("remove") is PriceUpdateType.REMOVE


class TestSerialization:
    def test_json_roundtrip(self) -> None:
        model = _EnumTestModel(partition=PartitionType.TIME_BOXED, phase=DiscoveryPhase.READY)
        dumped = model.model_dump_json()
        assert '"regular_snowball"' in dumped
        assert _EnumTestModel.model_validate_json(dumped) == model

    def test_invalid_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _EnumTestModel.model_validate({"partition": "vip", "phase": "ready"})
