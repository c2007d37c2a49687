"""Tests for the unified exception taxonomy.

Validates:
- HarvesterError hierarchy and structured attributes
- Category classification (validation, transient, permanent, contract)
- ``to_error_dict()`` produces stable payload keys
- Retry semantics are consistent with taxonomy class
- All store/scheduler/query exceptions are HarvesterError subclasses
"""

from __future__ import annotations

from typing import ClassVar

import pytest

from vine_harvester.core.config import ConfigValidationError
from vine_harvester.core.exceptions import (
    ConflictError,
    ContractError,
    HarvesterError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
    OperationCancelledError,
    PermanentError,
    TransientError,
    UnavailableError,
    ValidationError,
)
from vine_harvester.models.geometry import GeometryError
from vine_harvester.models.observation import ModelValidationError, ObservationKind
from vine_harvester.query.correlation import SnapshotIncompleteError
from vine_harvester.scheduler.base import (
    JobAlreadyExistsError,
    JobNotFoundError,
    SchedulerAuthError,
    SchedulerError,
    SchedulerRequestError,
    SchedulerUnavailableError,
)
from vine_harvester.storage.base import ObservationNotFoundError, VineyardNotFoundError


class TestHarvesterErrorBase:
    def test_default_attributes(self) -> None:
        err = HarvesterError("boom")
        assert err.message == "boom"
        assert err.stage == ""
        assert err.code == ""
        assert err.retryable is False

    def test_custom_attributes(self) -> None:
        err = HarvesterError("fail", stage="observation_store", code="X", retryable=True)
        assert err.to_error_dict() == {
            "category": "transient",
            "code": "X",
            "stage": "observation_store",
            "message": "fail",
            "retryable": True,
        }

    def test_str_is_message(self) -> None:
        assert str(HarvesterError("boom")) == "boom"


class TestErrorKinds:
    CASES: ClassVar[list[tuple[type[HarvesterError], str, str, bool]]] = [
        (InvalidArgumentError, "validation", "INVALID_ARGUMENT", False),
        (NotFoundError, "permanent", "NOT_FOUND", False),
        (ConflictError, "permanent", "CONFLICT", False),
        (UnavailableError, "transient", "UNAVAILABLE", True),
        (InternalError, "permanent", "INTERNAL", False),
        (ContractError, "contract", "", False),
    ]

    @pytest.mark.parametrize(("cls", "category", "code", "retryable"), CASES)
    def test_kind(self, cls: type[HarvesterError], category: str, code: str, retryable: bool) -> None:
        err = cls("x")
        assert err.category == category
        assert err.code == code
        assert err.retryable is retryable

    def test_retryable_can_be_overridden(self) -> None:
        assert TransientError("x", retryable=False).retryable is False

    def test_cancelled_error(self) -> None:
        err = OperationCancelledError("stop")
        assert err.code == "CANCELLED"
        assert err.category == "permanent"


class TestSchedulerErrors:
    def test_not_found(self) -> None:
        err = JobNotFoundError("gone", job_name="weather")
        assert isinstance(err, NotFoundError)
        assert isinstance(err, SchedulerError)
        assert err.job_name == "weather"
        assert err.stage == "scheduler"
        assert err.code == "JOB_NOT_FOUND"
        assert err.retryable is False

    def test_already_exists_is_conflict(self) -> None:
        assert isinstance(JobAlreadyExistsError("x"), ConflictError)

    def test_unavailable_is_retryable(self) -> None:
        err = SchedulerUnavailableError("x")
        assert err.retryable is True
        assert err.category == "transient"

    def test_auth_is_permanent(self) -> None:
        err = SchedulerAuthError("x")
        assert isinstance(err, PermanentError)
        assert err.retryable is False

    def test_request_error_is_invalid_argument(self) -> None:
        err = SchedulerRequestError("x")
        assert isinstance(err, InvalidArgumentError)
        assert err.category == "validation"


class TestDomainErrors:
    def test_model_and_geometry_errors_are_validation(self) -> None:
        assert issubclass(ModelValidationError, ValidationError)
        assert issubclass(GeometryError, ValidationError)

    def test_store_not_found_errors(self) -> None:
        err = ObservationNotFoundError(ObservationKind.SOIL, 4)
        assert isinstance(err, NotFoundError)
        assert err.observation_id == 4
        assert "soil observation 4" in err.message
        assert VineyardNotFoundError(9).vineyard_id == 9

    def test_config_error_is_harvester_error(self) -> None:
        assert issubclass(ConfigValidationError, HarvesterError)

    def test_snapshot_incomplete_retryable_only_if_all_causes_are(self) -> None:
        transient = SnapshotIncompleteError(
            1, {ObservationKind.SOIL: UnavailableError("a"), ObservationKind.PEST: UnavailableError("b")}
        )
        assert transient.retryable is True
        mixed = SnapshotIncompleteError(
            1, {ObservationKind.SOIL: UnavailableError("a"), ObservationKind.PEST: RuntimeError("b")}
        )
        assert mixed.retryable is False
        assert mixed.failed_kinds == {ObservationKind.SOIL, ObservationKind.PEST}
        assert "pest, soil" in mixed.message
