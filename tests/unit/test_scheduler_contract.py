"""Contract test suite for scheduler adapters.

``SchedulerContractTests`` is an abstract mixin that any concrete
adapter must pass.  It verifies the get -> create -> delete lifecycle
and the typed errors without depending on a specific scheduler.

Usage: adapter test module::

    class TestMyAdapter(SchedulerContractTests, unittest.TestCase):
        def create_adapter(self):
            return MyAdapter(SchedulerConfig(name="mine"))

The in-memory adapter runs the full contract below; the Cloud Scheduler
adapter runs it against an ``httpx.MockTransport`` fake in
``test_cloud_scheduler``.
"""

from __future__ import annotations

import abc
import unittest

from tests.factories import make_source
from vine_harvester.core.context import OperationContext
from vine_harvester.core.exceptions import OperationCancelledError, UnavailableError
from vine_harvester.models.jobs import JobDescriptor
from vine_harvester.scheduler.base import (
    JobAlreadyExistsError,
    JobNotFoundError,
    SchedulerAdapter,
    SchedulerConfig,
)
from vine_harvester.scheduler.memory import InMemorySchedulerAdapter

# ---------------------------------------------------------------------------
# Contract mixin
# ---------------------------------------------------------------------------


class SchedulerContractTests(abc.ABC):
    """Abstract mixin verifying the SchedulerAdapter contract."""

    @abc.abstractmethod
    def create_adapter(self) -> SchedulerAdapter:
        """Return an adapter with no jobs."""

    def _descriptor(self, name: str = "weather") -> JobDescriptor:
        return JobDescriptor.from_config(make_source(name))

    def test_get_missing_job_raises_not_found(self) -> None:
        adapter = self.create_adapter()
        with self.assertRaises(JobNotFoundError) as cm:  # type: ignore[attr-defined]
            adapter.get_job("weather")
        self.assertEqual(cm.exception.job_name, "weather")  # type: ignore[attr-defined]

    def test_create_then_get(self) -> None:
        adapter = self.create_adapter()
        created = adapter.create_job(self._descriptor())
        fetched = adapter.get_job("weather")
        self.assertEqual(created.fully_qualified_name, adapter.qualify("weather"))  # type: ignore[attr-defined]
        self.assertEqual(fetched.fully_qualified_name, created.fully_qualified_name)  # type: ignore[attr-defined]
        self.assertEqual(fetched.schedule, "0 */6 * * *")  # type: ignore[attr-defined]
        self.assertEqual(fetched.time_zone, "UTC")  # type: ignore[attr-defined]

    def test_create_duplicate_raises_already_exists(self) -> None:
        adapter = self.create_adapter()
        adapter.create_job(self._descriptor())
        with self.assertRaises(JobAlreadyExistsError):  # type: ignore[attr-defined]
            adapter.create_job(self._descriptor())

    def test_delete(self) -> None:
        adapter = self.create_adapter()
        adapter.create_job(self._descriptor())
        adapter.delete_job("weather")
        with self.assertRaises(JobNotFoundError):  # type: ignore[attr-defined]
            adapter.get_job("weather")

    def test_delete_missing_raises_not_found(self) -> None:
        adapter = self.create_adapter()
        with self.assertRaises(JobNotFoundError):  # type: ignore[attr-defined]
            adapter.delete_job("weather")

    def test_cancelled_context_rejected(self) -> None:
        adapter = self.create_adapter()
        ctx = OperationContext()
        ctx.cancel()
        with self.assertRaises(OperationCancelledError):  # type: ignore[attr-defined]
            adapter.get_job("weather", ctx)

    def test_qualified_name_format(self) -> None:
        adapter = self.create_adapter()
        project = adapter.config.project_id
        location = adapter.config.location_id
        self.assertEqual(  # type: ignore[attr-defined]
            adapter.qualify("soil"), f"projects/{project}/locations/{location}/jobs/soil"
        )


# ---------------------------------------------------------------------------
# In-memory adapter
# ---------------------------------------------------------------------------


class TestInMemorySchedulerContract(SchedulerContractTests, unittest.TestCase):
    def create_adapter(self) -> SchedulerAdapter:
        return InMemorySchedulerAdapter(SchedulerConfig(name="memory", project_id="p", location_id="l"))


class TestInMemorySchedulerHooks(unittest.TestCase):
    def setUp(self) -> None:
        self.adapter = InMemorySchedulerAdapter()

    def test_default_config(self) -> None:
        assert self.adapter.qualify("x") == "projects/local/locations/local/jobs/x"

    def test_records_calls(self) -> None:
        with self.assertRaises(JobNotFoundError):
            self.adapter.get_job("weather")
        self.adapter.create_job(JobDescriptor.from_config(make_source("weather")))
        assert self.adapter.calls == [("get_job", "weather"), ("create_job", "weather")]
        assert self.adapter.call_count("create_job") == 1
        assert self.adapter.call_count("get_job", "soil") == 0

    def test_injected_failures_are_consumed_in_order(self) -> None:
        self.adapter.fail_next("create_job", UnavailableError("one"), UnavailableError("two"))
        descriptor = JobDescriptor.from_config(make_source("weather"))
        with self.assertRaisesRegex(UnavailableError, "one"):
            self.adapter.create_job(descriptor)
        with self.assertRaisesRegex(UnavailableError, "two"):
            self.adapter.create_job(descriptor)
        self.adapter.create_job(descriptor)
        assert "weather" in self.adapter.jobs()

    def test_fail_next_unknown_operation(self) -> None:
        with self.assertRaises(ValueError):
            self.adapter.fail_next("update_job", UnavailableError("x"))
