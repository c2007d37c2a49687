"""Data-source configuration and the registry built from it.

Each data source names an external feed (satellite, soil, weather,
pest, maintenance task) together with the schedule and HTTP target the
external scheduler should call.  The registry is read-only at runtime;
changing it means redeploying configuration.

The YAML layout follows the deployed config file::

    ingestionSettings:
      retryPolicy:
        maxRetries: 3
        backoffInterval: "30s"
      parallelIngestions: 5

    dataSources:
      weather:
        enabled: true
        schedule: "0/30 * * * *"
        timeZone: "UTC"
        httpMethod: "GET"
        endpoint: "https://api.openweathermap.org/data/2.5/weather?lat={lat}&lon={lon}"

``ingestionSettings.retryPolicy`` is the default for sources that do
not declare their own ``retryPolicy``.
"""

from __future__ import annotations

import enum
import logging
import re
from collections.abc import Iterable, Iterator, Mapping
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from vine_harvester.core.config import ConfigValidationError
from vine_harvester.core.constants import (
    DEFAULT_BACKOFF_BASE_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_PARALLEL_INGESTIONS,
)
from vine_harvester.core.exceptions import InvalidArgumentError
from vine_harvester.models.jobs import normalize_job_name
from vine_harvester.utils.helpers import parse_duration

logger = logging.getLogger("vine_harvester.models.datasource")

_CRON_FIELD = re.compile(r"^[\w*/,\-?#]+$")

CRON_FIELD_COUNT = 5


class HttpMethod(str, enum.Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"


class RetryPolicy(BaseModel):
    """Bounded retry with exponential backoff for job creation.

    Attributes:
        max_retries: Retries after the first attempt (total attempts =
            ``max_retries + 1``).
        backoff_base: Delay before the first retry; doubles each time.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES,
        ge=0,
        validation_alias=AliasChoices("max_retries", "maxRetries"),
    )
    backoff_base: timedelta = Field(
        default=timedelta(seconds=DEFAULT_BACKOFF_BASE_SECONDS),
        validation_alias=AliasChoices("backoff_base", "backoffBase", "backoffInterval"),
    )

    @field_validator("backoff_base", mode="before")
    @classmethod
    def _parse_backoff(cls, value: Any) -> timedelta:
        try:
            return parse_duration(value)
        except InvalidArgumentError as exc:
            raise ValueError(exc.message) from exc

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt *attempt* (0-indexed)."""
        return self.backoff_base.total_seconds() * (2**attempt)


class DataSourceConfig(BaseModel):
    """One external data source and its scheduler job definition.

    ``name`` is the registry key and, after ``normalize_job_name``, the
    scheduler job id.  ``endpoint`` may contain ``{lat}``, ``{lon}``,
    ``{date}``, ``{polygon}`` or ``{apiKey}`` placeholders that callers
    resolve with ``render_endpoint`` before use.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str = Field(min_length=1)
    enabled: bool = False
    schedule: str
    time_zone: str = Field(default="", validation_alias=AliasChoices("time_zone", "timeZone"))
    http_method: HttpMethod = Field(
        default=HttpMethod.GET, validation_alias=AliasChoices("http_method", "httpMethod")
    )
    endpoint: str = Field(min_length=1)
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = None
    description: str = ""
    api_key: str = Field(default="", validation_alias=AliasChoices("api_key", "apiKey"))
    retry_policy: RetryPolicy = Field(
        default_factory=RetryPolicy,
        validation_alias=AliasChoices("retry_policy", "retryPolicy"),
    )

    @field_validator("schedule")
    @classmethod
    def _check_cron(cls, value: str) -> str:
        fields = value.split()
        if len(fields) != CRON_FIELD_COUNT:
            msg = f"schedule must be a {CRON_FIELD_COUNT}-field cron expression, got {value!r}"
            raise ValueError(msg)
        for part in fields:
            if not _CRON_FIELD.match(part):
                msg = f"invalid cron field {part!r} in {value!r}"
                raise ValueError(msg)
        return value

    @field_validator("http_method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @property
    def job_name(self) -> str:
        """Canonical scheduler job id for this source."""
        return normalize_job_name(self.name)


class DataSourceRegistry:
    """Ordered, read-only collection of data sources keyed by name.

    Raises ``ConfigValidationError`` on construction if two sources share
    a name or normalise to the same job name.
    """

    def __init__(
        self,
        sources: Iterable[DataSourceConfig] = (),
        *,
        parallel_ingestions: int = DEFAULT_PARALLEL_INGESTIONS,
    ) -> None:
        self._sources: dict[str, DataSourceConfig] = {}
        job_names: dict[str, str] = {}
        for source in sources:
            if source.name in self._sources:
                raise ConfigValidationError(
                    f"dataSources.{source.name}", source.name, "duplicate data source name"
                )
            other = job_names.get(source.job_name)
            if other is not None:
                raise ConfigValidationError(
                    f"dataSources.{source.name}",
                    source.name,
                    f"normalises to job name {source.job_name!r}, already used by {other!r}",
                )
            job_names[source.job_name] = source.name
            self._sources[source.name] = source
        self.parallel_ingestions = parallel_ingestions

    @classmethod
    def from_mapping(cls, document: Mapping[str, Any]) -> DataSourceRegistry:
        """Build a registry from a parsed config document.

        Raises:
            ConfigValidationError: If the document or any source is invalid.
        """
        settings = document.get("ingestionSettings") or {}
        if not isinstance(settings, Mapping):
            raise ConfigValidationError("ingestionSettings", settings, "must be a mapping")

        try:
            default_policy = RetryPolicy.model_validate(settings.get("retryPolicy") or {})
        except PydanticValidationError as exc:
            raise ConfigValidationError(
                "ingestionSettings.retryPolicy", settings.get("retryPolicy"), _first_error(exc)
            ) from exc

        parallel = settings.get("parallelIngestions", DEFAULT_PARALLEL_INGESTIONS)
        if not isinstance(parallel, int) or parallel <= 0:
            raise ConfigValidationError(
                "ingestionSettings.parallelIngestions", parallel, "must be a positive integer"
            )

        raw_sources = document.get("dataSources") or {}
        if not isinstance(raw_sources, Mapping):
            raise ConfigValidationError("dataSources", raw_sources, "must be a mapping of name -> source")

        sources: list[DataSourceConfig] = []
        for name, raw in raw_sources.items():
            if not isinstance(raw, Mapping):
                raise ConfigValidationError(f"dataSources.{name}", raw, "must be a mapping")
            data = {"name": str(name), **raw}
            if "retryPolicy" not in data and "retry_policy" not in data:
                data["retry_policy"] = default_policy
            try:
                sources.append(DataSourceConfig.model_validate(data))
            except PydanticValidationError as exc:
                raise ConfigValidationError(f"dataSources.{name}", raw, _first_error(exc)) from exc

        registry = cls(sources, parallel_ingestions=parallel)
        logger.info(
            "Data-source registry loaded | sources=%d | enabled=%d",
            len(registry),
            len(registry.enabled()),
        )
        return registry

    @classmethod
    def from_yaml(cls, path: str | Path) -> DataSourceRegistry:
        """Load a registry from a YAML config file.

        Raises:
            ConfigValidationError: If the file is missing, unparsable or invalid.
        """
        config_path = Path(path)
        try:
            document = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        except OSError as exc:
            raise ConfigValidationError("CONFIG_PATH", str(path), f"cannot read file: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigValidationError("CONFIG_PATH", str(path), f"invalid YAML: {exc}") from exc
        if not isinstance(document, Mapping):
            raise ConfigValidationError("CONFIG_PATH", str(path), "top level must be a mapping")
        return cls.from_mapping(document)

    def __iter__(self) -> Iterator[DataSourceConfig]:
        return iter(self._sources.values())

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, name: object) -> bool:
        return name in self._sources

    def get(self, name: str) -> DataSourceConfig | None:
        return self._sources.get(name)

    def names(self) -> list[str]:
        return list(self._sources)

    def enabled(self) -> list[DataSourceConfig]:
        """Enabled sources in declaration order."""
        return [s for s in self._sources.values() if s.enabled]

    def disabled(self) -> list[DataSourceConfig]:
        return [s for s in self._sources.values() if not s.enabled]


def _first_error(exc: PydanticValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", "")
