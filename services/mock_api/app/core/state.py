from __future__ import annotations
import dataclasses
import logging
import threading
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .faults import MockConfig, NetworkFault

log = logging.getLogger(__name__)

# ten minutes; anything longer is better modeled with the timeout fault
MAX_DELAY_MS = 600_000


class InvalidConfiguration(ValueError):
    """Raised when a configuration update carries an unusable field.

    The whole update is rejected; nothing is applied.
    """

    def __init__(self, field: str, reason: str):
        super().__init__(f"invalid {field}: {reason}")
        self.field = field
        self.reason = reason


class ConfigUpdate(BaseModel):
    """Partial update as sent on the control channel (wire names as aliases)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    status_code: int | None = Field(None, alias="statusCode")
    delay_ms: int | None = Field(None, alias="delay", ge=0, le=MAX_DELAY_MS)
    network_fault: NetworkFault | None = Field(None, alias="networkError")

    @field_validator("status_code", "delay_ms", mode="before")
    @classmethod
    def reject_booleans(cls, v: Any) -> Any:
        # lax int mode would read true/false as 1/0
        if isinstance(v, bool):
            raise ValueError("must be an integer, not a boolean")
        return v

    @classmethod
    def parse(cls, changes: Mapping[str, Any]) -> dict[str, Any]:
        """
        Validate `changes` and return only the fields that were provided.
        `null` counts as not provided.
        """
        try:
            update = cls.model_validate(changes)
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(p) for p in first["loc"]) or "body"
            raise InvalidConfiguration(field, first["msg"]) from None
        return update.model_dump(exclude_none=True)


class ConfigStore:
    """
    Owns the single mutable mock configuration.

    Snapshots are frozen dataclasses, so `get()` hands out a value and every
    `update()` swaps the whole record under the lock.
    """

    def __init__(self, initial: MockConfig | None = None):
        self._lock = threading.Lock()
        self._config = initial or MockConfig()

    def get(self) -> MockConfig:
        with self._lock:
            return self._config

    def update(self, changes: Mapping[str, Any]) -> MockConfig:
        try:
            fields = ConfigUpdate.parse(changes)
        except InvalidConfiguration as e:
            log.warning("rejected configuration update %r: %s", changes, e)
            raise

        with self._lock:
            old = self._config
            new = dataclasses.replace(old, **fields)
            self._config = new

        log.info("configuration updated: %s -> %s", old.to_wire(), new.to_wire())
        return new

    def reset(self) -> MockConfig:
        with self._lock:
            old = self._config
            self._config = MockConfig()
            new = self._config
        log.info("configuration reset: %s -> %s", old.to_wire(), new.to_wire())
        return new
