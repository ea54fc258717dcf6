"""
snifferdeck/data/models.py
Entities shared by the store, the codec and the control service client.

SnifferConfig is what the backend persists. PartialSnifferConfig is the same
shape with every field optional, which is what a draft holds while the user
is still typing. ConfigRow wraps a partial config with the transient
lifecycle flags the sync controller reasons about.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_PORT = 65535


class SnifferConfig(BaseModel):
    """Persisted configuration of one sniffer. ``port`` is the natural key."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ""
    port: int = Field(gt=0, le=MAX_PORT)
    downstream_url: str = Field(alias="downstreamUrl", min_length=1)

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, v: Any) -> Any:
        # Some backends hand ids back as numbers
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v

    @field_validator("name", mode="before")
    @classmethod
    def _name_never_null(cls, v: Any) -> Any:
        return "" if v is None else v

    def to_wire(self) -> Dict[str, Any]:
        """Request body for POST/PUT /sniffers."""
        return {
            "id": self.id,
            "name": self.name,
            "port": self.port,
            "downstreamUrl": self.downstream_url,
        }


class SnifferStatus(SnifferConfig):
    """One entry of ``GET /sniffers``: the config plus its running state."""

    is_started: bool = Field(default=False, alias="isStarted")


class PartialSnifferConfig(BaseModel):
    """A SnifferConfig under construction; unset fields are None."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    name: Optional[str] = None
    port: Optional[int] = Field(default=None, gt=0, le=MAX_PORT)
    downstream_url: Optional[str] = Field(default=None, alias="downstreamUrl")

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v

    @property
    def is_complete(self) -> bool:
        """Both required fields are set, so the save affordance may be enabled."""
        return self.port is not None and bool(self.downstream_url)

    def to_config(self) -> SnifferConfig:
        """
        Complete this draft into a SnifferConfig.

        ``name`` defaults to "" and ``id`` to the port as text.

        Raises:
            ValueError: port or downstream_url is unset
        """
        if not self.is_complete:
            raise ValueError("port and downstreamUrl must be set before saving")
        return SnifferConfig(
            id=self.id or str(self.port),
            name=self.name or "",
            port=self.port,
            downstream_url=self.downstream_url,
        )

    def to_document(self) -> Dict[str, Any]:
        """Export projection: unset fields are omitted, key order is fixed."""
        data = {
            "id": self.id,
            "name": self.name,
            "port": self.port,
            "downstreamUrl": self.downstream_url,
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_config(cls, config: SnifferConfig) -> "PartialSnifferConfig":
        return cls(
            id=config.id,
            name=config.name,
            port=config.port,
            downstream_url=config.downstream_url,
        )


class RowField(str, Enum):
    """The three attributes a field editor can bind to."""

    PORT = "port"
    NAME = "name"
    DOWNSTREAM_URL = "downstreamUrl"

    @property
    def attr(self) -> str:
        return "downstream_url" if self is RowField.DOWNSTREAM_URL else self.value

    @classmethod
    def parse(cls, value: Union["RowField", str]) -> "RowField":
        if isinstance(value, RowField):
            return value
        if value == "downstream_url":
            return cls.DOWNSTREAM_URL
        return cls(value)


def coerce_port(value: Any) -> Optional[int]:
    """
    Turn raw editor input into a port.

    Anything that is not a whole number in 1..65535 becomes None, which keeps
    the save/edit affordance disabled until the input is fixed.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        port = value
    elif isinstance(value, float):
        if not value.is_integer():
            return None
        port = int(value)
    else:
        text = str(value).strip()
        try:
            port = int(text)
        except ValueError:
            return None
    if port <= 0 or port > MAX_PORT:
        return None
    return port


def new_draft_key() -> str:
    return f"draft:{uuid.uuid4().hex[:12]}"


def port_key(port: int) -> str:
    return f"port:{port}"


@dataclass
class ConfigRow:
    """
    A configuration plus its lifecycle and display flags.

    ``key`` is the row's identity for anything that resolves after an await:
    ``port:<n>`` for persisted rows (the port the backend reported) and a
    random ``draft:`` key for drafts.
    """

    config: PartialSnifferConfig = field(default_factory=PartialSnifferConfig)
    is_new: bool = True
    is_started: bool = False
    is_editing: bool = False
    is_collapsed: bool = False
    persisted_port: Optional[int] = None
    key: str = field(default_factory=new_draft_key)

    @classmethod
    def draft(
        cls,
        config: Optional[PartialSnifferConfig] = None,
        *,
        editing: bool = True,
        collapsed: bool = False,
    ) -> "ConfigRow":
        return cls(
            config=config or PartialSnifferConfig(),
            is_new=True,
            is_started=False,
            is_editing=editing,
            is_collapsed=collapsed,
        )

    @classmethod
    def from_status(cls, status: SnifferStatus) -> "ConfigRow":
        return cls(
            config=PartialSnifferConfig.from_config(status),
            is_new=False,
            is_started=status.is_started,
            is_editing=False,
            is_collapsed=True,
            persisted_port=status.port,
            key=port_key(status.port),
        )

    @property
    def display_name(self) -> str:
        return self.config.name or "No Name"

    def copy(self) -> "ConfigRow":
        return replace(self, config=self.config.model_copy())
