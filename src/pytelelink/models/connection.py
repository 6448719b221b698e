"""Connection descriptor returned by the control plane."""

from __future__ import annotations

from pydantic import AliasChoices, Field

from pytelelink.models._base import TelelinkBaseModel


class MessagingNode(TelelinkBaseModel):
    """Broker node the device should connect to."""

    mq_host: str = Field(validation_alias=AliasChoices("MQHost", "MqHost", "mq_host"))
    mq_port_enc: int = Field(default=5671, validation_alias=AliasChoices("MQPortEnc", "MqPortEnc", "mq_port_enc"))
    mq_port_unenc: int = Field(
        default=5672,
        validation_alias=AliasChoices("MQPortUEnc", "MqPortUnenc", "mq_port_unenc"),
    )
    mq_virtual_host: str = Field(
        default="/",
        validation_alias=AliasChoices("MQVirtualHost", "MqVirtualHost", "mq_virtual_host"),
    )


class DeviceConnection(TelelinkBaseModel):
    """Connection parameters negotiated for a live session."""

    mid: str = Field(default="", validation_alias=AliasChoices("MID", "Mid", "mid"))
    node: MessagingNode | None = None
    backoff_seconds: int = 0
