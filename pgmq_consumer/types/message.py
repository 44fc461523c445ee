"""
Message type shared by the consumer and the queue drivers.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Handler payloads are opaque mappings
Payload = dict[str, Any]


class Message(BaseModel):
    """
    A queue entry as returned by a driver.

    Field aliases follow the pgmq row layout (msg_id, read_ct, enqueued_at,
    vt, message) so driver rows validate directly; Python names are also
    accepted.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int = Field(alias="msg_id")
    read_count: int = Field(default=0, alias="read_ct")
    enqueued_at: datetime
    visible_at: datetime = Field(alias="vt")
    payload: Payload = Field(default_factory=dict, alias="message")
    headers: dict[str, Any] | None = None

    def to_row(self) -> dict[str, Any]:
        """Dump the message using the pgmq column names."""
        return self.model_dump(by_alias=True)
