from datetime import datetime

from pydantic import BaseModel, Field


class ChatRoom(BaseModel):
    """
    Channel bound to one trip; participants are always roster members.
    """

    trip_id: str
    trip_owner_id: str
    participants: list[str] = Field(default_factory=list)
    external_channel_id: str = Field(..., description="Id used by the messaging provider")
    is_active: bool = True
    last_message_at: datetime = Field(default_factory=datetime.utcnow)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class ChannelSummary(BaseModel):
    chat_room_id: str
    external_channel_id: str
    participants: list[str]
