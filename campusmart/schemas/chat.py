from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

_ALIASED = {
    "from_attributes": True,
    "populate_by_name": True,
}


class UserSummary(BaseModel):
    id: str
    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")

    model_config = _ALIASED


class ListingSummary(BaseModel):
    id: str
    title: str
    price: Optional[float] = None
    seller_id: str = Field(alias="sellerId")

    model_config = _ALIASED


class MessageCreate(BaseModel):
    sender_id: Optional[str] = Field(default=None, alias="senderId")
    receiver_id: Optional[str] = Field(default=None, alias="receiverId")
    listing_id: Optional[str] = Field(default=None, alias="listingId")
    chat_id: Optional[str] = Field(default=None, alias="chatId")
    content: str

    model_config = {"populate_by_name": True}


class ChatCreate(BaseModel):
    listing_id: str = Field(alias="listingId")
    content: Optional[str] = None

    model_config = {"populate_by_name": True}


class MessageResponse(BaseModel):
    id: str
    sender_id: str = Field(alias="senderId")
    receiver_id: str = Field(alias="receiverId")
    chat_id: str = Field(alias="chatId")
    listing_id: str = Field(alias="listingId")
    content: str
    read_status: bool = Field(alias="readStatus")
    timestamp: datetime
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = _ALIASED


class PopulatedMessageResponse(MessageResponse):
    sender_id: UserSummary = Field(alias="senderId")
    receiver_id: UserSummary = Field(alias="receiverId")


class ChatResponse(BaseModel):
    id: str
    listing_id: str = Field(alias="listingId")
    seller_id: str = Field(alias="sellerId")
    buyer_id: str = Field(alias="buyerId")
    last_message: Optional[str] = Field(default=None, alias="lastMessage")
    last_message_timestamp: Optional[datetime] = Field(default=None, alias="lastMessageTimestamp")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = _ALIASED


class PopulatedChatResponse(ChatResponse):
    listing_id: ListingSummary = Field(alias="listingId")
    seller_id: UserSummary = Field(alias="sellerId")
    buyer_id: UserSummary = Field(alias="buyerId")


class ChatDetailResponse(BaseModel):
    chat: PopulatedChatResponse
    messages: List[PopulatedMessageResponse]


class MarkReadResponse(BaseModel):
    updated: int
