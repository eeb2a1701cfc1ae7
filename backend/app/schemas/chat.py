import enum
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.customer import Customer
from app.schemas.product import Product


class MessageType(str, enum.Enum):
    USER = "user"
    BOT = "bot"


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    type: MessageType
    timestamp: datetime
    session_id: str


class ChatSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    customer_id: str
    created_at: datetime
    is_active: bool = True


class ChatContext(BaseModel):
    """Per-turn view of the conversation. Rebuilt every turn, never stored."""

    session_id: str
    customer_id: str
    recent_messages: List[ChatMessage] = []
    customer_profile: Customer
    relevant_products: List[Product] = []


class ChatRequest(BaseModel):
    customer_id: str = Field(..., description="External customer identifier (e.g. guest_123)")
    message: str
    session_id: Optional[str] = None


class ChatResponse(BaseModel):
    session_id: str
    response: str
    timestamp: datetime
    suggested_actions: List[str] = []


class SessionInfo(BaseModel):
    session: Optional[ChatSession] = None
    message_count: int = 0
    last_activity: Optional[datetime] = None


class SessionHistory(BaseModel):
    session: ChatSession
    messages: List[ChatMessage] = []


class EndSessionRequest(BaseModel):
    customer_id: str = Field(..., description="Owner of the session being closed")
