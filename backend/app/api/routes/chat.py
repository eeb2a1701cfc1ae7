from typing import List

from fastapi import APIRouter, Depends

from app.dependencies import get_chat_service
from app.schemas.chat import (
    ChatRequest,
    ChatResponse,
    ChatSession,
    EndSessionRequest,
    SessionHistory,
)
from app.services.chat.service import ChatService

router = APIRouter()

@router.post("/", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    chat_service: ChatService = Depends(get_chat_service),
):
    """
    Main chat endpoint.

    Validation errors map to 400, anything unexpected to a generic 500;
    AI and retrieval failures never surface here.
    """
    return await chat_service.handle_turn(
        request.customer_id,
        request.message,
        request.session_id,
    )

@router.get("/sessions/{session_id}", response_model=SessionHistory)
async def get_session_history(
    session_id: str,
    chat_service: ChatService = Depends(get_chat_service),
):
    return await chat_service.get_session_history(session_id)

@router.patch("/sessions/{session_id}/end", response_model=ChatSession)
async def end_session(
    session_id: str,
    request: EndSessionRequest,
    chat_service: ChatService = Depends(get_chat_service),
):
    """Close the session; the customer's next turn opens a new one."""
    return await chat_service.end_session(session_id, request.customer_id)

@router.get("/customers/{customer_id}/sessions", response_model=List[ChatSession])
async def get_customer_sessions(
    customer_id: str,
    chat_service: ChatService = Depends(get_chat_service),
):
    return await chat_service.get_customer_sessions(customer_id)
