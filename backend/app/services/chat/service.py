from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import uuid4

from app.core.config import settings
from app.core.exceptions import ChatProcessingError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.prompts.system_prompts import support_reply_prompt
from app.schemas.chat import (
    ChatContext,
    ChatMessage,
    ChatResponse,
    ChatSession,
    MessageType,
    SessionHistory,
    SessionInfo,
)
from app.schemas.customer import Customer
from app.services.chat.context import ChatContextAssembler
from app.services.chat.fallback import FallbackResponder
from app.services.contracts import ChatRepository, CustomerRepository, GenerativeAIService
from app.utils.debug_log import debug_log as _debug_log

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatService:
    """Chat turn orchestration (session -> user message -> context -> reply -> bot message)."""

    def __init__(
        self,
        chat_repository: ChatRepository,
        customer_repository: CustomerRepository,
        context_assembler: ChatContextAssembler,
        ai_service: Optional[GenerativeAIService] = None,
        *,
        fallback: Optional[FallbackResponder] = None,
        auto_create_customers: Optional[bool] = None,
        max_message_length: Optional[int] = None,
    ):
        self.chat_repository = chat_repository
        self.customer_repository = customer_repository
        self.context_assembler = context_assembler
        self.ai_service = ai_service
        self.fallback = fallback or FallbackResponder(
            max_products=settings.CHAT_PROMPT_PRODUCTS,
            max_actions=settings.CHAT_MAX_SUGGESTED_ACTIONS,
        )
        self.auto_create_customers = (
            settings.AUTO_CREATE_CUSTOMERS if auto_create_customers is None else auto_create_customers
        )
        self.max_message_length = max_message_length or settings.CHAT_MAX_MESSAGE_LENGTH
        self._customer_locks: Dict[str, asyncio.Lock] = {}

    async def handle_turn(
        self,
        customer_id: str,
        message: str,
        session_id: Optional[str] = None,
    ) -> ChatResponse:
        self.validate_request(customer_id, message, session_id)

        try:
            # Serialized per customer so concurrent first turns share one active session
            async with self._customer_lock(customer_id):
                # Ownership is checked before any write, including customer provisioning
                requested = await self.load_requested_session(customer_id, session_id)
                customer = await self.resolve_customer(customer_id)
                session = await self.resolve_session(customer, requested)

            # Persisted before any AI call so the message survives generation failures
            await self._save_message(session, message.strip(), MessageType.USER)

            context = await self.context_assembler.assemble(session, customer)
            reply, path = await self.generate_reply(message, context)

            await self._save_message(session, reply, MessageType.BOT)

            actions = self.fallback.actions(message, context.relevant_products)
            _debug_log(
                "chat_turn",
                session_id=session.id,
                customer_id=customer.id,
                path=path,
                relevant_products=len(context.relevant_products),
            )
            return ChatResponse(
                session_id=session.id,
                response=reply,
                timestamp=_utcnow(),
                suggested_actions=actions,
            )
        except (ValidationError, NotFoundError):
            raise
        except Exception as e:
            logger.error(f"Error processing chat message: {e}")
            raise ChatProcessingError() from e

    def _customer_lock(self, customer_id: str) -> asyncio.Lock:
        return self._customer_locks.setdefault(customer_id, asyncio.Lock())

    def validate_request(self, customer_id: str, message: str, session_id: Optional[str]) -> None:
        if not customer_id or not customer_id.strip():
            raise ValidationError("Customer ID is required")
        if not message or not message.strip():
            raise ValidationError("Message is required")
        if len(message) > self.max_message_length:
            raise ValidationError(
                f"Message cannot exceed {self.max_message_length} characters"
            )
        if session_id is not None and not session_id.strip():
            raise ValidationError("Session ID cannot be empty if provided")

    async def resolve_customer(self, customer_id: str) -> Customer:
        """Look the customer up, provisioning a placeholder profile on first contact."""
        customer = await self.customer_repository.get(customer_id)
        if customer is not None:
            return customer
        if not self.auto_create_customers:
            raise NotFoundError(f"Customer {customer_id} not found")

        placeholder = Customer.placeholder(customer_id)
        customer = await self.customer_repository.create_if_absent(placeholder)
        if customer == placeholder:
            logger.info(f"Auto-created customer: {customer_id}")
        return customer

    async def load_requested_session(
        self,
        customer_id: str,
        session_id: Optional[str],
    ) -> Optional[ChatSession]:
        if not session_id:
            return None
        session = await self.chat_repository.get_session(session_id)
        if session is not None and session.customer_id != customer_id:
            raise ValidationError("Session does not belong to the specified customer")
        return session

    async def resolve_session(
        self,
        customer: Customer,
        requested: Optional[ChatSession] = None,
    ) -> ChatSession:
        """Requested session, else the customer's active session, else a new one."""
        session = requested

        if session is None:
            session = await self.chat_repository.get_active_session_for_customer(customer.id)

        if session is None:
            session = ChatSession(
                id=str(uuid4()),
                customer_id=customer.id,
                created_at=_utcnow(),
                is_active=True,
            )
            await self.chat_repository.save_session(session)
            logger.info(f"Created chat session {session.id} for customer {customer.id}")

        return session

    async def generate_reply(self, message: str, context: ChatContext) -> tuple[str, str]:
        """Return the reply text and which path produced it ("ai" or "fallback")."""
        if self.ai_service is None:
            return self.fallback.reply(message, context), "fallback"

        prompt = support_reply_prompt(
            message,
            context,
            history_limit=settings.CHAT_PROMPT_HISTORY,
            product_limit=settings.CHAT_PROMPT_PRODUCTS,
        )
        try:
            reply = await self.ai_service.generate_text(prompt)
        except Exception as e:
            logger.error(f"Error generating AI reply, using fallback: {e}")
            return self.fallback.reply(message, context), "fallback"

        if not isinstance(reply, str) or not reply.strip():
            logger.warning("AI capability returned an empty reply, using fallback")
            return self.fallback.reply(message, context), "fallback"
        return reply.strip(), "ai"

    async def _save_message(
        self,
        session: ChatSession,
        content: str,
        message_type: MessageType,
    ) -> ChatMessage:
        chat_message = ChatMessage(
            id=str(uuid4()),
            content=content,
            type=message_type,
            timestamp=_utcnow(),
            session_id=session.id,
        )
        await self.chat_repository.append_message(chat_message)
        return chat_message

    async def get_session_info(self, session_id: str) -> SessionInfo:
        session = await self.chat_repository.get_session(session_id)
        if session is None:
            return SessionInfo()

        messages = await self.chat_repository.get_messages(session_id)
        last_activity = max((m.timestamp for m in messages), default=session.created_at)
        return SessionInfo(
            session=session,
            message_count=len(messages),
            last_activity=last_activity,
        )

    async def validate_session(self, session_id: str, customer_id: str) -> bool:
        session = await self.chat_repository.get_session(session_id)
        return session is not None and session.customer_id == customer_id and session.is_active

    async def get_session_history(self, session_id: str) -> SessionHistory:
        session = await self.chat_repository.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Chat session {session_id} not found")
        messages = await self.chat_repository.get_messages(session_id)
        return SessionHistory(
            session=session,
            messages=sorted(messages, key=lambda m: m.timestamp),
        )

    async def get_customer_sessions(self, customer_id: str) -> List[ChatSession]:
        if not customer_id or not customer_id.strip():
            raise ValidationError("Customer ID is required")
        return await self.chat_repository.list_sessions_for_customer(customer_id)

    async def end_session(self, session_id: str, customer_id: str) -> ChatSession:
        """
        Close a customer's session.

        The customer's next turn without an explicit session id starts a new
        session. Ending an already closed session is a no-op.
        """
        if not customer_id or not customer_id.strip():
            raise ValidationError("Customer ID is required")

        async with self._customer_lock(customer_id):
            session = await self.chat_repository.get_session(session_id)
            if session is None:
                raise NotFoundError(f"Chat session {session_id} not found")
            if session.customer_id != customer_id:
                raise ValidationError("Session does not belong to the specified customer")
            if not session.is_active:
                return session

            ended = session.model_copy(update={"is_active": False})
            await self.chat_repository.save_session(ended)

        logger.info(f"Ended chat session {session_id} for customer {customer_id}")
        _debug_log("session_ended", session_id=session_id, customer_id=customer_id)
        return ended
