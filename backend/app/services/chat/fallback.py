"""
Deterministic keyword responder.

Used when no AI capability is configured and whenever generation fails.
Categories are checked in a fixed order and the first match wins.
"""

from __future__ import annotations

import enum
from typing import Dict, List, Optional, Sequence, Tuple

from app.schemas.chat import ChatContext
from app.schemas.product import Product


class MessageCategory(str, enum.Enum):
    GREETING = "greeting"
    PRODUCT_INQUIRY = "product_inquiry"
    ORDER_INQUIRY = "order_inquiry"
    SUPPORT_REQUEST = "support_request"
    DEFAULT = "default"


KEYWORDS: Dict[MessageCategory, Tuple[str, ...]] = {
    MessageCategory.GREETING: (
        "hello",
        "hi",
        "hey",
        "good morning",
        "good afternoon",
        "good evening",
        "greetings",
        "howdy",
    ),
    MessageCategory.PRODUCT_INQUIRY: (
        "product",
        "item",
        "find",
        "search",
        "looking for",
        "need",
        "want",
        "buy",
        "purchase",
        "show me",
        "catalog",
        "inventory",
    ),
    MessageCategory.ORDER_INQUIRY: (
        "order",
        "purchase",
        "bought",
        "track",
        "delivery",
        "shipping",
        "status",
        "when will",
        "receipt",
        "confirmation",
    ),
    MessageCategory.SUPPORT_REQUEST: (
        "help",
        "support",
        "problem",
        "issue",
        "trouble",
        "error",
        "question",
        "assistance",
        "can you",
        "need help",
    ),
}

PRIORITY: Tuple[MessageCategory, ...] = (
    MessageCategory.GREETING,
    MessageCategory.PRODUCT_INQUIRY,
    MessageCategory.ORDER_INQUIRY,
    MessageCategory.SUPPORT_REQUEST,
)

ORDER_ACTIONS = ["Track Order", "Cancel Order", "Return Policy", "Contact Support"]
PRODUCT_ACTIONS = ["Browse Categories", "View All Products", "Check Stock"]
PRODUCT_MATCH_ACTIONS = ["Compare Products", "View Similar Items", "Add to Wishlist"]
SUPPORT_ACTIONS = ["Contact Support", "FAQ", "Live Chat", "Report Issue"]
IN_STOCK_ACTIONS = ["Add to Cart", "Check Availability"]
DEFAULT_ACTIONS = ["Browse Products", "Contact Support", "FAQ", "My Account"]


def matches(message: str, category: MessageCategory) -> bool:
    lowered = message.lower()
    return any(keyword in lowered for keyword in KEYWORDS.get(category, ()))


def classify(message: str) -> MessageCategory:
    for category in PRIORITY:
        if matches(message, category):
            return category
    return MessageCategory.DEFAULT


def fallback_reply(message: str, context: ChatContext, max_products: int = 3) -> str:
    name = context.customer_profile.name
    category = classify(message)

    if category is MessageCategory.GREETING:
        return (
            f"Hello {name}! I'm here to help you with your questions. "
            "How can I assist you today?"
        )

    if category is MessageCategory.PRODUCT_INQUIRY:
        if context.relevant_products:
            product_names = ", ".join(p.name for p in context.relevant_products[:max_products])
            return (
                f"I found some products that might interest you: {product_names}. "
                "Would you like more details about any of these?"
            )
        return (
            "I'd be happy to help you find products. "
            "Could you tell me more about what you're looking for?"
        )

    if category is MessageCategory.ORDER_INQUIRY:
        return (
            "I can help you with order-related questions. Please provide your order number "
            "or tell me what specific information you need about your order."
        )

    if category is MessageCategory.SUPPORT_REQUEST:
        return (
            f"I'm here to help, {name}. I can assist you with product information, "
            "order status, and general questions. What would you like help with?"
        )

    return (
        f"I understand you're reaching out for help, {name}. I can assist you with product "
        "information, order inquiries, and general support. Could you please provide more "
        "details about what you need help with?"
    )


def suggested_actions(
    message: str,
    relevant_products: Sequence[Product],
    limit: int = 6,
) -> List[str]:
    """Quick-reply actions for a turn. Never empty, no duplicates, at most ``limit``."""
    actions: List[str] = []

    if matches(message, MessageCategory.ORDER_INQUIRY):
        actions.extend(ORDER_ACTIONS)

    if matches(message, MessageCategory.PRODUCT_INQUIRY):
        actions.extend(PRODUCT_ACTIONS)
        if relevant_products:
            actions.extend(PRODUCT_MATCH_ACTIONS)

    if matches(message, MessageCategory.SUPPORT_REQUEST):
        actions.extend(SUPPORT_ACTIONS)

    if any(p.in_stock for p in relevant_products):
        actions.extend(IN_STOCK_ACTIONS)

    if not actions:
        actions.extend(DEFAULT_ACTIONS)

    return list(dict.fromkeys(actions))[: max(1, limit)]


class FallbackResponder:
    """Keeps the keyword responder behind an object seam for the chat service."""

    def __init__(self, max_products: int = 3, max_actions: int = 6):
        self.max_products = max_products
        self.max_actions = max_actions

    def classify(self, message: str) -> MessageCategory:
        return classify(message)

    def reply(self, message: str, context: ChatContext) -> str:
        return fallback_reply(message, context, max_products=self.max_products)

    def actions(self, message: str, relevant_products: Optional[Sequence[Product]] = None) -> List[str]:
        return suggested_actions(message, relevant_products or [], limit=self.max_actions)
