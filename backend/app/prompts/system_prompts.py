from __future__ import annotations

from app.schemas.chat import ChatContext


SUPPORT_INSTRUCTIONS = (
    "Instructions:\n"
    "1. Respond in a friendly, helpful manner\n"
    "2. If the customer asks about products, reference the relevant products above\n"
    "3. Provide accurate information about stock availability and pricing\n"
    "4. If you don't have specific information, acknowledge it and offer to help find it\n"
    "5. Keep responses concise but informative (max 200 words)\n"
    "6. If the customer seems frustrated, be extra empathetic\n"
    "7. Always end with a question or offer to help further\n"
)


def support_reply_prompt(
    message: str,
    context: ChatContext,
    *,
    history_limit: int = 5,
    product_limit: int = 3,
) -> str:
    profile = context.customer_profile
    history = "\n".join(
        f"{msg.type.value}: {msg.content}" for msg in context.recent_messages[-history_limit:]
    )
    products = "\n".join(
        f"- {p.name} ({p.price}) - {p.description} [{p.stock_label}]"
        for p in context.relevant_products[:product_limit]
    )
    return (
        "You are a helpful customer support assistant for an e-commerce platform.\n\n"
        "Customer Information:\n"
        f"- Name: {profile.name}\n"
        f"- Email: {profile.email}\n\n"
        "Recent Conversation:\n"
        f"{history}\n\n"
        f'Current Customer Message: "{message}"\n\n'
        "Relevant Products:\n"
        f"{products}\n\n"
        f"{SUPPORT_INSTRUCTIONS}\n"
        "Response:"
    )
