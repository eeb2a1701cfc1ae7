from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class ChatbotError(Exception):
    """Base class for errors raised by the chat and embedding services."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(ChatbotError):
    """Malformed caller input. Never retried, never causes writes."""


class NotFoundError(ChatbotError):
    """A referenced session, customer or product does not exist."""


class TransientCapabilityError(ChatbotError):
    """The AI capability or the vector index failed (timeout, bad payload)."""


class DimensionMismatchError(ChatbotError):
    """A vector does not have the dimensionality the index expects."""

    def __init__(self, expected: int, actual: int, product_id: str | None = None):
        target = f" for product {product_id}" if product_id else ""
        super().__init__(
            f"Embedding dimension mismatch{target}: expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual
        self.product_id = product_id


class EmbeddingExistsError(ChatbotError):
    """An embedding is already stored and overwriting was not allowed."""

    def __init__(self, product_id: str):
        super().__init__(f"Embedding for product {product_id} already exists")
        self.product_id = product_id


class ChatProcessingError(ChatbotError):
    GENERIC_MESSAGE = "Failed to process chat message. Please try again."

    def __init__(self, message: str = GENERIC_MESSAGE):
        super().__init__(message)


def register_exception_handlers(app: FastAPI) -> None:
    """Map service errors onto HTTP responses."""

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": exc.message})

    @app.exception_handler(NotFoundError)
    async def _not_found_error(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.message})

    @app.exception_handler(ChatProcessingError)
    async def _processing_error(request: Request, exc: ChatProcessingError):
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": ChatProcessingError.GENERIC_MESSAGE},
        )
