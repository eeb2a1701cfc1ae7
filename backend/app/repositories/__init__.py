from .memory import (
    InMemoryChatRepository,
    InMemoryCustomerRepository,
    InMemoryProductRepository,
    InMemoryVectorRepository,
)
