from .customer import CustomerRecord
from .product import ProductRecord
from .chat import ChatMessageRecord, ChatSessionRecord
from .embedding import ProductEmbeddingRecord
