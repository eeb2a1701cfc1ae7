from .health import router as health
from .chat import router as chat
from .embeddings import router as embeddings
from .products import router as products
from .customers import router as customers
