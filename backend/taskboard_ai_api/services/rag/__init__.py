"""Task-board RAG pipeline.

Turns a user's question about their boards into an augmented LLM prompt:
- classify the question (data query vs. chat)
- synthesize a read-only SELECT from templates or the model
- validate and run it against the board database
- fold the rows into the final prompt
"""

from .catalog import PropertyCatalog, discover_property_catalog
from .errors import IntentIsChatError, RagError, UnknownIntentError
from .relay import encode_sse, relay_chat_stream
from .service import RagService

__all__ = [
    "IntentIsChatError",
    "PropertyCatalog",
    "RagError",
    "RagService",
    "UnknownIntentError",
    "discover_property_catalog",
    "encode_sse",
    "relay_chat_stream",
]
