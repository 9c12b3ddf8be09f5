"""Storage abstraction for chunk stores and conversation logs."""

from .base import ChunkStoreBase, ConversationLogBase, get_chunk_store, get_conversation_log

__all__ = ["ChunkStoreBase", "ConversationLogBase", "get_chunk_store", "get_conversation_log"]
