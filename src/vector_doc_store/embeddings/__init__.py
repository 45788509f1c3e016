from vector_doc_store.embeddings.base import Embeddings
from vector_doc_store.embeddings.openai_client import OpenAIEmbeddings

__all__ = ["Embeddings", "OpenAIEmbeddings"]
