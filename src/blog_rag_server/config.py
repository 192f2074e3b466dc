from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Provider selection (embeddings + generation)
    provider: Literal["qwen", "gemini"] = "qwen"

    qwen_api_key: SecretStr = SecretStr("")
    qwen_base: str = "https://dashscope.aliyuncs.com/compatible-mode/v1"
    qwen_embed_model: str = "text-embedding-v4"
    qwen_chat_base: str = "https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions"

    google_api_key: SecretStr = SecretStr("")

    llm_model: str = ""
    embed_dim: int = 1024

    # Static bearer token for /admin routes
    admin_token: SecretStr = SecretStr("")

    # Running chat server that ingestion pushes items to (empty: write FAISS files directly)
    server_url: str = ""

    # Site layout
    base_url: str = "https://your-site.com"
    content_dir: str = "../../content"

    vector_index_path: str = "/app/data/faiss_index.bin"
    vector_meta_path: str = "/app/data/index_meta.json"
    title_dictionary_path: str = "/app/data/title_dictionary.json"

    # Retrieval
    retrieval_top_k: int = 8
    language_filter_timeout: float = 0.5  # seconds

    # Ingestion
    chunk_max_len: int = 800
    metadata_text_limit: int = 500
    metadata_title_limit: int = 100
    embedding_batch_size: int = 10
    upload_batch_size: int = 300
    ingest_concurrency: int = 15

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

settings = Settings()
