from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class SolrSettings(BaseSettings):
    """Connection and batching defaults, read from SOLR_* env vars or .env."""

    model_config = SettingsConfigDict(env_prefix="SOLR_", env_file=".env", case_sensitive=False)

    base_url: str = "http://127.0.0.1:8983/solr"
    timeout: float = 30.0
    username: Optional[str] = None
    password: Optional[str] = None
    id_field: str = "id"
    router_field: Optional[str] = None
    commit_within: int = -1
    batch_max_rows: int = 500
    batch_max_ms: int = 1000


@lru_cache()
def get_settings() -> SolrSettings:
    return SolrSettings()
