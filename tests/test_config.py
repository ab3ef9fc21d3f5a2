"""Tests for application settings."""

from seahorse.config import Settings, get_settings


class TestSettings:
    def test_defaults(self) -> None:
        config = Settings(_env_file=None, gemini_api_key="")

        assert config.chunk_size == 500
        assert config.chunk_overlap == 50
        assert config.search_top_k == 10
        assert config.temperature == 0.7
        assert config.top_p == 0.9
        assert config.model_load_retries == 10
        assert config.registry_contract_id == "contract1.iseahorse.testnet"
        assert config.embedding_backend == "auto"
        assert config.local_embedding_model == "sentence-transformers/all-MiniLM-L6-v2"
        assert config.embedding_dimension == 384

    def test_environment_overrides(self, monkeypatch) -> None:
        monkeypatch.setenv("CHUNK_SIZE", "256")
        monkeypatch.setenv("REGISTRY_BACKEND", "memory")
        monkeypatch.setenv("GEMINI_API_KEY", "from-env")

        config = Settings(_env_file=None)

        assert config.chunk_size == 256
        assert config.registry_backend == "memory"
        assert config.gemini_api_key == "from-env"

    def test_get_settings_is_cached(self) -> None:
        get_settings.cache_clear()

        assert get_settings() is get_settings()
