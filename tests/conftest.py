import pytest

from llmgate.core.config import Settings, settings

# Override settings for tests
TEST_FERNET_KEY = "KxJCocbnA3KD20pkgSN3uUZybasKP1X9lAJDX4oLxoQ="  # test-only Fernet key
settings.fernet_key = TEST_FERNET_KEY
settings.app_env = "development"
settings.log_payloads = False
settings.sentry_dsn = ""

from llmgate.core.encryption import FernetCredentialStore  # noqa: E402
from llmgate.gateway.types import ProviderProfile  # noqa: E402

TEST_API_KEY = "sk-test-0123456789abcdef"


@pytest.fixture
def test_settings() -> Settings:
    """Settings with compiled-in timeout defaults, isolated from the host environment."""
    return Settings(
        _env_file=None,
        fernet_key=TEST_FERNET_KEY,
        llm_request_timeout_ms=30_000,
        llm_fallback_default_timeout_ms=60_000,
    )


@pytest.fixture
def credential_store() -> FernetCredentialStore:
    return FernetCredentialStore(TEST_FERNET_KEY)


@pytest.fixture
def encrypted_api_key(credential_store) -> bytes:
    return credential_store.encrypt(TEST_API_KEY)


@pytest.fixture
def openai_profile() -> ProviderProfile:
    return ProviderProfile(provider="openai", api_url="https://api.openai.test/v1", model="gpt-4o-mini")
