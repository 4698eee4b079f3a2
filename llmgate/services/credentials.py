"""Credential persistence: the write and read path for stored provider secrets.

Secrets are encrypted before the session is touched, so a failed encryption
leaves nothing half-written.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from llmgate.core.encryption import CredentialStore, get_credential_store
from llmgate.gateway.errors import CredentialEncryptionError
from llmgate.gateway.types import ProviderProfile
from llmgate.models.git_settings import GitSettings
from llmgate.models.llm_config import LlmConfig

logger = logging.getLogger(__name__)

API_KEY_ENCRYPTION_FAILED = "Failed to encrypt API key. Check server ENCRYPTION_KEY configuration."
GIT_TOKEN_ENCRYPTION_FAILED = "Failed to encrypt Git token. Check ENCRYPTION_KEY configuration."


async def save_llm_config(
    session: AsyncSession,
    profile: ProviderProfile,
    api_key: str | None,
    store: CredentialStore | None = None,
) -> LlmConfig:
    """Store ``profile`` as the active LLM configuration."""
    encrypted = None
    if api_key:
        try:
            encrypted = (store or get_credential_store()).encrypt(api_key)
        except CredentialEncryptionError as e:
            raise CredentialEncryptionError(API_KEY_ENCRYPTION_FAILED, provider=profile.provider.value) from e

    await session.execute(update(LlmConfig).where(LlmConfig.is_active.is_(True)).values(is_active=False))
    config = LlmConfig(
        provider=profile.provider.value,
        api_url=profile.api_url,
        model=profile.model,
        api_key_encrypted=encrypted,
        is_active=True,
    )
    session.add(config)
    await session.commit()

    logger.info(
        "Saved LLM config: provider=%s model=%s key_set=%s", profile.provider.value, profile.model, bool(encrypted)
    )
    return config


async def save_git_token(
    session: AsyncSession,
    provider: str,
    username: str | None,
    token: str,
    store: CredentialStore | None = None,
) -> GitSettings:
    """Create or update the stored token for a git hosting provider."""
    try:
        encrypted = (store or get_credential_store()).encrypt(token)
    except CredentialEncryptionError as e:
        raise CredentialEncryptionError(GIT_TOKEN_ENCRYPTION_FAILED, provider=provider) from e

    git_settings = await session.scalar(select(GitSettings).where(GitSettings.provider == provider))
    if git_settings is None:
        git_settings = GitSettings(provider=provider)
        session.add(git_settings)
    git_settings.username = username
    git_settings.token_encrypted = encrypted
    await session.commit()

    logger.info("Saved git token for %s", provider)
    return git_settings


async def load_active_llm_config(session: AsyncSession) -> tuple[ProviderProfile, bytes | None] | None:
    """Return the active profile and its stored ciphertext, or None if unset."""
    config = await session.scalar(
        select(LlmConfig).where(LlmConfig.is_active.is_(True)).order_by(LlmConfig.created_at.desc()).limit(1)
    )
    if config is None:
        return None
    return config.to_profile(), config.api_key_encrypted
