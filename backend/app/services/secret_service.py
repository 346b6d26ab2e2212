"""
Secret Service - encrypted tracker credentials per (project, provider).

Values are JSON documents of provider-specific fields, e.g.
``{"baseUrl", "email", "apiToken"}`` for Jira or
``{"organization", "personalAccessToken"}`` for Azure DevOps. They are
sealed by the credential vault on write and unsealed per call on read;
nothing is cached in plaintext.
"""
import json
import logging
from typing import Any, Dict, Mapping, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import ConfigurationError, CredentialsNotFound, CryptoError
from app.models.integration import provider_label
from app.models.secret import Secret
from app.utils.encryption import TOKEN_VERSION, CredentialVault, get_credential_vault

logger = logging.getLogger(__name__)


class SecretService:
    """Upsert and read sealed credentials."""

    def __init__(self, db: Session, vault: Optional[CredentialVault] = None):
        self.db = db
        self.vault = vault or get_credential_vault()

    def get(self, project_id: str, provider: str) -> Optional[Secret]:
        return self.db.query(Secret).filter(
            Secret.project_id == project_id,
            Secret.provider == provider,
        ).first()

    def upsert(
        self,
        project_id: str,
        provider: str,
        value: Union[str, Mapping[str, Any]],
    ) -> Secret:
        """
        Store credentials for a provider, replacing any previous value.

        Args:
            project_id: Owning project
            provider: Provider key ("jira", "azure_devops", ...)
            value: JSON string or mapping of credential fields

        Returns:
            The single Secret row for (project, provider)
        """
        if not provider:
            raise ConfigurationError("Missing provider")
        sealed = self.vault.seal(self._serialize(value))

        secret = self.get(project_id, provider)
        if secret is not None:
            secret.encrypted_value = sealed
            self.db.commit()
            self.db.refresh(secret)
            return secret

        secret = Secret(project_id=project_id, provider=provider, encrypted_value=sealed)
        self.db.add(secret)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent request inserted the row first; last write wins.
            self.db.rollback()
            logger.info("Secret insert raced for project %s/%s, updating instead", project_id, provider)
            secret = self.get(project_id, provider)
            if secret is None:
                raise
            secret.encrypted_value = sealed
            self.db.commit()
        self.db.refresh(secret)
        return secret

    def load_credentials(self, project_id: str, provider: str) -> Dict[str, Any]:
        """
        Unseal and parse the credentials for a provider.

        Raises:
            CredentialsNotFound: No secret row
            CryptoError: Stored token could not be decrypted
            ConfigurationError: Stored value is not a JSON object
        """
        secret = self.get(project_id, provider)
        if secret is None:
            raise CredentialsNotFound(provider_label(provider), project_id)

        plaintext = self.vault.unseal(secret.encrypted_value)
        try:
            credentials = json.loads(plaintext)
        except ValueError:
            if not self.vault.enabled and plaintext.startswith(f"{TOKEN_VERSION}:"):
                raise CryptoError(
                    f"Stored {provider_label(provider)} credentials are encrypted but APP_ENCRYPTION_KEY is not set"
                )
            raise ConfigurationError(f"Stored {provider_label(provider)} credentials are not valid JSON")
        if not isinstance(credentials, dict):
            raise ConfigurationError(f"Stored {provider_label(provider)} credentials must be a JSON object")
        return credentials

    def delete(self, project_id: str, provider: str) -> bool:
        """Delete a secret. Returns True if deleted."""
        deleted = self.db.query(Secret).filter(
            Secret.project_id == project_id,
            Secret.provider == provider,
        ).delete()
        self.db.commit()
        return deleted > 0

    @staticmethod
    def _serialize(value: Union[str, Mapping[str, Any]]) -> str:
        if isinstance(value, Mapping):
            return json.dumps(dict(value))
        if isinstance(value, str):
            if not value.strip():
                raise ConfigurationError("Missing credentials value")
            return value
        raise ConfigurationError("Credentials must be a JSON string or object")


def serialize_secret(secret: Secret) -> Dict[str, Any]:
    """Public view of a secret row. Never includes the value."""
    return {
        "id": secret.id,
        "projectId": secret.project_id,
        "provider": secret.provider,
    }
