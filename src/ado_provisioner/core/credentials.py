"""Credential resolution and token storage.

Key Components:
    SecretStore: A single token file in a user-scoped directory (~/.azdo/secret),
        readable and writable by the owner only where the platform supports it.
    CredentialProvider: Resolves the token used for REST calls, in order:
        1. an explicit token argument
        2. PersonalAccessToken from the settings
        3. AZURE_DEVOPS_PAT / AZURE_DEVOPS_EXT_PAT environment variables
        4. the secret store
        5. a Microsoft Entra token from DefaultAzureCredential (sent as Bearer)

Example:
    ```python
    from ado_provisioner.core.credentials import CredentialProvider, SecretStore

    store = SecretStore()
    store.save("my-pat", force=True)

    credential = CredentialProvider(settings, store=store).resolve()
    client = AzureDevOpsClient.from_credential(settings, credential)
    ```

Raises:
    AuthenticationError: When no token can be found or the stored one cannot be read
    CredentialExistsError: When saving would overwrite a stored token without force
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from azure.core.exceptions import ClientAuthenticationError
from azure.identity import DefaultAzureCredential

from .config import Settings
from .exceptions import AuthenticationError, CredentialExistsError


class AuthScheme(Enum):
    """How the token is presented to Azure DevOps."""

    BASIC = "basic"  # PAT as the password of an empty user name
    BEARER = "bearer"  # Microsoft Entra access token

    def __str__(self) -> str:
        """Return the string value of the enum."""
        return self.value


@dataclass(frozen=True)
class Credential:
    """A resolved token and where it came from."""

    token: str = field(repr=False)
    scheme: AuthScheme = AuthScheme.BASIC
    source: str = "argument"


class SecretStore:
    """Stores a single personal access token in a user-scoped file."""

    DIRECTORY_NAME = ".azdo"
    FILE_NAME = "secret"

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else Path.home() / self.DIRECTORY_NAME / self.FILE_NAME

    def exists(self) -> bool:
        """Whether a token is stored."""
        return self.path.is_file()

    def load(self) -> str | None:
        """Return the stored token, or None when nothing is stored."""
        if not self.exists():
            return None
        try:
            token = self.path.read_text(encoding="utf-8").strip()
        except OSError as e:
            msg = f"Cannot read stored token at {self.path}: {e}"
            raise AuthenticationError(msg) from e
        return token or None

    def save(self, token: str, *, force: bool = False) -> Path:
        """
        Store a token, restricted to owner read/write.

        Args:
            token: Personal access token to store
            force: Overwrite an already stored token

        Raises:
            AuthenticationError: When the token is empty or cannot be written
            CredentialExistsError: When a token is stored and force is not set
        """
        token = token.strip()
        if not token:
            msg = "Refusing to store an empty token"
            raise AuthenticationError(msg)
        if self.exists() and not force:
            raise CredentialExistsError(str(self.path))

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(token)
            if os.name != "nt":
                self.path.chmod(0o600)
        except OSError as e:
            msg = f"Cannot store token at {self.path}: {e}"
            raise AuthenticationError(msg) from e
        logging.info("credentials: stored token at %s", self.path)
        return self.path

    def delete(self) -> bool:
        """Remove the stored token. Returns False when nothing was stored."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            logging.debug("credentials: no stored token at %s", self.path)
            return False
        logging.info("credentials: removed token at %s", self.path)
        return True


class CredentialProvider:
    """Resolves the token used to authenticate against Azure DevOps."""

    AZURE_DEVOPS_SCOPE = "499b84ac-1321-427f-aa17-267ca6975798/.default"  # Azure DevOps resource ID
    TOKEN_ENV_VARS = ("AZURE_DEVOPS_PAT", "AZURE_DEVOPS_EXT_PAT")

    def __init__(
        self,
        settings: Settings | None = None,
        store: SecretStore | None = None,
        environ: Mapping[str, str] | None = None,
        *,
        use_azure_identity: bool = True,
    ) -> None:
        self.settings = settings
        self.store = store or SecretStore()
        self.environ = os.environ if environ is None else environ
        self.use_azure_identity = use_azure_identity

    def resolve(self, token: str | None = None) -> Credential:
        """
        Resolve a credential from the configured sources.

        Raises:
            AuthenticationError: When no source yields a token
        """
        if token:
            return Credential(token=token, source="argument")
        if self.settings is not None and self.settings.personal_access_token:
            return Credential(token=self.settings.personal_access_token, source="settings")
        for name in self.TOKEN_ENV_VARS:
            if self.environ.get(name):
                return Credential(token=self.environ[name], source=name)

        stored = self.store.load()
        if stored:
            return Credential(token=stored, source=str(self.store.path))

        if self.use_azure_identity:
            access_token = self.get_access_token()
            if access_token:
                return Credential(token=access_token, scheme=AuthScheme.BEARER, source="azure-identity")

        msg = "No Azure DevOps token found. Run 'adoprov auth login' or set AZURE_DEVOPS_PAT"
        raise AuthenticationError(msg)

    def get_access_token(self) -> str | None:
        """
        Retrieves a Microsoft Entra access token using the DefaultAzureCredential.

        DefaultAzureCredential tries environment credentials, managed identity,
        Azure CLI login and others in turn.

        Returns:
            str: The access token if one could be retrieved, otherwise None.
        """
        try:
            credential = DefaultAzureCredential()
            return credential.get_token(self.AZURE_DEVOPS_SCOPE).token
        except ClientAuthenticationError as e:
            logging.debug("credentials: no Microsoft Entra credential available: %s", e)
        return None
