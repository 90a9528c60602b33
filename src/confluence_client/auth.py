"""Authentication module for loading Confluence credentials.

Credentials come from environment variables, optionally populated from the
nearest .env file found by walking up from the working directory. Both the
CONFLUENCE_* and ATLASSIAN_* naming schemes are accepted.
"""

import os
from typing import NamedTuple, Optional, Sequence

from dotenv import find_dotenv, load_dotenv

from .errors import InvalidCredentialsError

URL_VARIABLES = ('CONFLUENCE_URL', 'ATLASSIAN_DOMAIN')
USER_VARIABLES = ('CONFLUENCE_USER', 'CONFLUENCE_EMAIL', 'ATLASSIAN_EMAIL')
TOKEN_VARIABLES = ('CONFLUENCE_API_TOKEN', 'ATLASSIAN_API_TOKEN')


class Credentials(NamedTuple):
    """Confluence API credentials.

    Attributes:
        url: Site URL including the /wiki context path
        user: Account email
        api_token: API token
    """
    url: str
    user: str
    api_token: str

    @property
    def domain(self) -> str:
        """Site root without the /wiki context path."""
        if self.url.endswith('/wiki'):
            return self.url[:-len('/wiki')]
        return self.url


def normalize_site_url(raw_url: str) -> str:
    """Normalize a configured site URL to '<scheme>://<host>/wiki'.

    Example:
        >>> normalize_site_url("https://acme.atlassian.net/")
        'https://acme.atlassian.net/wiki'
    """
    url = raw_url.strip().rstrip('/')
    if not url.startswith(('http://', 'https://')):
        url = f"https://{url}"
    if not url.endswith('/wiki'):
        url = f"{url}/wiki"
    return url


def _first_env(names: Sequence[str]) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value and value.strip():
            return value.strip()
    return None


class Authenticator:
    """Loads and validates Confluence credentials from environment variables.

    Credentials are never cached or logged.

    Example:
        >>> auth = Authenticator()
        >>> creds = auth.get_credentials()
        >>> print(f"Connecting to {creds.url}")
    """

    def __init__(self, dotenv_path: Optional[str] = None):
        """Load environment variables from a .env file.

        Args:
            dotenv_path: Explicit .env path. When omitted the nearest .env in
                the working directory or one of its parents is used.
        """
        load_dotenv(dotenv_path or find_dotenv(usecwd=True))

    def get_credentials(self) -> Credentials:
        """Get Confluence credentials from environment variables.

        Returns:
            Credentials: url, user and api_token

        Raises:
            InvalidCredentialsError: If any required credential is missing
        """
        url = _first_env(URL_VARIABLES)
        user = _first_env(USER_VARIABLES)
        api_token = _first_env(TOKEN_VARIABLES)

        if not url or not user or not api_token:
            raise InvalidCredentialsError(
                user=user if user else "unknown",
                endpoint=url if url else "unknown",
            )

        return Credentials(url=normalize_site_url(url), user=user, api_token=api_token)
