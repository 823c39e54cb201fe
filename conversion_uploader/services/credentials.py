"""Credential source backed by environment variables."""
import os
import re
from typing import Mapping, Optional

from ..errors import ConfigError

DEFAULT_TOKEN_ENV = "CM_ACCESS_TOKEN"


class EnvCredentialSource:
    """
    Reads OAuth access tokens from the environment.

    A secret name maps to an upper-cased variable name, e.g. "cm-token" ->
    CM_TOKEN. Without a secret name CM_ACCESS_TOKEN is used.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = os.environ if environ is None else environ

    @staticmethod
    def env_name(secret_name: Optional[str] = None) -> str:
        if not secret_name:
            return DEFAULT_TOKEN_ENV
        return re.sub(r"[^A-Za-z0-9]+", "_", secret_name).strip("_").upper()

    def get_token(self, secret_name: Optional[str] = None) -> str:
        name = self.env_name(secret_name)
        token = self._environ.get(name)
        if not token:
            raise ConfigError(f"No access token found in environment variable {name}")
        return token
