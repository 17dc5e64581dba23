"""Bundled configuration providers.

File-based providers (YAML/JSON files, .env files through
``unmarshal_dotenv``) and the process environment.
"""

from .dotenv import unmarshal_dotenv
from .env import EnvProvider
from .file import FileProvider, unmarshal_yaml

__all__ = [
    "EnvProvider",
    "FileProvider",
    "unmarshal_dotenv",
    "unmarshal_yaml",
]
