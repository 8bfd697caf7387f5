"""Sandbox providers - backends for remote execution and volumes."""

from .base import BaseSandboxProvider, VolumeEntry
from .local import LocalSandboxProvider
from .remote import HttpSandboxProvider

# Provider name -> class
providers = {
    "local": LocalSandboxProvider,
    "remote": HttpSandboxProvider,
}

default = "local"


def create_provider(settings) -> BaseSandboxProvider:
    """
    Build the provider selected by ``settings.sandbox_provider``.

    Raises:
        ValueError: If the provider name is unknown
    """
    name = (settings.sandbox_provider or default).lower()
    if name not in providers:
        raise ValueError(f"Unknown sandbox provider: {name}")

    if name == "remote":
        return HttpSandboxProvider(settings.sandbox_api_url, settings.sandbox_api_key)
    return LocalSandboxProvider(settings.local_volumes_dir)


__all__ = [
    "BaseSandboxProvider",
    "VolumeEntry",
    "LocalSandboxProvider",
    "HttpSandboxProvider",
    "providers",
    "default",
    "create_provider",
]
