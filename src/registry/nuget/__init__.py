"""NuGet registry package.

- client.py: NuGet V3 feed access (service index, registrations, flat container)
"""

from .client import NuGetV3Repository

__all__ = [
    "NuGetV3Repository",
]
