"""Clients for the services a naming request fans out to.

Each collaborator is a small class with async methods. Routes get them
through FastAPI dependencies so tests can swap in fakes.
"""

from fmbn.integrations.brand import BrandAnalyzer
from fmbn.integrations.domains import DomainChecker
from fmbn.integrations.edgar import EdgarClient
from fmbn.integrations.names import NameGenerator
from fmbn.integrations.social import SocialMediaChecker

__all__ = [
    "BrandAnalyzer",
    "DomainChecker",
    "EdgarClient",
    "NameGenerator",
    "SocialMediaChecker",
]
