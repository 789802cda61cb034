"""
Chat backend providers.
The conversation talks to a provider for session creation and query streams.
"""

from providers.base_provider import BaseProvider
from providers.models import ModelConfig, GenerationConfig, QueryRequest, SessionRequest
from providers.ondemand_provider import OnDemandProvider

__all__ = [
    "BaseProvider",
    "OnDemandProvider",
    "ModelConfig",
    "GenerationConfig",
    "QueryRequest",
    "SessionRequest",
]
