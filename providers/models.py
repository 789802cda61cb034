"""
Pydantic models for On-Demand chat API requests.
"""
from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from settings import ENDPOINT_ID, PLUGIN_IDS, REASONING_MODE, EXTERNAL_USER_ID


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())


class GenerationConfig(ApiModel):
    """Generation parameters sent as ``modelConfigs``"""
    fulfillment_prompt: str = ""
    # Must be an array on the wire, never omitted
    stop_sequences: List[str] = Field(default_factory=list)
    max_tokens: int = 4000
    temperature: float = 0.7
    presence_penalty: float = 0
    top_p: float = 1
    frequency_penalty: float = 0


class ModelConfig(ApiModel):
    """Model selection and generation options for a query"""
    endpoint_id: str = ENDPOINT_ID
    plugin_ids: List[str] = Field(default_factory=lambda: list(PLUGIN_IDS))
    response_mode: str = "stream"
    reasoning_mode: str = REASONING_MODE
    model_configs: GenerationConfig = Field(default_factory=GenerationConfig)


class QueryRequest(ModelConfig):
    """Body of ``POST /sessions/{id}/query``"""
    query: str


class SessionRequest(ApiModel):
    """Body of ``POST /sessions``"""
    agent_ids: List[str] = Field(default_factory=list)
    external_user_id: str = EXTERNAL_USER_ID
