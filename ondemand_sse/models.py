"""
Pydantic models for the events carried by the On-Demand query stream.

Only the fields the accumulator reads are typed strictly. Descriptive
fields (agent lists, timings, counters, ids) take whatever shape the
server sends, so a well-formed event never fails on a secondary field.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for camelCase wire payloads; unknown fields are preserved"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class StatusLog(WireModel):
    """Human-readable progress descriptor sent with statusLog events

    Agent entries are usually objects with a ``name``, but are kept as sent.
    """
    step_query: Optional[Any] = None
    status_type: Optional[Any] = None
    status_message: Optional[str] = None
    retrieved_agents: Optional[List[Any]] = None
    executed_agents: Optional[List[Any]] = None
    time: Optional[Any] = None


class PublicMetrics(WireModel):
    """Token and timing counters sent with metricsLog events"""
    input_tokens: Optional[Any] = None
    output_tokens: Optional[Any] = None
    total_tokens: Optional[Any] = None
    rag_time_sec: Optional[Any] = None
    fulfillment_time_sec: Optional[Any] = None
    total_time_sec: Optional[Any] = None


class StreamEvent(WireModel):
    """One decoded event from the query stream.

    ``event_type`` is one of ``statusLog``, ``fulfillment``, ``metricsLog`` or
    ``error``; other values are accepted and ignored downstream. ``raw`` is
    only set on events synthesized from a payload that failed to decode.
    """
    event_type: Optional[str] = None
    session_id: Optional[Any] = None
    message_id: Optional[Any] = None
    event_index: Optional[Any] = None
    status: Optional[str] = None
    answer: Optional[str] = None
    current_status_log: Optional[StatusLog] = None
    public_metrics: Optional[PublicMetrics] = None
    raw: Optional[str] = None


EVENT_STATUS_LOG = "statusLog"
EVENT_FULFILLMENT = "fulfillment"
EVENT_METRICS_LOG = "metricsLog"
EVENT_ERROR = "error"
