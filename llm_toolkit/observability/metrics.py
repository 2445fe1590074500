from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)
from fastapi import Response


llm_requests = Counter(
    "llm_requests_total",
    "Total LLM backend calls by outcome",
    ["provider", "operation", "outcome"],
)

llm_request_latency = Histogram(
    "llm_request_latency_seconds",
    "Wall-clock time of LLM backend calls",
    ["provider", "operation"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

llm_tokens = Counter(
    "llm_tokens_total",
    "Total LLM tokens reported by backends",
    ["provider", "direction"],
)

llm_stream_fragments = Counter(
    "llm_stream_fragments_total",
    "Fragments delivered to streaming callbacks",
    ["provider"],
)


def metrics_response() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
