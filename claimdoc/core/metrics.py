"""
Prometheus metrics shared by the API layer and the services
"""

from prometheus_client import Counter, Histogram

request_count = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
request_duration = Histogram('http_request_duration_seconds', 'HTTP request duration')
audio_processing_duration = Histogram('audio_processing_duration_seconds', 'Audio processing duration')

pipeline_stage_duration = Histogram(
    'enhancement_stage_duration_seconds',
    'Duration of one enhancement pipeline stage',
    ['stage'],
)
pipeline_runs = Counter(
    'enhancement_pipeline_runs_total',
    'Enhancement pipeline invocations by outcome',
    ['outcome'],
)
upstream_retries = Counter(
    'upstream_retries_total',
    'Retried calls to upstream services',
    ['service'],
)
