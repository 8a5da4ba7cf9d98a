"""
Pipeline limits and retention windows.

Quotas per plan tier live in settings (they are environment-configurable);
everything here is fixed by the suggestion contract.
"""

# Suggestion contract
MAX_SUGGESTION_LENGTH = 200
INTENT_SCORE_MIN = 0.0
INTENT_SCORE_MAX = 1.0

# Job results are a handoff cache, not history (24 hours in seconds)
JOB_RESULT_TTL_SECONDS = 24 * 60 * 60

# Circuit breaker
CIRCUIT_FAILURE_THRESHOLD = 3
CIRCUIT_HALF_OPEN_MAX_FAILURES = 1
CIRCUIT_OPEN_DURATION_MS = 30_000
CIRCUIT_STATE_TTL_SECONDS = 120

# Queue
SUGGESTION_QUEUE_KEY = "queue:suggestions"
WORKER_DEQUEUE_TIMEOUT_SECONDS = 5

# Name of the upstream model service guarded by the circuit breaker
MODEL_SERVICE_NAME = "model"
