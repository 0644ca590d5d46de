"""Shared defaults for batchflow."""

BATCH_ID_PREFIX = "batch"
EXECUTION_ID_PREFIX = "exec"

# Seconds per item used to estimate how long a batch will run.
ESTIMATED_SECONDS_PER_ITEM = {
    "create": 1.0,
    "update": 0.5,
    "delete": 0.3,
}

DEFAULT_PRIORITY = "medium"
DEFAULT_NOTIFICATION_CHANNEL = "system"
DEFAULT_EVENT_QUEUE_SIZE = 1000
