STATE_DIR_NAME = ".agentic_tasks"
CONFIG_FILE = "config.yaml"
TASKS_FILE = "tasks.json"
WORKSPACE_ENV_VAR = "AGENTIC_TASKS_WORKSPACE"

PRIORITY_MIN = 1
PRIORITY_MAX = 1000
DEFAULT_PRIORITY = 500

PRIORITY_LEVELS = {
    "low": 300,
    "medium": 500,
    "high": 700,
    "critical": 900,
}

# Histogram bands used by priority statistics (inclusive bounds).
PRIORITY_BANDS = (
    ("low", 1, 399),
    ("medium", 400, 599),
    ("high", 600, 799),
    ("critical", 800, 1000),
)

LOG_ENTRY_TYPE = "log"

# Priority changes smaller than this are applied silently (no activity log entry).
PRIORITY_LOG_MIN_DELTA = 10
DEFAULT_PRIORITY_STEP = 50

PRIORITIZE_RANGE = (800, 900)
PRIORITIZE_DEFAULT = 850
DEPRIORITIZE_RANGE = (100, 400)
DEPRIORITIZE_DEFAULT = 300
