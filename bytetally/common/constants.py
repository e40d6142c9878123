"""Constants for bytetally."""

# Config directory name (under the user's home)
CONFIG_DIR_NAME = ".bytetally"

# Persisted usage document
USAGE_FILE_NAME = "usage"
USAGE_KEY = "usage"

# Debounce window between the last update and its disk write (seconds)
DEFAULT_WRITE_COOLDOWN = 5.0

# Scheduler worker thread name prefix
SCHEDULER_THREAD_PREFIX = "bt-sched"

# Log line format used when no handler is configured
LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
