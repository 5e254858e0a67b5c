# config.py
"""
Configuration constants for the image cache
"""

# Cache limits
DEFAULT_COUNT_LIMIT = 100
DEFAULT_TOTAL_COST_LIMIT = 100 * 1024 * 1024  # 100 MB of decoded pixels

# Cost accounting
BYTES_PER_PIXEL = 4  # RGBA

# Memory pressure monitor settings
MEMORY_THRESHOLD_BYTES = 500 << 20  # 500 MB
MEMORY_CHECK_INTERVAL_MS = 30 * 1000
MEMORY_PRESSURE_COOLDOWN_SECS = 60

# Image loader settings
LOADER_MAX_WORKERS = 4
ALLOWED_URL_SCHEMES = ['http', 'https', 'file']

# Logging
LOGGER_NAME = "imagecache"
LOG_FILE_NAME = "imagecache.log"
LOG_MAX_BYTES = 1_048_576
LOG_BACKUP_COUNT = 5
