"""
Configuration settings for Multisite CLI
"""

import os
from pathlib import Path

# Database holding the multisite schema
DB_PATH = Path(
    os.getenv("MULTISITE_DB_PATH", str(Path.home() / ".multisite_cli" / "multisite.db"))
)

# Table naming
TABLE_PREFIX = "wp_"
MAIN_SITE_ID = 1
DEFAULT_NETWORK_ID = 1

# Media re-hosting
UPLOADS_DIR = Path(os.getenv("MULTISITE_UPLOADS_DIR", "uploads"))
UPLOADS_BASE_URL = os.getenv("MULTISITE_UPLOADS_URL", "/files")
REQUEST_TIMEOUT = 30  # seconds
MAX_FILENAME_LENGTH = 200  # bytes

# Batch operation settings
MOVE_CHUNK_SIZE = 500
EMPTY_ITERATOR_CHUNK = 10000

# Taxonomies the platform registers for every site
REGISTERED_TAXONOMIES = [
    "category",
    "post_tag",
    "nav_menu",
    "link_category",
    "post_format",
]
DEFAULT_CATEGORY_NAME = "Uncategorized"
DEFAULT_CATEGORY_SLUG = "uncategorized"

# Site creation
RESERVED_SUBDIRECTORY_NAMES = ["page", "comments", "blog", "files", "feed"]
PASSWORD_LENGTH = 12
PASSWORD_HASH_ITERATIONS = 100000

# Output format options
OUTPUT_FORMATS = ["table", "csv", "json", "url"]
DEFAULT_OUTPUT_FORMAT = "table"
DEFAULT_LIST_FIELDS = ["blog_id", "url", "last_updated", "registered"]
CSV_DELIMITER = ","
CSV_QUOTECHAR = '"'

# Cache settings
CACHE_TTL = 300  # seconds (5 minutes)
GLOBAL_CACHE_GROUPS = [
    "global-posts",
    "blog-details",
    "site-options",
    "users",
    "useremail",
]

# Logging settings
LOG_LEVEL = os.getenv("MULTISITE_LOG_LEVEL", "INFO")
LOG_FILE = "multisite_cli.log"
LOG_DIR = Path(os.getenv("MULTISITE_LOG_DIR", "logs"))
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_ROTATION_SIZE = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5
