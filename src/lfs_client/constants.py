"""Constants for lfs-client."""

# Pointer format
LFS_SPEC_V1 = "https://git-lfs.github.com/spec/v1"
LFS_SPEC_LEGACY = "https://hawser.github.com/spec/v1"  # accepted on parse only
MAX_POINTER_SIZE = 1024

# Batch API
LFS_MEDIA_TYPE = "application/vnd.git-lfs+json"
OCTET_STREAM = "application/octet-stream"
BASIC_TRANSFER = "basic"

# I/O
CHUNK_SIZE = 64 * 1024
DEFAULT_TIMEOUT = 60.0
LOCK_TIMEOUT = 300

# Configuration
CONFIG_FILE = ".lfs-client.yaml"

# Version
CLIENT_VERSION = "0.1.0"
USER_AGENT = f"lfs-client/{CLIENT_VERSION}"
