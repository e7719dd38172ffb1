"""Centralized constants for the lrctl launcher."""

# Primary service
PRIMARY_SERVICE = "lrctl"
DEFAULT_IMAGE = "gcr.io/lrctl-release/lrctl"

# Trusted endpoints
MANIFEST_URL = "https://storage.googleapis.com/lrctl-release/versions.yaml"
LAUNCHER_URL = "https://storage.googleapis.com/lrctl-release/lrctl"
REGISTRY_URL = "https://gcr.io/v2/"

# Marker every published launcher build carries
VERSION_MARKER = "lrctl_version="

# Named volumes
CONFIG_VOLUME = "lrctl-config"
LOCAL_VERSIONS_VOLUME = "lrctl-local-versions"

# Paths inside volumes / containers
CONFIG_FILE = "lrctl.conf"
VOLUME_MOUNT = "/data"
LOCAL_VERSIONS_MOUNT = "/lrctl/versions"
LOCAL_VERSIONS_FILE = "versions.yaml"

# Helper containers
HELPER_IMAGE = "busybox:stable"
HELPER_PREFIX = "lrctl-helper"

# Proxy variables forwarded to the workload container
PROXY_ENV_VARS = ("http_proxy", "https_proxy", "HTTP_PROXY", "HTTPS_PROXY", "no_proxy", "NO_PROXY")

# Network
HTTP_TIMEOUT_SECONDS = 30
DOWNLOAD_CHUNK_SIZE = 64 * 1024
