"""Hard-coded configuration constants not meant to be user-configurable."""

DEFAULT_CONFIG_DIR_ENV = "PLANGIT_CONFIG_DIR"
DEFAULT_GLOBAL_CONFIG_DIR = "~/.config/plangit"
LOCAL_STATE_DIR = ".plangit"
CONFIG_FILE_NAME = "config.json"

# Accepted values for the git_backend key
BACKEND_EMBEDDED = "embedded"
BACKEND_EXTERNAL = "external"
BACKEND_AUTO = "auto"
ALLOWED_BACKENDS = (BACKEND_EMBEDDED, BACKEND_EXTERNAL, BACKEND_AUTO)

# Branch naming conventions shared by both backends
DEFAULT_MAIN_BRANCHES = ("main", "master")
DEFAULT_BRANCH_CANDIDATES = ("main", "master", "trunk", "develop")
DEFAULT_BRANCH_FALLBACK = "master"
REMOTE_NAME = "origin"

COMPLETED_DIR_NAME = "completed"
