import os
from dotenv import load_dotenv

load_dotenv()

# Format constants (changing the digest algorithm requires a version bump)
MAGIC = "BWNF"
FORMAT_VERSION = "1.0"
SUPPORTED_MAJOR_VERSIONS = (1,)

# Decode guardrail
MAX_FILE_BYTES = int(os.getenv("BWNF_MAX_FILE_BYTES", str(16 * 1024 * 1024)))

DEFAULT_ALGORITHM = os.getenv("BWNF_DEFAULT_ALGORITHM", "ECDSA-SHA256")
CREATOR_KEYS = os.getenv("BWNF_CREATOR_KEYS", "config/creators.json")
PLATFORM_PUBLIC_KEY = os.getenv("BWNF_PLATFORM_PUBLIC_KEY", "keys/platform_pk.pem")
LOG_LEVEL = os.getenv("BWNF_LOG_LEVEL", "INFO").upper()
