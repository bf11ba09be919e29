"""Configuration constants for the Amazon ECS Bridge.

Named constants for the remote protocol and API limits.
"""

# -----------------------------------------------------------------------------
# Adapter identity
# -----------------------------------------------------------------------------

ADAPTER_NAME: str = "Amazon ECS Bridge"


# -----------------------------------------------------------------------------
# ECS JSON protocol
# -----------------------------------------------------------------------------

# Service name used in the SigV4 credential scope
ECS_SERVICE: str = "ecs"

# Prefix of the x-amz-target header; the action name is appended after a dot
ECS_TARGET_PREFIX: str = "AmazonEC2ContainerServiceV20141113"

ECS_CONTENT_TYPE: str = "application/x-amz-json-1.1"

# Default endpoint template, formatted with the configured region
ECS_ENDPOINT_TEMPLATE: str = "https://ecs.{region}.amazonaws.com"

# Request keys whose values are sent as JSON integers rather than strings
INTEGER_REQUEST_KEYS: frozenset[str] = frozenset({"maxResults"})

# Error envelope marker in JSON protocol responses
ERROR_TYPE_KEY: str = "__type"


# -----------------------------------------------------------------------------
# EC2 (secondary "Instances" structure, reached through boto3)
# -----------------------------------------------------------------------------

EC2_SERVICE: str = "ec2"


# -----------------------------------------------------------------------------
# Signing
# -----------------------------------------------------------------------------

SIGNING_ALGORITHM: str = "AWS4-HMAC-SHA256"
SIGNING_TERMINATOR: str = "aws4_request"
AMZ_DATE_FORMAT: str = "%Y%m%dT%H%M%SZ"


# -----------------------------------------------------------------------------
# Limits
# -----------------------------------------------------------------------------

# Hard limit of identifiers accepted by a single ECS Describe call
MAX_DESCRIBE_BATCH: int = 100

# Default bound on concurrently running Describe / secondary calls
DEFAULT_MAX_CONCURRENCY: int = 5
