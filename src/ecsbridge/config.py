"""Configuration management for the Amazon ECS Bridge."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .constants import DEFAULT_MAX_CONCURRENCY, ECS_ENDPOINT_TEMPLATE
from .utils.exceptions import ValidationError


@dataclass
class AwsConfig:
    """AWS credentials and connection configuration."""

    access_key: str
    secret_key: str = field(repr=False)
    region: str
    endpoint_url: str | None = None  # Overrides https://ecs.<region>.amazonaws.com
    ec2_endpoint_url: str | None = None  # Passed to boto3; None lets it pick the regional endpoint
    timeout: int = 30
    verify_ssl: bool = True
    max_connections: int = 20
    max_keepalive: int = 10

    @property
    def ecs_endpoint(self) -> str:
        """ECS endpoint for the configured region."""
        return self.endpoint_url or ECS_ENDPOINT_TEMPLATE.format(region=self.region)

    def validate(self) -> None:
        """
        Ensure every property needed to sign a request is present.

        Raises:
            ValidationError: If access key, secret key or region is empty
        """
        missing = [
            name
            for name, value in (
                ("access_key", self.access_key),
                ("secret_key", self.secret_key),
                ("region", self.region),
            )
            if not value
        ]
        if missing:
            raise ValidationError(
                f"Missing required AWS configuration: {', '.join(missing)}",
                field=missing[0],
            )


@dataclass
class ConcurrencyConfig:
    """Bounds for parallel Describe and secondary lookups."""

    max_concurrency: int = DEFAULT_MAX_CONCURRENCY


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"
    file: Path | None = None


@dataclass
class BridgeConfig:
    """
    Complete configuration for the Amazon ECS Bridge.

    This combines all configuration sections.
    """

    aws: AwsConfig | None = None
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def require_aws(self) -> AwsConfig:
        """
        Return the validated AWS section.

        Raises:
            ValidationError: If the section is absent or incomplete
        """
        if self.aws is None:
            raise ValidationError(
                "No AWS configuration found. Set AWS_ACCESS_KEY_ID, "
                "AWS_SECRET_ACCESS_KEY and AWS_REGION or provide a config file."
            )
        self.aws.validate()
        return self.aws

    @classmethod
    def from_file(cls, config_path: Path) -> "BridgeConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML config file

        Returns:
            BridgeConfig instance
        """
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(
                f"Invalid configuration file structure in {config_path}: "
                f"expected dictionary, got {type(data).__name__}"
            )

        aws_data = data.get("aws")
        aws = AwsConfig(**aws_data) if aws_data else None

        concurrency = ConcurrencyConfig(**data.get("concurrency", {}))

        logging_data = data.get("logging", {})
        if "file" in logging_data and logging_data["file"]:
            logging_data["file"] = Path(logging_data["file"])
        logging = LoggingConfig(**logging_data)

        return cls(aws=aws, concurrency=concurrency, logging=logging)

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        """
        Create configuration from environment variables.

        Environment variables:
            AWS_ACCESS_KEY_ID: Access key id
            AWS_SECRET_ACCESS_KEY: Secret key
            AWS_REGION / AWS_DEFAULT_REGION: Region
            ECS_ENDPOINT_URL: Optional ECS endpoint override
            EC2_ENDPOINT_URL: Optional EC2 endpoint override
            ECS_MAX_CONCURRENCY: Parallel Describe calls (default: 5)
            LOG_LEVEL: Logging level (default: INFO)
            LOG_FORMAT: console or json (default: console)

        Returns:
            BridgeConfig instance

        Raises:
            ValueError: If an access key is set but the secret key or region is missing
        """
        aws_config = None
        access_key = os.getenv("AWS_ACCESS_KEY_ID")
        if access_key:
            secret_key = os.environ.get("AWS_SECRET_ACCESS_KEY", "")
            region = os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION", "")

            missing = []
            if not secret_key:
                missing.append("AWS_SECRET_ACCESS_KEY")
            if not region:
                missing.append("AWS_REGION")

            if missing:
                raise ValueError(
                    f"AWS_ACCESS_KEY_ID is set but required settings are missing: "
                    f"{', '.join(missing)}."
                )

            verify_ssl_str = os.environ.get("ECS_VERIFY_SSL", "true").lower()
            aws_config = AwsConfig(
                access_key=access_key,
                secret_key=secret_key,
                region=region,
                endpoint_url=os.environ.get("ECS_ENDPOINT_URL") or None,
                ec2_endpoint_url=os.environ.get("EC2_ENDPOINT_URL") or None,
                verify_ssl=verify_ssl_str not in ("false", "0", "no", "off"),
            )

        concurrency = ConcurrencyConfig(
            max_concurrency=int(
                os.environ.get("ECS_MAX_CONCURRENCY", str(DEFAULT_MAX_CONCURRENCY))
            )
        )
        logging_config = LoggingConfig(
            level=os.environ.get("LOG_LEVEL", "INFO"),
            format=os.environ.get("LOG_FORMAT", "console"),
        )

        return cls(aws=aws_config, concurrency=concurrency, logging=logging_config)


def load_config(config_file: Path | None = None) -> BridgeConfig:
    """
    Load configuration from file or environment variables.

    Args:
        config_file: Optional path to YAML config file

    Returns:
        BridgeConfig instance

    Raises:
        FileNotFoundError: If config_file is specified but doesn't exist
    """
    if config_file:
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file}")
        return BridgeConfig.from_file(config_file)
    return BridgeConfig.from_env()
