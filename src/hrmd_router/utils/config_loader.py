"""Configuration loading and validation for the HRMD receiver determination service.

This module loads the router configuration from a YAML file into an immutable
RouterConfig value. The value is created once at process start and handed to
every invocation of the service; nothing in it is mutated afterwards.

Typical usage example:
    config = Config.load("config/router_config.yaml")
    errors = Config.validate(config)
    if errors:
        raise ConfigurationError(f"Configuration invalid: {errors}")
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .error_handlers import ConfigurationError

DEFAULT_CONFIG_PATH = "config/router_config.yaml"
DEFAULT_PARAMETER_PREFIX = "R"
DEFAULT_OPEN_ENDED_DATE = "99991231"
DEFAULT_LOOKUP_TIMEOUT_SECONDS = 30.0


def _split_infotypes(value: Any) -> Optional[Tuple[str, ...]]:
    """Normalize the management infotypes setting to a tuple of codes.

    Accepts either a YAML list or a comma-separated string ("1000,1001").
    """
    if value is None:
        return None
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        raise ConfigurationError(
            f"management_infotypes must be a list or a comma-separated string, "
            f"got {type(value).__name__}",
            config_key="management_infotypes",
        )
    return tuple(item.strip() for item in items if item.strip())


@dataclass(frozen=True)
class RouterConfig:
    """Container for router configuration parameters.

    The three required values (lookup_service, lookup_channel,
    management_infotypes) may be None when the config was built with
    from_dict(); the service checks them before processing a document.

    Attributes:
        lookup_service: Directory-service identity (communication component).
        lookup_channel: Directory-channel identity used for the lookup.
        management_infotypes: Ordered organizational-management infotype codes.
        lookup_endpoint_url: Optional URL used by the SOAP directory channel.
        lookup_timeout_seconds: Upper bound for one directory call.
        parameter_prefix: Prefix prepended to company codes for parameter names.
        open_ended_date: Sentinel ENDDA value marking a currently effective slice.
        dynamic_configuration_namespace: Optional namespace for routing pairs.
        logging: Logging section as loaded from YAML.
    """

    lookup_service: Optional[str]
    lookup_channel: Optional[str]
    management_infotypes: Optional[Tuple[str, ...]]
    lookup_endpoint_url: Optional[str] = None
    lookup_timeout_seconds: float = DEFAULT_LOOKUP_TIMEOUT_SECONDS
    parameter_prefix: str = DEFAULT_PARAMETER_PREFIX
    open_ended_date: str = DEFAULT_OPEN_ENDED_DATE
    dynamic_configuration_namespace: Optional[str] = None
    logging: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "RouterConfig":
        """Build a RouterConfig from a (possibly incomplete) dictionary.

        Args:
            config_dict: Parsed YAML content.

        Returns:
            RouterConfig with missing required values left as None.

        Raises:
            ConfigurationError: If a present value has the wrong shape.
        """
        lookup = config_dict.get("lookup") or {}
        routing = config_dict.get("routing") or {}

        try:
            timeout = float(
                lookup.get("timeout_seconds", DEFAULT_LOOKUP_TIMEOUT_SECONDS)
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                "lookup.timeout_seconds must be a number",
                config_key="lookup.timeout_seconds",
                original_error=e,
            ) from e

        if timeout <= 0:
            raise ConfigurationError(
                f"lookup.timeout_seconds must be positive, got {timeout}",
                config_key="lookup.timeout_seconds",
            )

        return cls(
            lookup_service=lookup.get("component_name") or None,
            lookup_channel=lookup.get("channel_name") or None,
            management_infotypes=_split_infotypes(
                config_dict.get("management_infotypes")
            ),
            lookup_endpoint_url=lookup.get("endpoint_url") or None,
            lookup_timeout_seconds=timeout,
            parameter_prefix=str(
                routing.get("parameter_prefix", DEFAULT_PARAMETER_PREFIX)
            ),
            open_ended_date=str(
                routing.get("open_ended_date", DEFAULT_OPEN_ENDED_DATE)
            ),
            dynamic_configuration_namespace=routing.get(
                "dynamic_configuration_namespace"
            )
            or None,
            logging=dict(config_dict.get("logging") or {}),
        )

    def missing_keys(self) -> List[str]:
        """Return the configuration keys of required values that are not set."""
        missing = []
        if not self.lookup_service:
            missing.append("lookup.component_name")
        if not self.lookup_channel:
            missing.append("lookup.channel_name")
        if not self.management_infotypes:
            missing.append("management_infotypes")
        return missing


class Config:
    """Static utility class for loading and validating configuration files."""

    @staticmethod
    def load(config_path: Optional[str] = DEFAULT_CONFIG_PATH) -> RouterConfig:
        """Load router configuration from a YAML file.

        Args:
            config_path: Path to the configuration YAML file. Defaults to
                "config/router_config.yaml".

        Returns:
            RouterConfig containing the loaded configuration.

        Raises:
            FileNotFoundError: If the configuration file does not exist.
            ConfigurationError: If the file is not valid YAML, is not a mapping,
                or any required value is missing.
        """
        config_file_path = Path(config_path or DEFAULT_CONFIG_PATH)

        if not config_file_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file_path}")

        try:
            with open(config_file_path, "r", encoding="utf-8") as f:
                config_dict = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse configuration file: {config_file_path}",
                original_error=e,
            ) from e

        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                "Configuration file must contain a YAML dictionary"
            )

        config = RouterConfig.from_dict(config_dict)

        missing = config.missing_keys()
        if missing:
            raise ConfigurationError(
                f"Missing required configuration values: {missing}",
                config_key=missing[0],
            )

        return config

    @staticmethod
    def validate(config: RouterConfig) -> List[str]:
        """Validate a loaded configuration.

        Args:
            config: RouterConfig object to validate.

        Returns:
            List of error messages. Empty list if the configuration is usable.
        """
        errors: List[str] = [
            f"Missing required value: {key}" for key in config.missing_keys()
        ]

        if config.management_infotypes:
            bad_codes = [
                code
                for code in config.management_infotypes
                if not (len(code) == 4 and code.isdigit())
            ]
            if bad_codes:
                errors.append(
                    f"Infotype codes must be four digits, got: {bad_codes}"
                )

        if not config.open_ended_date.isdigit() or len(config.open_ended_date) != 8:
            errors.append(
                f"routing.open_ended_date must be a YYYYMMDD date, "
                f"got: {config.open_ended_date!r}"
            )

        if config.lookup_endpoint_url and not config.lookup_endpoint_url.startswith(
            ("http://", "https://")
        ):
            errors.append(
                f"lookup.endpoint_url must be an http(s) URL, "
                f"got: {config.lookup_endpoint_url!r}"
            )

        return errors
