from server_harness.config.loader import flatten_config, load_yaml_config
from server_harness.config.server_configuration import (
    DomainConfigurationFactory,
    ServerConfiguration,
    StandaloneConfigurationFactory,
)
from server_harness.config.settings import HarnessSettings, HttpSettings, LoggingSettings, resolve_settings
from server_harness.config.source import ConfigurationSource, environment_name, parse_parameter

__all__ = [
    "ConfigurationSource",
    "DomainConfigurationFactory",
    "HarnessSettings",
    "HttpSettings",
    "LoggingSettings",
    "ServerConfiguration",
    "StandaloneConfigurationFactory",
    "environment_name",
    "flatten_config",
    "load_yaml_config",
    "parse_parameter",
    "resolve_settings",
]
