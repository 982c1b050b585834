# ============================================
# forestfit - src/forestfit/utils/config_loader.py
# YAML + environment configuration management
# ============================================

import os
import sys
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional, Union, List
from dataclasses import dataclass
from datetime import datetime

import yaml
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

CONFIG_DIR_ENV = "FORESTFIT_CONFIG_DIR"


@dataclass
class ConfigMetadata:
    """Where a configuration came from"""
    config_name: str
    file_path: Optional[Path]
    last_modified: Optional[datetime]
    environment: str = "development"
    from_defaults: bool = False


class ConfigValidationError(Exception):
    """Raised when a configuration file cannot be parsed or validated"""
    pass


class ConfigLoader:
    """
    Configuration management for forestfit

    Features:
    - YAML files shipped with the package, overridable by directory
    - Environment variable substitution (${VAR} and ${VAR:default})
    - In-code defaults when a file is missing
    - Dot-path access and runtime overrides
    """

    CONFIG_FILES = ("model_config.yaml", "logging.yaml")

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        """
        Initialize ConfigLoader

        Args:
            config_dir: Path to configuration directory. If None, uses
                $FORESTFIT_CONFIG_DIR or the packaged config directory.
        """
        self.config_dir = self._resolve_config_dir(config_dir)
        self.environment = os.getenv("ENVIRONMENT", "development")

        self.configs: Dict[str, Dict[str, Any]] = {}
        self.metadata: Dict[str, ConfigMetadata] = {}
        self._validation_schemas: Dict[str, Dict[str, Any]] = {
            'model_config': {'required': ['hyperparameters']},
            'logging': {'required': ['version']},
        }

        # Basic logger; logger.py configures handlers once configs are loaded
        self.logger = logging.getLogger(__name__)

        self._load_all_configs()

    def _resolve_config_dir(self, config_dir: Optional[Union[str, Path]]) -> Path:
        """Pick the configuration directory"""
        if config_dir:
            return Path(config_dir)

        env_dir = os.getenv(CONFIG_DIR_ENV)
        if env_dir:
            return Path(env_dir)

        return Path(__file__).resolve().parents[1] / "config"

    def _load_all_configs(self):
        """Load all configuration files, falling back to defaults"""
        for config_file in self.CONFIG_FILES:
            config_name = config_file.replace('.yaml', '').replace('.yml', '')
            try:
                self._load_config_file(config_file, config_name)
            except FileNotFoundError:
                self.logger.debug(f"{config_file} not found in {self.config_dir}, using defaults")
                self._use_default_config(config_name)
            except ConfigValidationError as e:
                self.logger.warning(f"Failed to load {config_file}: {e}")
                self._use_default_config(config_name)

    def _load_config_file(self, filename: str, config_name: str):
        """Load a single configuration file"""
        config_path = self.config_dir / filename

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Invalid YAML in {filename}: {e}") from e

        config_data = self._process_environment_variables(config_data)

        if config_name in self._validation_schemas:
            self._validate_config(config_data, config_name)

        self.configs[config_name] = config_data

        stat = config_path.stat()
        self.metadata[config_name] = ConfigMetadata(
            config_name=config_name,
            file_path=config_path,
            last_modified=datetime.fromtimestamp(stat.st_mtime),
            environment=self.environment
        )

        self.logger.debug(f"Loaded configuration: {config_name}")

    def _process_environment_variables(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Process environment variable substitutions in config

        Supports formats:
        - ${VAR_NAME}
        - ${VAR_NAME:default_value}
        """
        def process_value(value):
            if isinstance(value, str):
                if value.startswith('${') and value.endswith('}'):
                    env_spec = value[2:-1]

                    if ':' in env_spec:
                        var_name, default_value = env_spec.split(':', 1)
                        return _coerce_scalar(os.getenv(var_name, default_value))
                    else:
                        return _coerce_scalar(os.getenv(env_spec, value))

                return value
            elif isinstance(value, dict):
                return {k: process_value(v) for k, v in value.items()}
            elif isinstance(value, list):
                return [process_value(item) for item in value]
            else:
                return value

        return process_value(config_data)

    def _validate_config(self, config_data: Dict[str, Any], config_name: str):
        """Validate configuration against schema"""
        schema = self._validation_schemas[config_name]

        for key in schema.get('required', []):
            if key not in config_data:
                raise ConfigValidationError(f"Missing required key '{key}' in {config_name}")

    def _use_default_config(self, config_name: str):
        """Register the in-code default for a configuration"""
        defaults = {
            'model_config': self._get_model_config_defaults,
            'logging': self._get_logging_config_defaults,
        }

        if config_name not in defaults:
            self.logger.warning(f"No default configuration available for {config_name}")
            return

        self.configs[config_name] = defaults[config_name]()
        self.metadata[config_name] = ConfigMetadata(
            config_name=config_name,
            file_path=None,
            last_modified=None,
            environment=self.environment,
            from_defaults=True
        )

    def get_config(self, config_name: str) -> Dict[str, Any]:
        """
        Get complete configuration by name

        Args:
            config_name: Name of configuration (without .yaml extension)

        Returns:
            Complete configuration dictionary
        """
        if config_name not in self.configs:
            self.logger.warning(f"Configuration '{config_name}' not found")
            return {}

        return json.loads(json.dumps(self.configs[config_name]))

    def get(self, config_name: str, key_path: str, default: Any = None) -> Any:
        """
        Get specific configuration value using dot notation

        Args:
            config_name: Name of configuration
            key_path: Dot-separated path to key (e.g., 'hyperparameters.nTrees')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        current = self.configs.get(config_name, {})

        try:
            for key in key_path.split('.'):
                current = current[key]
            return current
        except (KeyError, TypeError):
            return default

    def set(self, config_name: str, key_path: str, value: Any):
        """
        Set configuration value (runtime only, not persisted)

        Args:
            config_name: Name of configuration
            key_path: Dot-separated path to key
            value: Value to set
        """
        current = self.configs.setdefault(config_name, {})

        keys = key_path.split('.')
        for key in keys[:-1]:
            current = current.setdefault(key, {})

        current[keys[-1]] = value
        self.logger.debug(f"Set config {config_name}.{key_path} = {value}")

    def reload_config(self, config_name: Optional[str] = None):
        """
        Reload configuration files from disk

        Args:
            config_name: Specific config to reload, or None for all
        """
        if config_name:
            try:
                self._load_config_file(f"{config_name}.yaml", config_name)
                self.logger.info(f"Reloaded configuration: {config_name}")
            except (FileNotFoundError, ConfigValidationError) as e:
                self.logger.error(f"Failed to reload {config_name}: {e}")
        else:
            self.configs.clear()
            self.metadata.clear()
            self._load_all_configs()
            self.logger.info("Reloaded all configurations")

    def get_metadata(self, config_name: str) -> Optional[ConfigMetadata]:
        """Get metadata for configuration"""
        return self.metadata.get(config_name)

    def list_configs(self) -> List[str]:
        """Get list of loaded configuration names"""
        return list(self.configs.keys())

    def export_config(self, config_name: str, format: str = 'yaml') -> str:
        """
        Export configuration in specified format

        Args:
            config_name: Name of configuration to export
            format: Export format ('yaml', 'json')

        Returns:
            Configuration as formatted string
        """
        config = self.get_config(config_name)

        if format.lower() == 'json':
            return json.dumps(config, indent=2, default=str)
        elif format.lower() == 'yaml':
            return yaml.dump(config, default_flow_style=False, indent=2, sort_keys=False)
        else:
            raise ValueError(f"Unsupported export format: {format}")

    def get_environment_info(self) -> Dict[str, Any]:
        """Get environment and configuration information"""
        return {
            'environment': self.environment,
            'config_directory': str(self.config_dir),
            'loaded_configs': list(self.configs.keys()),
            'python_version': sys.version,
        }

    # Default configuration templates
    def _get_model_config_defaults(self) -> Dict[str, Any]:
        """Get default model configuration"""
        return {
            'hyperparameters': {
                'maxDepth': 5,
                'nTrees': 9,
                'bRatio': 0.7,
                'fbRatio': 0.7,
            },
            'ensemble': {
                'n_jobs': 1,
                'replace': False,
            },
            'validation': {
                'test_ratio': 0.2,
                'n_folds': 5,
                'min_folds': 3,
                'shuffle': True,
                'seed': 0,
            },
            'selection': {
                'qof': 'rSqBar',
                'cross': False,
            },
        }

    def _get_logging_config_defaults(self) -> Dict[str, Any]:
        """Get default logging configuration"""
        return {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {
                'simple': {
                    'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                    'datefmt': '%Y-%m-%d %H:%M:%S'
                }
            },
            'handlers': {
                'console': {
                    'class': 'logging.StreamHandler',
                    'level': 'WARNING',
                    'formatter': 'simple',
                    'stream': 'ext://sys.stderr'
                }
            },
            'loggers': {
                'forestfit': {'level': 'INFO', 'handlers': ['console'], 'propagate': True}
            }
        }


def _coerce_scalar(value: Any) -> Any:
    """Turn environment strings into YAML scalars ("3" -> 3, "true" -> True)"""
    if not isinstance(value, str):
        return value
    try:
        return yaml.safe_load(value) if value else value
    except yaml.YAMLError:
        return value


# Global configuration instance
config = ConfigLoader()

# Convenience functions for common operations
def get_config(config_name: str) -> Dict[str, Any]:
    """Get complete configuration by name"""
    return config.get_config(config_name)

def get(config_name: str, key_path: str, default: Any = None) -> Any:
    """Get specific configuration value using dot notation"""
    return config.get(config_name, key_path, default)

def reload_configs():
    """Reload all configurations from disk"""
    config.reload_config()

def get_environment() -> str:
    """Get current environment"""
    return config.environment

def get_model_config() -> Dict[str, Any]:
    """Get model configuration"""
    return get_config('model_config')
