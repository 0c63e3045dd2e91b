"""Configuration management for ShieldGuard."""

import copy
from typing import Any, List, Tuple

# Default configuration schema
DEFAULT_CONFIG = {
    "app": {"name": "ShieldGuard", "version": "0.1.0", "environment": "development"},
    "protection": {
        "max_requests_per_minute": 60,
        "max_requests_per_hour": 1000,
        "reputation_threshold": 30,
        "bot_detection_enabled": True,
        "challenge_enabled": True,
        "bot_penalty": -10,
        "suspicious_penalty": -5,
        "clean_reward": 1,
        "log_low_reputation": False,
    },
    "storage": {
        "backend": "memory",  # memory | sqlite | redis
        "database_path": ":memory:",
        "redis_url": "redis://localhost:6379/0",
        "operation_timeout": 2.0,
    },
    "retention": {
        "reputation_ttl_seconds": 86400,  # 24 hours
        "minute_window_ttl_seconds": 120,
        "hour_window_ttl_seconds": 7200,
        "attack_log_ttl_seconds": 604800,  # 7 days
        "recent_attacks_ttl_seconds": 86400,
    },
    "attack_log": {"recent_attacks_limit": 10, "severity_overrides": {}},
    "analytics": {
        "page_size": 1000,
        "attack_scan_budget": 5000,
        "reputation_scan_budget": 1000,
        "metrics_scan_budget": 2000,
        "concurrency": 16,
        "recent_attacks_limit": 10,
        "top_threats_limit": 10,
        "attack_data_ttl_seconds": 60,
        "reputation_stats_ttl_seconds": 60,
        "metrics_ttl_seconds": 30,
    },
    "logging": {
        "level": "INFO",
        "parent_logger": None,
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        "date_format": "%Y-%m-%d %H:%M:%S",
        "enable_console": True,
        "enable_file": False,
        "file_path": None,
        "max_file_size": 10485760,  # 10MB
        "backup_count": 5,
    },
}

STORAGE_BACKENDS = ("memory", "sqlite", "redis")
SEVERITIES = ("low", "medium", "high", "critical")


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge two dictionaries."""
    result = copy.deepcopy(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = deep_merge(result[k], v)
        else:
            result[k] = copy.deepcopy(v)
    return result


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ConfigurationValidator:
    """Validates configuration and provides error reporting."""

    @staticmethod
    def validate_config(config: dict) -> Tuple[bool, List[str]]:
        errors = []
        if not isinstance(config, dict):
            errors.append("Config must be a dictionary.")
            return False, errors
        # Validate app
        app = config.get("app", {})
        for key in ("name", "version", "environment"):
            if not isinstance(app.get(key, None), str):
                errors.append(f"app.{key} must be a string.")
        # Validate protection
        protection = config.get("protection", {})
        for key in ("max_requests_per_minute", "max_requests_per_hour"):
            value = protection.get(key, None)
            if not _is_int(value) or value <= 0:
                errors.append(f"protection.{key} must be a positive integer.")
        threshold = protection.get("reputation_threshold", None)
        if not _is_int(threshold) or not 0 <= threshold <= 100:
            errors.append("protection.reputation_threshold must be an integer between 0 and 100.")
        for key in ("bot_detection_enabled", "challenge_enabled", "log_low_reputation"):
            if not isinstance(protection.get(key, None), bool):
                errors.append(f"protection.{key} must be a boolean.")
        for key in ("bot_penalty", "suspicious_penalty", "clean_reward"):
            if not _is_int(protection.get(key, None)):
                errors.append(f"protection.{key} must be an integer.")
        # Validate storage
        storage = config.get("storage", {})
        if storage.get("backend", None) not in STORAGE_BACKENDS:
            errors.append(f"storage.backend must be one of {', '.join(STORAGE_BACKENDS)}.")
        if not isinstance(storage.get("database_path", None), str):
            errors.append("storage.database_path must be a string.")
        if not isinstance(storage.get("redis_url", None), str):
            errors.append("storage.redis_url must be a string.")
        timeout = storage.get("operation_timeout", None)
        if timeout is not None and (not _is_number(timeout) or timeout <= 0):
            errors.append("storage.operation_timeout must be a positive number or None.")
        # Validate retention
        retention = config.get("retention", {})
        for key in (
            "reputation_ttl_seconds",
            "minute_window_ttl_seconds",
            "hour_window_ttl_seconds",
            "attack_log_ttl_seconds",
            "recent_attacks_ttl_seconds",
        ):
            value = retention.get(key, None)
            if not _is_int(value) or value <= 0:
                errors.append(f"retention.{key} must be a positive integer.")
        # Validate attack log
        attack_log = config.get("attack_log", {})
        limit = attack_log.get("recent_attacks_limit", None)
        if not _is_int(limit) or limit <= 0:
            errors.append("attack_log.recent_attacks_limit must be a positive integer.")
        overrides = attack_log.get("severity_overrides", None)
        if not isinstance(overrides, dict):
            errors.append("attack_log.severity_overrides must be a dictionary.")
        elif any(v not in SEVERITIES for v in overrides.values()):
            errors.append(f"attack_log.severity_overrides values must be one of {', '.join(SEVERITIES)}.")
        # Validate analytics
        analytics = config.get("analytics", {})
        for key in (
            "page_size",
            "attack_scan_budget",
            "reputation_scan_budget",
            "metrics_scan_budget",
            "concurrency",
            "recent_attacks_limit",
            "top_threats_limit",
        ):
            value = analytics.get(key, None)
            if not _is_int(value) or value <= 0:
                errors.append(f"analytics.{key} must be a positive integer.")
        for key in ("attack_data_ttl_seconds", "reputation_stats_ttl_seconds", "metrics_ttl_seconds"):
            value = analytics.get(key, None)
            if not _is_number(value) or value < 0:
                errors.append(f"analytics.{key} must be a non-negative number.")
        # Validate logging
        logging_cfg = config.get("logging", {})
        if not isinstance(logging_cfg.get("level", None), str):
            errors.append("logging.level must be a string.")
        if logging_cfg.get("parent_logger") is not None and not isinstance(logging_cfg.get("parent_logger"), str):
            errors.append("logging.parent_logger must be a string or None.")
        if not isinstance(logging_cfg.get("format", None), str):
            errors.append("logging.format must be a string.")
        if not isinstance(logging_cfg.get("date_format", None), str):
            errors.append("logging.date_format must be a string.")
        if not isinstance(logging_cfg.get("enable_console", None), bool):
            errors.append("logging.enable_console must be a boolean.")
        if not isinstance(logging_cfg.get("enable_file", None), bool):
            errors.append("logging.enable_file must be a boolean.")
        if logging_cfg.get("file_path") is not None and not isinstance(logging_cfg.get("file_path"), str):
            errors.append("logging.file_path must be a string or None.")
        if not _is_int(logging_cfg.get("max_file_size", None)):
            errors.append("logging.max_file_size must be an integer.")
        if not _is_int(logging_cfg.get("backup_count", None)):
            errors.append("logging.backup_count must be an integer.")
        return len(errors) == 0, errors

    @staticmethod
    def merge_with_defaults(user_config: dict) -> dict:
        return deep_merge(DEFAULT_CONFIG, user_config)


class ConfigurationManager:
    """Manages configuration, validation, merging, and runtime updates."""

    def __init__(self, user_config: dict = None):
        if user_config is None:
            user_config = {}
        self._config = self.load_config(user_config)

    def load_config(self, user_config: dict) -> dict:
        if not isinstance(user_config, dict):
            raise ValueError("Invalid configuration: ['Config must be a dictionary.']")
        merged = ConfigurationValidator.merge_with_defaults(user_config)
        valid, errors = ConfigurationValidator.validate_config(merged)
        if not valid:
            raise ValueError(f"Invalid configuration: {errors}")
        return merged

    @property
    def config(self) -> dict:
        return self._config

    def section(self, name: str) -> dict:
        return self._config.get(name, {})

    def update(self, key_path: str, value: Any) -> None:
        """Update a config value at a dotted key path (e.g., 'protection.max_requests_per_minute')."""
        keys = key_path.split(".")
        candidate = copy.deepcopy(self._config)
        d = candidate
        for k in keys[:-1]:
            if k not in d or not isinstance(d[k], dict):
                d[k] = {}
            d = d[k]
        d[keys[-1]] = value
        valid, errors = ConfigurationValidator.validate_config(candidate)
        if not valid:
            raise ValueError(f"Invalid configuration after update: {errors}")
        self._config = candidate

    def reload(self, new_config: dict) -> None:
        self._config = self.load_config(new_config)
