import yaml
from pathlib import Path

DEFAULT_CONFIG = {
    "storage": {
        "local_path": "~/.office-check-in/state.yaml",
    },
    "sync": {
        "enabled": False,
        "remote_path": "~/Dropbox/office-check-in/state.yaml",
    },
    "location": {
        "fix_timeout_seconds": 60,
        "max_regions": 20,
    },
    "scheduler": {
        "tick_interval_seconds": 30,
    },
    "notifier": {
        "enabled": True,
        "notify_channel": "",
    },
    "launch_at_login": {
        "autostart_dir": "~/.config/autostart",
        "command": "office-check-in",
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """ベース設定にオーバーライドをマージする"""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(path: str = "config.yaml") -> dict:
    """YAML設定ファイルをロードし、デフォルト設定とマージして返す"""
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}
        return _deep_merge(DEFAULT_CONFIG, user_config)
    return _deep_merge(DEFAULT_CONFIG, {})
