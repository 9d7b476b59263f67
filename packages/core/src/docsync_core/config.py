import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "model": "anthropic",
    "label": "docsync",
    "title_marker": "[DocSync]",
    "min_feedback_length": 10,
    "max_chars_per_file": 20000,
    "preview_lines": 60,
    "generation_timeout": 120,  # seconds; applies to every AI call
    "host_timeout": 30,  # seconds; applies to every GitHub API call
    "lock_timeout": 300,
    "store": "sqlite",
    "store_path": ".docsync.db",
    "gist_id": None,
    "notify_webhook": None,
    "ignore_authors": ["github-actions[bot]"],
}


def load_config(config_path: str = ".docsync.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .docsync.yml in the current directory
      3. CLI argument overrides

    Credentials are never read from the file, only from the environment.
    """
    config = {**DEFAULT_CONFIG, "ignore_authors": list(DEFAULT_CONFIG["ignore_authors"])}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"{config_path} must contain a YAML mapping.")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")
    if os.environ.get("DOCSYNC_WEBHOOK_URL"):
        config["notify_webhook"] = os.environ["DOCSYNC_WEBHOOK_URL"]

    return config
