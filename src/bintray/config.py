import os
from pathlib import Path
from typing import Dict, Mapping, Optional

from .domain.models import Settings

LIBRARY_ID = "go-bintray"
LIBRARY_VERSION = "0.1"
USER_AGENT = f"{LIBRARY_ID}/{LIBRARY_VERSION}"

# the latest API is always served here; a versioned one lives at https://bintray.com/api/v1
DEFAULT_BASE_URL = "https://api.bintray.com/"

CONFIG_DIR = Path.home() / ".bintray"
CONFIG_FILE = CONFIG_DIR / "config"

USER_KEY = "BINTRAY_USER"
API_KEY_KEY = "BINTRAY_API_KEY"
API_URL_KEY = "BINTRAY_API_URL"


def _read_config(config_file: Path) -> Dict[str, str]:
    """read KEY=VALUE lines from the config file."""
    config = {}
    if not config_file.exists():
        return config

    try:
        with open(config_file, "r") as f:
            for line in f:
                line = line.strip()
                if "=" in line and not line.startswith("#"):
                    key, value = line.split("=", 1)
                    config[key.strip()] = value.strip()
    except (IOError, PermissionError, OSError):
        # if we can't read the file, treat as not configured
        return {}
    return config


def load_settings(
    config_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """
    load connection settings.

    values from the environment win over the config file; anything missing
    falls back to the defaults.
    """
    config_file = config_file or CONFIG_FILE
    environ = os.environ if environ is None else environ

    values = _read_config(config_file)
    for key in (USER_KEY, API_KEY_KEY, API_URL_KEY):
        if environ.get(key):
            values[key] = environ[key]

    return Settings(
        subject=values.get(USER_KEY, ""),
        api_key=values.get(API_KEY_KEY, ""),
        base_url=values.get(API_URL_KEY) or DEFAULT_BASE_URL,
    )


def save_settings(settings: Settings, config_file: Optional[Path] = None) -> None:
    """write settings to the config file, preserving unrelated keys."""
    config_file = config_file or CONFIG_FILE
    config_file.parent.mkdir(parents=True, exist_ok=True)

    config = _read_config(config_file)
    config[USER_KEY] = settings.subject
    config[API_KEY_KEY] = settings.api_key
    config[API_URL_KEY] = settings.base_url

    try:
        with open(config_file, "w") as f:
            for key, value in config.items():
                f.write(f"{key}={value}\n")
    except (IOError, PermissionError, OSError) as e:
        raise RuntimeError(f"failed to write config file: {e}") from e
