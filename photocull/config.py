"""Manages application configuration via an INI file."""

import configparser
import logging
from pathlib import Path
from typing import Optional

from photocull.logging_setup import get_app_data_dir

log = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "core": {
        "default_directory": "",
    },
    "cache": {
        "capacity": "50",
        "ttl_seconds": "300",
    },
    "processing": {
        "discard_percent": "0.05",  # percent of pixels, so 0.05 discards 0.05%
        "value_gamma": "1.15",
        "custom_low_clamp": "0",
        "custom_high_clamp": "255",
        "custom_gamma": "1.0",
    },
    "prefetch": {
        "max_workers": "0",  # 0 = derive from CPU count
    },
}

class AppConfig:
    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or get_app_data_dir() / "photocull.ini"
        self.config = configparser.ConfigParser()
        self.load()

    def load(self):
        """Loads the config, creating it with defaults if it doesn't exist."""
        if not self.config_path.exists():
            log.info(f"Creating default config at {self.config_path}")
            self.config.read_dict(DEFAULT_CONFIG)
            self.save()
        else:
            log.info(f"Loading config from {self.config_path}")
            self.config.read(self.config_path)
            # Ensure all sections and keys exist
            for section, keys in DEFAULT_CONFIG.items():
                if not self.config.has_section(section):
                    self.config.add_section(section)
                for key, value in keys.items():
                    if not self.config.has_option(section, key):
                        self.config.set(section, key, value)
            self.save() # Save to add any missing keys

    def save(self):
        """Saves the current configuration to the INI file."""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with self.config_path.open("w") as f:
                self.config.write(f)
            log.info(f"Saved config to {self.config_path}")
        except OSError as e:
            log.error(f"Failed to save config to {self.config_path}: {e}")

    def get(self, section, key, fallback=None):
        return self.config.get(section, key, fallback=fallback)

    def getint(self, section, key, fallback=None):
        return self.config.getint(section, key, fallback=fallback)

    def getfloat(self, section, key, fallback=None):
        return self.config.getfloat(section, key, fallback=fallback)

    def set(self, section, key, value):
        if not self.config.has_section(section):
            self.config.add_section(section)
        self.config.set(section, key, str(value))

# Global config instance
config = AppConfig()
