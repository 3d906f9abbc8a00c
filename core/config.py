import os
import re
import json
import copy
import configparser
from collections.abc import Mapping
from typing import Any, Dict, List, Optional
from dotenv import load_dotenv
from pathlib import Path
from .exceptions import BotError
from .paths import get_config_path

class ConfigError(BotError):
    """Raised when configuration is invalid or missing"""
    pass

# Keys whose values are ordered channel lists
LIST_KEYS = {'autojoin', 'autopart', 'admins'}

DEFAULTS = {
    'server': {
        'port': 6667,
        'timeout': 60,
    },
    'user': {},
    'channels': {
        'autojoin': [],
        'autopart': [],
    },
    'modules': {},
    'logging': {
        'level': 'INFO',
        'file': 'projectbot.log',
        'timezone': 'America/Chicago',
    },
}

# Environment variable -> (section, key, type)
ENV_OVERRIDES = {
    'IRC_HOSTNAME': ('server', 'hostname', str),
    'IRC_PORT': ('server', 'port', int),
    'IRC_TIMEOUT': ('server', 'timeout', int),
    'IRC_NICK': ('user', 'nick', str),
    'IRC_REALNAME': ('user', 'realname', str),
    'LOG_LEVEL': ('logging', 'level', str),
}

def _merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result

def _split_list(value) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [item for item in re.split(r'[\s,]+', str(value or '')) if item]

class ConfigSection(Mapping):
    """Read-only view over a branch of the configuration tree"""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data = data or {}

    def __getitem__(self, key):
        value = self._data[key]
        if isinstance(value, dict):
            return ConfigSection(value)
        return value

    def __iter__(self):
        return iter(self._data)

    def __len__(self):
        return len(self._data)

    def __getattr__(self, name):
        if name.startswith('_'):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(f"No configuration value for '{name}'")

    def __repr__(self):
        return f"{type(self).__name__}({self._data!r})"

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)

class BotConfig(ConfigSection):
    """Configuration tree with server, user, channel, module and logging settings"""

    def __init__(self, data: Optional[Dict[str, Any]] = None, source: Optional[Path] = None):
        super().__init__(self._normalize(_merge(DEFAULTS, data or {})))
        self.source = source

    @classmethod
    def load(cls, filename=None, use_env: bool = True) -> 'BotConfig':
        """Load configuration from a JSON or INI file"""
        config_path = Path(filename) if filename else get_config_path()

        if not config_path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")

        if config_path.suffix.lower() == '.ini':
            data = cls._load_ini(config_path)
        else:
            data = cls._load_json(config_path)

        if use_env:
            load_dotenv(config_path.parent / '.env')
            data = _merge(data, cls._env_overrides())

        config = cls(data, source=config_path)
        config.validate()
        return config

    @staticmethod
    def _load_json(config_path: Path) -> Dict[str, Any]:
        try:
            with open(config_path, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in configuration file: {e}")
        except OSError as e:
            raise ConfigError(f"Error loading configuration: {e}")

        if not isinstance(data, dict):
            raise ConfigError("Configuration file must contain a JSON object")
        return data

    @staticmethod
    def _load_ini(config_path: Path) -> Dict[str, Any]:
        parser = configparser.ConfigParser(interpolation=None)
        parser.optionxform = str
        try:
            with open(config_path, 'r') as f:
                parser.read_file(f)
        except configparser.Error as e:
            raise ConfigError(f"Invalid INI in configuration file: {e}")
        except OSError as e:
            raise ConfigError(f"Error loading configuration: {e}")

        data = {}
        for section_name in parser.sections():
            section = {}
            for key, value in parser.items(section_name):
                # "svn.url" under [modules] becomes modules -> svn -> url
                if '.' in key:
                    group, sub_key = key.split('.', 1)
                    section.setdefault(group, {})[sub_key] = value
                else:
                    section[key] = value
            data[section_name] = section
        return data

    @staticmethod
    def _env_overrides() -> Dict[str, Any]:
        overrides = {}
        for var, (section, key, value_type) in ENV_OVERRIDES.items():
            value = os.getenv(var)
            if value is None or value == '':
                continue
            try:
                overrides.setdefault(section, {})[key] = value_type(value)
            except ValueError:
                raise ConfigError(f"Invalid value for {var}: {value!r}")
        return overrides

    @staticmethod
    def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
        for section in ('channels', 'user'):
            for key in LIST_KEYS:
                if key in data.get(section, {}):
                    data[section][key] = _split_list(data[section][key])

        if not isinstance(data.get('modules'), dict):
            raise ConfigError("The modules section must map module names to settings")
        return data

    def validate(self):
        """Validate configuration is complete and valid"""
        server = self._data['server']
        user = self._data['user']

        if not server.get('hostname'):
            raise ConfigError("IRC server hostname not configured (server.hostname)")
        if not user.get('nick'):
            raise ConfigError("Bot nickname not configured (user.nick)")

        for key in ('port', 'timeout'):
            try:
                server[key] = int(server[key])
            except (TypeError, ValueError):
                raise ConfigError(f"server.{key} must be a number, got {server[key]!r}")
            if server[key] <= 0:
                raise ConfigError(f"server.{key} must be positive")

        if not user.get('realname'):
            user['realname'] = user['nick']

        for name, settings in self._data['modules'].items():
            if not isinstance(settings, dict):
                raise ConfigError(f"Settings for module '{name}' must be a section of key/value pairs")
        return True
