"""Extension module contract and registry"""

import re
import asyncio
import inspect
import logging
import importlib
import pkgutil
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass
from .exceptions import ModuleLoadError

logger = logging.getLogger(__name__)

# Pause between lines sent to several channels or in long replies, so
# servers don't kick the bot for flooding
FLOOD_DELAY = 0.2

DISABLED_VALUES = {'0', 'false', 'no', 'off', ''}

class IrcModule(ABC):
    """Base class for extension modules

    Hooks may be plain methods or coroutines; the registry awaits
    whichever it gets.
    """

    name: Optional[str] = None

    def __init__(self, settings: Optional[Dict[str, Any]] = None):
        self.settings: Dict[str, Any] = {}
        self.configure(dict(settings or {}))

    def configure(self, settings: Dict[str, Any]):
        self.settings = settings

    async def init(self, irc):
        pass

    @abstractmethod
    async def handle_message(self, irc, message):
        """Handle a command addressed to this module"""

    async def process_interval_events(self, irc):
        pass

    def get_help_messages(self) -> Dict[str, str]:
        return {}

    def require_setting(self, key: str):
        """Return a required setting or fail configuration"""
        value = self.settings.get(key)
        if not value:
            raise ModuleLoadError(f"[mod_{self.name}] missing required configuration parameter: {key}")
        return value

    async def reply(self, irc, message, response: str):
        """Answer in the channel addressing the sender, or privately"""
        nick = message.get_nick()
        if message.target == irc.get_self_nick():
            await irc.send_message(nick, response)
        else:
            await irc.send_message(message.target, f"{nick}: {response}")

    async def broadcast(self, irc, response: str):
        """Send a response to every joined channel"""
        for channel in irc.get_joined_channels():
            await irc.send_message(channel, response)
            await asyncio.sleep(FLOOD_DELAY)

@dataclass
class ModuleDescriptor:
    """A configured module and its live instance, if it loaded"""
    name: str
    settings: Dict[str, Any]
    instance: Optional[IrcModule] = None
    error: Optional[str] = None

    @property
    def loaded(self) -> bool:
        return self.instance is not None

# Factories keyed by lowercase module name, filled by @register_module
_module_factories: Dict[str, Callable[..., IrcModule]] = {}

def register_module(name: str):
    """Decorator to make a module class available to the registry"""
    def decorator(cls):
        cls.name = name.lower()
        _module_factories[cls.name] = cls
        return cls
    return decorator

def get_module_factory(name: str) -> Optional[Callable[..., IrcModule]]:
    return _module_factories.get(str(name).lower())

def discover_modules(package: str = "modules") -> int:
    """Import every extension module in a package so its factories register"""
    try:
        pkg = importlib.import_module(package)
    except ImportError:
        logger.warning(f"No {package} package found")
        return 0

    imported = 0
    for finder, name, ispkg in pkgutil.iter_modules(pkg.__path__, pkg.__name__ + "."):
        try:
            importlib.import_module(name)
            imported += 1
            logger.debug(f"Imported extension module: {name}")
        except Exception as e:
            logger.error(f"Failed to import extension module {name}: {e}")
    return imported

def is_enabled(settings: Dict[str, Any]) -> bool:
    """Modules load unless their settings explicitly say load = false"""
    if 'load' not in settings:
        return True
    value = settings['load']
    if isinstance(value, str):
        return value.strip().lower() not in DISABLED_VALUES
    return bool(value)

async def call_hook(hook, *args):
    result = hook(*args)
    if inspect.isawaitable(result):
        return await result
    return result

class ModuleRegistry:
    """Manages configured extension modules, keyed by name"""

    def __init__(self):
        self.descriptors: Dict[str, ModuleDescriptor] = {}
        self.initialized = False

    @property
    def modules(self) -> Dict[str, IrcModule]:
        return {name: d.instance for name, d in self.descriptors.items() if d.loaded}

    def names(self) -> List[str]:
        return list(self.modules)

    def get(self, name: str) -> Optional[IrcModule]:
        descriptor = self.descriptors.get(name)
        return descriptor.instance if descriptor else None

    def register_all(self, modules_config):
        for name, settings in modules_config.items():
            self.register_module(name, settings)

    def register_module(self, name: str, settings) -> bool:
        """Register one module; failures are recorded and never abort startup"""
        settings = dict(settings or {})
        if not is_enabled(settings):
            logger.info(f"Module {name} disabled in configuration")
            return False

        module_name = re.sub(r'[^A-Za-z_]', '', name).lower()
        if module_name in self.descriptors:
            logger.warning(f"Module {module_name} is already registered")
            return False

        factory_name = settings.get('class') or module_name
        descriptor = ModuleDescriptor(name=module_name, settings=settings)
        self.descriptors[module_name] = descriptor

        factory = get_module_factory(factory_name)
        if factory is None:
            descriptor.error = f"Class {factory_name} not found."
            logger.error(f"Failed to load module {name}. {descriptor.error}")
            return False

        try:
            descriptor.instance = factory(settings)
        except Exception as e:
            descriptor.error = str(e)
            logger.error(f"Failed to load module {name}. Error message: {e}")
            return False

        logger.info(f"Loaded module {module_name}.")
        return True

    async def _run_hook(self, name: str, hook_name: str, *args) -> Tuple[bool, Any]:
        module = self.get(name)
        try:
            return True, await call_hook(getattr(module, hook_name), *args)
        except Exception as e:
            logger.error(f"Module {name} failed in {hook_name}: {e}")
            return False, None

    async def initialize(self, irc):
        """Call init on each loaded module, once per registry"""
        if self.initialized:
            return
        self.initialized = True
        for name in self.names():
            await self._run_hook(name, 'init', irc)

    async def dispatch(self, irc, name: str, message) -> bool:
        if self.get(name) is None:
            return False
        ok, _ = await self._run_hook(name, 'handle_message', irc, message)
        return ok

    async def process_interval_events(self, irc):
        for name in self.names():
            await self._run_hook(name, 'process_interval_events', irc)

    def help_messages(self) -> List[Tuple[str, Dict[str, str]]]:
        result = []
        for name, module in self.modules.items():
            try:
                result.append((name, dict(module.get_help_messages())))
            except Exception as e:
                logger.error(f"Module {name} failed in get_help_messages: {e}")
        return result
