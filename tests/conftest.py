"""Shared fixtures for bot tests"""

import asyncio
import pytest
from core.config import BotConfig
from core.exceptions import ModuleError, ModuleLoadError
from core.module_system import IrcModule, ModuleRegistry, register_module
from core.server import IrcServer, SessionState

class FakeReader:
    """Stands in for asyncio.StreamReader, fed one line at a time"""

    def __init__(self, lines=(), events=None):
        self.queue = asyncio.Queue()
        self.events = events if events is not None else []
        for line in lines:
            self.feed(line)

    def feed(self, line):
        if isinstance(line, str):
            line = line.encode('utf-8')
        self.queue.put_nowait(line)

    def feed_eof(self):
        self.queue.put_nowait(b'')

    async def readline(self):
        self.events.append('read')
        return await self.queue.get()

class FakeWriter:
    """Stands in for asyncio.StreamWriter and records what was sent"""

    def __init__(self):
        self.data = b''
        self.closed = False

    def write(self, data):
        self.data += data

    async def drain(self):
        pass

    def close(self):
        self.closed = True

    async def wait_closed(self):
        pass

    @property
    def lines(self):
        return [line for line in self.data.decode('utf-8').split('\r\n') if line]

class RecordingModule(IrcModule):
    """Module that records every call made to it"""

    def configure(self, settings):
        super().configure(settings)
        self.calls = []
        self.events = settings.get('events')

    def _record(self, entry):
        self.calls.append(entry)
        if self.events is not None:
            self.events.append(entry)

    async def init(self, irc):
        self._record(('init',))

    async def handle_message(self, irc, message):
        self._record(('handle_message', message.body))

    async def process_interval_events(self, irc):
        self._record(('interval', self.name))

    def get_help_messages(self):
        return {f'.{self.name}': f'Does {self.name} things', f'.{self.name} more': 'Does more'}

def make_config(**overrides):
    data = {
        'server': {'hostname': 'irc.example.net', 'port': 6667, 'timeout': 60},
        'user': {'nick': 'projectbot', 'realname': 'Project Bot'},
        'channels': {'autojoin': ['#project', '#dev'], 'autopart': ['#old']},
        'modules': {},
    }
    for section, values in overrides.items():
        data.setdefault(section, {}).update(values)
    config = BotConfig(data)
    config.validate()
    return config

@pytest.fixture
def config():
    return make_config()

@pytest.fixture
def registry():
    return ModuleRegistry()

@pytest.fixture
def connected_server(config, registry):
    """A session that has finished its handshake, writing to a FakeWriter"""
    irc = IrcServer(config, registry=registry)
    irc.writer = FakeWriter()
    irc.state = SessionState.CONNECTED
    irc.self_nick = 'projectbot'
    irc.self_source = ':projectbot'
    return irc

@register_module("alpha")
class AlphaModule(RecordingModule):
    pass

@register_module("beta")
class BetaModule(RecordingModule):
    pass

@register_module("broken")
class BrokenModule(RecordingModule):
    def configure(self, settings):
        raise ModuleLoadError("[mod_broken] missing required configuration parameter: url")

@register_module("flaky")
class FlakyModule(RecordingModule):
    async def handle_message(self, irc, message):
        raise ModuleError("flaky handler exploded")

    async def process_interval_events(self, irc):
        raise ModuleError("flaky interval exploded")

    def get_help_messages(self):
        raise ModuleError("no help today")
