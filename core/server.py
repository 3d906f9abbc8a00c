"""IRC connection and session lifecycle"""

import asyncio
import logging
from enum import Enum
from typing import List, Optional
from .config import BotConfig
from .logging_config import log
from .message import parse_message
from .module_system import ModuleRegistry, discover_modules
from .router import CommandRouter, QUIT_MESSAGE

logger = logging.getLogger(__name__)

VERSION = "0.9.1"

# Numerics that end the MOTD and with it the handshake
END_OF_MOTD = {'376', '422'}

class SessionState(Enum):
    DISCONNECTED = 'disconnected'
    AUTHENTICATING = 'authenticating'
    CONNECTED = 'connected'

class IrcServer:
    """A single connection to an IRC server and the bot's session on it"""

    CONNECT_TIMEOUT = 2

    def __init__(self, config: BotConfig, registry: Optional[ModuleRegistry] = None,
                 router: Optional[CommandRouter] = None):
        self.config = config
        self.router = router or CommandRouter(VERSION)

        # Connection state
        self.state = SessionState.DISCONNECTED
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None
        self.server_name = ''
        self.self_nick = ''
        self.self_source = ''
        self.timeout_interval = config.server.get('timeout', 60)

        if registry is None:
            registry = ModuleRegistry()
            discover_modules()
            registry.register_all(config.modules)
        self.registry = registry

    @property
    def connected(self) -> bool:
        return self.state is SessionState.CONNECTED

    async def run(self) -> bool:
        """Connect, join the configured channels and listen until the connection ends"""
        result = await self.connect(
            self.config.server.hostname,
            self.config.server.port,
            self.config.user.nick,
            self.config.user.get('realname', self.config.user.nick)
        )
        if not result:
            return False

        for channel in self.config.channels.autojoin:
            await self.join_channel(channel)

        for channel in self.config.channels.autopart:
            await self.part_channel(channel)

        await self.listen()
        return True

    async def connect(self, server: str, port: int, nickname: str, realname: str) -> bool:
        """Open the connection and register; True once the MOTD has ended"""
        self.server_name = server
        self.self_nick = nickname
        self.self_source = f":{nickname}"

        log('BOT', f"Connecting to {server}:{port}")
        try:
            self.reader, self.writer = await asyncio.wait_for(
                asyncio.open_connection(server, port),
                timeout=self.CONNECT_TIMEOUT
            )
        except (OSError, asyncio.TimeoutError) as e:
            log('BOT', f"Not connected: {str(e) or 'connect timed out'}", logging.ERROR)
            self.state = SessionState.DISCONNECTED
            return False

        self.state = SessionState.AUTHENTICATING
        log('BOT', "Authenticating")

        try:
            # Most servers don't need a password but expect the line
            await self.send_command("PASS NOPASS")
            await self.send_command(f"NICK {nickname}")
            await self.send_command(f"USER {nickname} test localhost :{realname}")

            while True:
                try:
                    line_bytes = await self.reader.readline()
                except ValueError as e:
                    # Overlong line; the reader has already discarded it
                    log('BOT', f"Skipping unreadable line: {e}", logging.WARNING)
                    continue
                if not line_bytes:
                    break

                line = line_bytes.decode('utf-8', errors='ignore')
                if line.strip():
                    log('AUTH', line)

                message = parse_message(line)
                if message.command in END_OF_MOTD:
                    self.state = SessionState.CONNECTED
                    log('BOT', 'Connection established.')
                    return True
        except OSError as e:
            log('BOT', f"Connection failed during authentication: {e}", logging.ERROR)

        log('BOT', 'Connection closed before registration completed.', logging.ERROR)
        await self.disconnect()
        return False

    async def listen(self):
        """Read and route lines until the server closes the connection

        Each read waits at most timeout_interval seconds; an idle wait
        runs the modules' interval events before the next read starts.
        """
        if not self.connected:
            logger.error("listen() called without an established connection")
            return

        await self.registry.initialize(self)

        while self.connected:
            try:
                line_bytes = await asyncio.wait_for(
                    self.reader.readline(),
                    timeout=self.timeout_interval
                )
            except asyncio.TimeoutError:
                await self.execute_timeout_events()
                continue
            except ValueError as e:
                log('BOT', f"Skipping unreadable line: {e}", logging.WARNING)
                continue
            except OSError as e:
                log('BOT', f"Error reading from server: {e}", logging.ERROR)
                break

            if not line_bytes:
                break

            line = line_bytes.decode('utf-8', errors='ignore')
            if line.strip():
                log('SERVER', line)

            try:
                await self.router.route(self, parse_message(line))
            except OSError as e:
                log('BOT', f"Error writing to server: {e}", logging.ERROR)
                break
            except Exception as e:
                logger.error(f"Error handling message {line.strip()!r}: {e}")

        log('BOT', 'Connection to server lost.')
        await self.disconnect()

    async def execute_timeout_events(self):
        """Run the events modules registered to occur on an interval"""
        log('EVENTS', 'Timeout events cycle')
        await self.registry.process_interval_events(self)

    async def disconnect(self):
        self.state = SessionState.DISCONNECTED
        if self.writer:
            writer, self.writer = self.writer, None
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

    async def send_command(self, command: str):
        """Send a raw command line to the server"""
        if not self.writer:
            logger.warning(f"Dropping command while disconnected: {command.strip()}")
            return
        line = command.rstrip('\r\n') + '\r\n'
        self.writer.write(line.encode('utf-8'))
        await self.writer.drain()
        log('CLIENT', line)

    async def send_message(self, target: str, message: str):
        """Send a PRIVMSG, one line per line of text"""
        for line in str(message).split('\n'):
            line = line.rstrip('\r')
            if line.strip():
                await self.send_command(f"{self.self_source} PRIVMSG {target} :{line}")

    async def send_notice(self, target: str, message: str):
        await self.send_command(f"{self.self_source} NOTICE {target} :{message}")

    async def join_channel(self, channel: str):
        await self.send_command(f"JOIN {channel}")

    async def part_channel(self, channel: str):
        if not channel:
            return
        await self.send_command(f"PART {channel}")

    async def quit(self, message: str = QUIT_MESSAGE):
        """Say goodbye and close the connection"""
        await self.send_command(f"QUIT :{message}")
        await self.disconnect()

    def is_admin(self, nick: str) -> bool:
        """Anyone is an admin unless user.admins names who is"""
        admins = self.config.user.get('admins') or []
        if not admins:
            return True
        return nick.lower() in [admin.lower() for admin in admins]

    def get_self_nick(self) -> str:
        return self.self_nick

    def get_joined_channels(self) -> List[str]:
        return list(self.config.channels.autojoin)
