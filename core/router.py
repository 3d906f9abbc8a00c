"""Routing of parsed messages to built-in handlers and extension modules"""

import asyncio
import platform
import dataclasses
from typing import Awaitable, Callable, Dict
from .logging_config import log
from .message import IrcMessage
from .module_system import FLOOD_DELAY

CTCP_DELIMITER = '\x01'
SLEEP_REPLY = 'Pfffff. Sleep. Sleep is wrong.'
QUIT_MESSAGE = 'I never could reach the top shelf!'

HELP_INTRO = [
    "Hi. I am the project bot version 1.0. I help with development projects. "
    "You can interact with me using the following commands:",
    "Basic commands:",
    "  .help ~ This help message.",
    "  .modules ~ A list of loaded modules.",
    "  .die ~ Make me log off.",
]

Handler = Callable[..., Awaitable[None]]

class CommandRouter:
    """Decides which handler runs for every inbound message"""

    def __init__(self, version: str = '1.0'):
        self.version = version
        self.handlers: Dict[str, Handler] = {
            'PING': self.handle_ping,
            'PRIVMSG': self.handle_privmsg,
            'JOIN': self.handle_join,
            'QUIT': self.handle_quit,
            'NOTICE': self.handle_notice,
            'MODE': self.handle_mode,
        }
        self.numeric_handlers: Dict[str, Handler] = {
            '353': self.handle_names_reply,
        }
        self.builtin_commands: Dict[str, Handler] = {
            'die': self.command_die,
            'help': self.command_help,
            'modules': self.command_modules,
        }

    async def route(self, irc, message: IrcMessage):
        if not message.command:
            return

        if message.is_numeric:
            handler = self.numeric_handlers.get(message.command)
            if handler:
                await handler(irc, message)
            return

        handler = self.handlers.get(message.command)
        if handler is None:
            log('BOT', f"No handler for command: {message.command}")
            return
        await handler(irc, message)

    async def handle_ping(self, irc, message: IrcMessage):
        await irc.send_command(f"PONG {message.body}")

    async def handle_privmsg(self, irc, message: IrcMessage):
        nick = message.get_nick()

        if message.target == irc.get_self_nick():
            # Private chat, so answer the person who asked
            target = nick
        else:
            target = message.target

        parts = message.body.split(' ')
        first_word = parts[0]
        body = ' '.join(parts[1:])

        if message.body.startswith(CTCP_DELIMITER):
            log('CTCP', 'Received CTCP Message')
            await self.handle_ctcp(irc, target, first_word, body)
            return

        if first_word == f"{irc.get_self_nick()}:":
            await irc.send_message(target, f"{nick}: Keep in mind I am just a bot.")
            return

        if 'sleep' in body.lower() and 'Pfffff' not in body:
            await irc.send_message(target, SLEEP_REPLY)

        if not first_word.startswith('.'):
            return

        command = first_word[1:].strip()
        builtin = self.builtin_commands.get(command)
        if builtin:
            await builtin(irc, message, target)
            return

        if irc.registry.get(command) is not None:
            # The module only sees what follows its command word
            await irc.registry.dispatch(irc, command, dataclasses.replace(message, body=body))
        else:
            log('BOT', f"Unknown command {first_word} from {nick}")
            await irc.send_message(target, f"Command not found: {first_word}")

    async def handle_ctcp(self, irc, target: str, ctcp_type: str, body: str):
        if ctcp_type.startswith(CTCP_DELIMITER):
            ctcp_type = ctcp_type[1:].replace(CTCP_DELIMITER, '')

        if ctcp_type == 'VERSION':
            response = (f"ProjectBot:{self.version}:{platform.system()} "
                        f"Python {platform.python_version()}")
        else:
            response = f"CTCP message of type '{ctcp_type}' is not handled by this bot."

        await irc.send_notice(target, f"{CTCP_DELIMITER}{ctcp_type} {response}{CTCP_DELIMITER}")

    async def command_die(self, irc, message: IrcMessage, target: str):
        nick = message.get_nick()
        if not irc.is_admin(nick):
            log('BOT', f"Refused .die from {nick}")
            await irc.send_message(target, "Admin access required")
            return
        log('BOT', f"Quit requested by {nick}")
        await irc.quit(QUIT_MESSAGE)

    async def command_help(self, irc, message: IrcMessage, target: str):
        nick = message.get_nick()
        if message.target != irc.get_self_nick():
            await irc.send_message(target, f"{irc.get_self_nick()} sent a private message to {nick}.")
        await self.send_help(irc, nick)

    async def send_help(self, irc, nick: str):
        for line in HELP_INTRO:
            await irc.send_message(nick, line)

        for module_name, help_messages in irc.registry.help_messages():
            await irc.send_message(nick, f"{module_name} module commands:")
            for command, description in help_messages.items():
                await irc.send_message(nick, f"  {command} ~ {description}")
                await asyncio.sleep(FLOOD_DELAY)

    async def command_modules(self, irc, message: IrcMessage, target: str):
        await irc.send_message(target, "Loaded modules: " + ', '.join(irc.registry.names()))

    async def handle_join(self, irc, message: IrcMessage):
        nick = message.get_nick()
        log('BOT', f"{nick} just joined.")

        if nick == irc.get_self_nick():
            # The server's echo of our own JOIN carries our full prefix
            irc.self_source = message.source

    async def handle_quit(self, irc, message: IrcMessage):
        log('BOT', f"{message.get_nick()} just quit.")

    async def handle_notice(self, irc, message: IrcMessage):
        log('BOT', f"NOTICE from {message.source}: {message.body}")

    async def handle_mode(self, irc, message: IrcMessage):
        log('BOT', f"MODE information: {message.body}")

    async def handle_names_reply(self, irc, message: IrcMessage):
        log('BOT', f"Names: {message.body}")
