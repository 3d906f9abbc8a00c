"""IRC message parsing"""

import re
from dataclasses import dataclass
from typing import List

# Quoted runs stay whole; everything else splits on whitespace and commas
ARG_PATTERN = re.compile(r"""[\s,]*"([^"]+)"[\s,]*|[\s,]*'([^']+)'[\s,]*|[\s,]+""")

@dataclass(frozen=True)
class IrcMessage:
    """A single line received from the server"""
    source: str = ''
    command: str = ''
    target: str = ''
    body: str = ''

    def get_nick(self) -> str:
        """Get the nickname from a source of the form :nick!user@host"""
        if not self.source or '!' not in self.source:
            return ''
        return self.source[1:self.source.index('!')]

    @property
    def is_numeric(self) -> bool:
        return bool(re.fullmatch(r'[0-9]{3}', self.command))

def split_args(text: str) -> List[str]:
    """Split a string by whitespace and commas, preserving quoted strings"""
    return [arg for arg in ARG_PATTERN.split(text.strip()) if arg]

def parse_message(raw: str) -> IrcMessage:
    """Parse a raw protocol line; malformed input yields an empty message"""
    if not raw or not raw.strip():
        return IrcMessage()

    args = split_args(raw)

    source = ''
    if args and args[0].startswith(':'):
        source = args.pop(0).strip()
        body_offset = raw.find(':', 1)
    else:
        body_offset = raw.find(':')

    command = args.pop(0).strip() if args else ''

    # Anything between the command and the first colon is the target
    target = ''
    remainder = ' '.join(args).strip()
    colon = remainder.find(':')
    if colon > 0:
        target = remainder[:colon].strip()

    # No colon at all means the whole line stands in for the body
    body = raw[body_offset:] if body_offset != -1 else raw
    colon = body.find(':')
    if colon > 0:
        body = body[colon + 1:]
    else:
        body = body[1:]

    return IrcMessage(source=source, command=command, target=target, body=body.strip())
