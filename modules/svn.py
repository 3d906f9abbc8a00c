"""Subversion commit announcements"""

import logging
import subprocess
from datetime import datetime
from typing import Dict, List, Optional
from core.exceptions import ModuleError
from core.logging_config import log
from core.module_system import IrcModule, register_module

logger = logging.getLogger(__name__)

LOG_SEPARATOR = '-----'

@register_module("svn")
class SvnModule(IrcModule):
    """Announces new commits and reports the latest one on request"""

    def configure(self, settings):
        super().configure(settings)
        self.require_setting('url')
        # Latest fetch, newest revision first
        self.entries: Dict[str, dict] = {}

    def get_url(self) -> str:
        return self.settings['url']

    def get_help_messages(self):
        return {'.svn': 'Show latest commit and revision number for configured project SVN repository.'}

    async def handle_message(self, irc, message):
        latest = self.latest_entry()
        if latest is None:
            response = '[mod_svn] No commits fetched yet.'
        else:
            when = latest['ts'].strftime('%m/%d/%y %H:%M:%S') if latest['ts'] else latest['datetime']
            response = f"[mod_svn] Update on {when} by {latest['user']} ({latest['revision']})"
        await self.reply(irc, message, response)

    async def process_interval_events(self, irc):
        await self.refresh_data(irc)

    def latest_entry(self) -> Optional[dict]:
        return next(iter(self.entries.values()), None)

    def build_command(self) -> List[str]:
        cmd = ['svn', 'log', '-l5', self.get_url(), '--non-interactive']
        if self.settings.get('username'):
            cmd += ['--username', self.settings['username']]
        if self.settings.get('password'):
            cmd += ['--password', self.settings['password']]
        return cmd

    def fetch_log(self) -> List[str]:
        log('mod_svn', f"svn log -l5 {self.get_url()}")
        try:
            result = subprocess.run(
                self.build_command(),
                capture_output=True, text=True
            )
        except OSError as e:
            raise ModuleError(f"[mod_svn] Error: {e}")

        if result.returncode != 0:
            raise ModuleError(f"[mod_svn] Error: {(result.stdout + result.stderr).strip()}")
        return result.stdout.splitlines()

    async def refresh_data(self, irc):
        """Fetch the log and announce revisions not seen last time"""
        log('mod_svn', 'Refreshing data from SVN')
        entries = self.read_svn_log(self.fetch_log())

        new_entries = [entry for rev, entry in entries.items() if rev not in self.entries]
        if new_entries:
            # Announce oldest first
            await self.notify_entries(list(reversed(new_entries)), irc)
        else:
            log('mod_svn', 'No new commits')

        self.entries = entries

    async def notify_entries(self, entries: List[dict], irc):
        log('mod_svn', 'Sending commit log messages')
        await self.broadcast(irc, self.create_response(entries))

    @staticmethod
    def create_response(entries: List[dict]) -> str:
        messages = []
        for entry in entries:
            when = entry['ts'].strftime('%Y-%m-%d %H:%M %p') if entry['ts'] else entry['datetime']
            messages.append(f"{entry['revision']} {entry['user']} {when} >> {entry['comment']}")
        return '\n'.join(messages)

    @staticmethod
    def read_svn_log(lines: List[str]) -> Dict[str, dict]:
        """Parse `svn log` output into entries keyed by revision"""
        entries: Dict[str, dict] = {}
        entry = None
        comment = ''

        i = 0
        while i < len(lines):
            line = lines[i]
            if line.startswith(LOG_SEPARATOR):
                if entry:
                    entry['comment'] = comment
                    entries[entry['revision']] = entry
                    entry = None
                    comment = ''

                i += 1
                if i >= len(lines):
                    break

                # r123 | alice | 2011-03-04 10:11:12 -0600 (Fri, 04 Mar 2011) | 1 line
                values = lines[i].split(' | ')
                if len(values) < 4:
                    logger.warning(f"Unreadable svn log header: {lines[i]!r}")
                    i += 1
                    continue
                entry = {
                    'revision': values[0],
                    'user': values[1],
                    'datetime': values[2],
                    'ts': SvnModule.parse_timestamp(values[2]),
                    'lines': values[3],
                }
            else:
                comment += line.strip()
            i += 1

        if entry:
            entry['comment'] = comment
            entries[entry['revision']] = entry
        return entries

    @staticmethod
    def parse_timestamp(value: str) -> Optional[datetime]:
        try:
            return datetime.strptime(value[:25], '%Y-%m-%d %H:%M:%S %z')
        except ValueError:
            return None
