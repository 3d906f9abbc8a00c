"""Trac ticket links, timeline announcements and ticket creation"""

import logging
from email.utils import parsedate_to_datetime
from typing import List, Optional
import requests
from bs4 import BeautifulSoup
from core.exceptions import APIError
from core.logging_config import log
from core.message import split_args
from core.module_system import IrcModule, register_module

logger = logging.getLogger(__name__)

TIMELINE_QUERY = 'timeline?ticket=on&changeset=on&milestone=on&wiki=on&max=5&daysback=90&format=rss'

@register_module("trac")
class TracModule(IrcModule):
    """Links to a Trac instance and reports its timeline"""

    USER_AGENT = 'IRC ProjectBot Trac Module v0.1'
    TIMEOUT = 30

    def configure(self, settings):
        super().configure(settings)
        url = self.require_setting('url')
        if not url.endswith('/'):
            self.settings['url'] = url + '/'

        # Timeline items ordered by publication timestamp, oldest first
        self.timeline: List[dict] = []
        self.last_timestamp = 0
        self.last_link = ''
        self.form_token = ''

        self.session = requests.Session()
        self.session.headers['User-Agent'] = self.USER_AGENT
        if self.settings.get('user'):
            self.session.auth = (self.settings['user'], self.settings.get('password', ''))

    @property
    def url(self) -> str:
        return self.settings['url']

    def get_help_messages(self):
        return {
            '.trac': 'Show URL to trac instance for configured project',
            '.trac url': 'Show URL to trac instance for configured project',
            '.trac timeline': 'Show a list of the latest timeline updates for configured trac instance (shortcut: .trac tl)',
            '.trac <ticket number>': 'Show URL to a specific trac ticket',
            '.trac ticket <ticket number>': 'Show URL to a specific trac ticket (shortcut: .trac t)',
            '.trac changeset <changeset number>': 'Show URL to a specific changeset (shortcut: .trac cs)',
            '.trac ^^': 'Show URL to most recent reported timeline item',
        }

    async def init(self, irc):
        await self.process_interval_events(irc)

    async def handle_message(self, irc, message):
        response = self.parse_subcommand(message.body.strip(), message.get_nick())
        if not response.strip():
            return

        await self.reply(irc, message, response)
        self.last_link = ''

    def parse_subcommand(self, body: str, nick: str) -> str:
        """Work out the reply for a .trac command"""
        if body == '':
            return self.url

        if body.isdigit():
            return self.get_ticket_url(body)

        args = split_args(body)
        if not args:
            return self.url
        subcommand = args.pop(0)

        if subcommand in ('changeset', 'cs'):
            if not args:
                return 'Missing changeset number'
            return self.get_changeset_url(args[0])
        if subcommand == 'create':
            if not args:
                return 'Missing ticket details'
            return self.create_ticket(args, nick)
        if subcommand in ('ticket', 't'):
            if not args:
                return 'Missing ticket number'
            return self.get_ticket_url(args[0])
        if subcommand in ('timeline', 'tl'):
            return self.get_timeline()
        if subcommand == '^^':
            return self.last_link
        return self.url

    def get_ticket_url(self, ticket_number: str) -> str:
        if not str(ticket_number).isdigit():
            return 'Invalid ticket number; Must be numeric'
        return f"{self.url}ticket/{ticket_number}"

    def get_changeset_url(self, changeset_id: str) -> str:
        if not str(changeset_id).isdigit():
            return 'Invalid changeset number; Must be numeric'
        return f"{self.url}changeset/{changeset_id}"

    async def process_interval_events(self, irc):
        log('mod_trac', 'Refreshing timeline')
        self.refresh_timeline()

        response = self.get_timeline(since_last=True)
        if not response:
            log('mod_trac', 'No new timeline messages')
            return

        log('mod_trac', 'Sending timeline messages')
        await self.broadcast(irc, response)
        # Remember the newest item for .trac ^^
        self.last_link = self.timeline[-1]['link']

    def refresh_timeline(self) -> bool:
        url = self.url + TIMELINE_QUERY
        log('mod_trac', f"Loading Timeline {url}")

        try:
            response = self.session.get(url, timeout=self.TIMEOUT)
            response.raise_for_status()
        except requests.HTTPError as e:
            raise APIError(f"Timeline request failed: {e}", 'trac', e.response.status_code)
        except requests.RequestException as e:
            raise APIError(f"Timeline request failed: {e}", 'trac')

        timeline = self.parse_timeline(response.text)
        if timeline is None:
            return False
        self.timeline = timeline
        return True

    @staticmethod
    def parse_timeline(rss: str) -> Optional[List[dict]]:
        """Parse a Trac RSS timeline into items, oldest first

        Items can share a publication second, as when a changeset closes
        a ticket, so each one is kept alongside its timestamp.
        """
        soup = BeautifulSoup(rss, 'xml')
        channel = soup.find('channel')
        items = channel.find_all('item') if channel else []
        if not items:
            log('mod_trac', 'RSS xml missing channel or item.')
            return None

        timeline = []
        for item in items:
            pub_date = item.find('pubDate')
            try:
                published = parsedate_to_datetime(pub_date.get_text(strip=True))
            except (AttributeError, TypeError, ValueError):
                logger.warning("Skipping timeline item without a readable pubDate")
                continue

            creator = item.find('creator')
            timeline.append({
                'timestamp': int(published.timestamp()),
                'title': item.find('title').get_text(strip=True) if item.find('title') else '',
                'link': item.find('link').get_text(strip=True) if item.find('link') else '',
                'pubDate': published.strftime('%Y-%m-%d %I:%M %p'),
                'creator': creator.get_text(strip=True) if creator else '',
            })

        # Stable, so same-second items keep their feed order
        return sorted(timeline, key=lambda entry: entry['timestamp'])

    def get_timeline(self, since_last: bool = False) -> str:
        """Timeline formatted for IRC, optionally only items not yet reported"""
        if not self.timeline:
            return ''

        response = []
        for item in self.timeline:
            item_text = item['pubDate']
            if item['creator']:
                item_text += f" ({item['creator']})"
            item_text += f" : {item['title']}"

            if not since_last or item['timestamp'] > self.last_timestamp:
                response.append(item_text)

        if since_last:
            self.last_timestamp = max(item['timestamp'] for item in self.timeline)

        return '\n'.join(response)

    def fetch_form_token(self):
        """Load the new ticket page so Trac sets its form token cookie"""
        if self.form_token:
            return

        try:
            response = self.session.get(self.url + 'newticket', timeout=self.TIMEOUT)
        except requests.RequestException as e:
            raise APIError(f"Could not load new ticket form: {e}", 'trac')

        if response.status_code == 200:
            self.form_token = self.session.cookies.get('trac_form_token', '')

    def create_ticket(self, args: List[str], nick: str) -> str:
        """Create a ticket and return its URL, or an empty string"""
        self.fetch_form_token()
        summary, description = args[0], ' '.join(args[1:])

        post = {
            '__FORM_TOKEN': self.form_token,
            'field_summary': summary,
            'field_description': description,
            'field_reporter': nick,
            'field_status': 'new',
            'submit': 'Create Ticket',
        }

        try:
            response = self.session.post(
                self.url + 'newticket', data=post,
                timeout=self.TIMEOUT, allow_redirects=False
            )
        except requests.RequestException as e:
            raise APIError(f"Could not create ticket: {e}", 'trac')

        # Trac redirects to the newly created ticket
        return response.headers.get('Location', '')
