import logging
import logging.handlers
import sys
from datetime import datetime
import zoneinfo
from .paths import ensure_directories, get_log_path

# The original bot ran on Chicago time
DEFAULT_TIMEZONE = 'America/Chicago'

TAG_LOGGER = 'projectbot'

class ZonedFormatter(logging.Formatter):
    """Formatter that renders log times in a configured timezone"""

    def __init__(self, fmt=None, datefmt=None, timezone: str = DEFAULT_TIMEZONE):
        super().__init__(fmt, datefmt)
        self.tz = zoneinfo.ZoneInfo(timezone)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.tz)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.strftime('%Y-%m-%d %H:%M:%S %Z')

class BotLogger:
    """Centralized logging configuration for the IRC bot"""

    def __init__(self, log_level: str = "INFO", log_file: str = "projectbot.log",
                 timezone: str = DEFAULT_TIMEZONE, to_file: bool = True):
        self.log_level = getattr(logging, str(log_level).upper(), logging.INFO)
        self.log_file = log_file
        self.timezone = timezone
        self.to_file = to_file
        self.setup_logging()

    def setup_logging(self):
        """Configure logging with file rotation and structured output"""
        root_logger = logging.getLogger()
        root_logger.setLevel(self.log_level)

        # Clear any existing handlers
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(ZonedFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S %Z',
            timezone=self.timezone
        ))
        root_logger.addHandler(console_handler)

        if not self.to_file:
            return

        ensure_directories()
        file_formatter = ZonedFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S %Z',
            timezone=self.timezone
        )

        file_handler = logging.handlers.RotatingFileHandler(
            get_log_path(self.log_file),
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            get_log_path(self.log_file.replace('.log', '_errors.log')),
            maxBytes=5*1024*1024,  # 5MB
            backupCount=3
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(file_formatter)
        root_logger.addHandler(error_handler)

def setup_logging(log_level: str = "INFO", log_file: str = "projectbot.log",
                  timezone: str = DEFAULT_TIMEZONE, to_file: bool = True):
    """Setup logging for the bot"""
    return BotLogger(log_level, log_file, timezone, to_file)

def get_tag_logger(tag: str) -> logging.Logger:
    """Get the logger that records lines for a traffic tag such as SERVER or CLIENT"""
    return logging.getLogger(f"{TAG_LOGGER}.{tag.strip('[]').lower()}")

def log(tag: str, text, level: int = logging.INFO):
    """Record a tagged line of text"""
    if isinstance(text, (list, tuple)):
        text = "\n".join(str(line) for line in text)
    get_tag_logger(tag).log(level, str(text).strip())
