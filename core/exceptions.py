"""Custom exceptions for the IRC bot"""

class BotError(Exception):
    """Base exception for bot-related errors"""
    pass

class ModuleLoadError(BotError):
    """Raised when an extension module cannot be resolved or configured"""
    pass

class ModuleError(BotError):
    """Raised when an extension module fails while handling an event"""
    pass

class APIError(BotError):
    """Raised when external API calls fail"""
    def __init__(self, message: str, api_name: str = None, status_code: int = None):
        super().__init__(message)
        self.api_name = api_name
        self.status_code = status_code
