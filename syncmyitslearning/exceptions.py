class ItslearningError(Exception):
    """Base class for failures that abort a single folder, file or course"""


class TransportError(ItslearningError):
    def __init__(self, url: str, status: int, reason: str = "") -> None:
        status_line = f"{status} {reason}" if reason else str(status)
        super().__init__(f"HTTP {status_line} for {url}")
        self.url = url
        self.status = status
        self.reason = reason


class ParseError(ItslearningError):
    """An expected element, attribute or pattern is missing from a page"""


class UnsupportedResourceKind(ItslearningError):
    pass


class AuthenticationError(ItslearningError):
    pass
