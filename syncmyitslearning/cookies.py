import copy
import logging
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

SESSION_COOKIE = "ASP.NET_SessionId"

logger = logging.getLogger(__name__)


class Domain(Enum):
    PORTAL = "portal"  # <school>.itslearning.com, issued at login
    PLATFORM = "platform"  # issued by the extension frame handoff
    RESOURCE = "resource"  # resource.itslearning.com


def parse_set_cookie(header: str) -> Optional[Tuple[str, str]]:
    """Return (name, value) of a raw Set-Cookie header, ignoring its attributes"""
    pair = header.split(";", 1)[0].strip()
    name, sep, value = pair.partition("=")
    if not sep or not name.strip():
        return None
    return name.strip(), value.strip()


class SessionContext:
    """Cookies collected per authentication domain while resolving files.

    The portal session id is shared by the whole run. Platform and resource
    cookies belong to a single file resolution, which works on a fork().
    """

    def __init__(self, cookies: Optional[Dict[Domain, Dict[str, str]]] = None):
        self.cookies: Dict[Domain, Dict[str, str]] = {d: {} for d in Domain}
        for domain, values in (cookies or {}).items():
            self.cookies[domain].update(values)

    def __repr__(self):
        names = {d.value: list(v) for d, v in self.cookies.items() if v}
        return f"SessionContext({names})"

    @classmethod
    def for_portal(cls, session_id: str) -> "SessionContext":
        return cls({Domain.PORTAL: {SESSION_COOKIE: session_id}})

    def get(self, domain: Domain, name: str = SESSION_COOKIE) -> Optional[str]:
        return self.cookies[domain].get(name)

    def has(self, domain: Domain) -> bool:
        return bool(self.cookies[domain])

    def cookie_header(self, domain: Domain) -> str:
        return "; ".join(f"{k}={v}" for k, v in self.cookies[domain].items())

    def merge(
        self, domain: Domain, set_cookies: Iterable[str], only: Optional[str] = None
    ) -> None:
        """Merge raw Set-Cookie headers into the cookies of one domain.

        Duplicates are collapsed and the last value per cookie name wins.
        """
        received: Dict[str, str] = {}
        for header in set_cookies:
            parsed = parse_set_cookie(header)
            if parsed is None:
                continue
            name, value = parsed
            if only and name != only:
                continue
            if name in received and received[name] != value:
                logger.warning(
                    f"Received multiple values for cookie {name} in one response "
                    f"({domain.value}), keeping the last one"
                )
            received[name] = value
        self.cookies[domain].update(received)

    def fork(self) -> "SessionContext":
        return SessionContext(copy.deepcopy(self.cookies))
