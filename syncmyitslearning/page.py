import logging
import urllib.parse
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup as bs
from bs4.element import Tag

from syncmyitslearning.exceptions import ParseError, TransportError

MAX_REDIRECTS = 10

logger = logging.getLogger(__name__)


class Page:
    """Parsed HTML page with lookups that report missing elements explicitly"""

    def __init__(self, url: str, text: str) -> None:
        self.url = url
        self.text = text
        self.soup = bs(text, features="html.parser")

    def __repr__(self):
        return f"Page(url={self.url})"

    def find_id(self, element_id: str) -> Optional[Tag]:
        element = self.soup.find(id=element_id)
        return element if isinstance(element, Tag) else None

    def require_id(self, element_id: str) -> Tag:
        element = self.find_id(element_id)
        if element is None:
            raise ParseError(f"Element #{element_id} not found on {self.url}")
        return element

    def find_class(self, class_name: str) -> List[Tag]:
        return self.soup.find_all(class_=class_name)

    def text_of(self, element_id: str) -> str:
        return self.require_id(element_id).get_text()

    def attribute(self, element: Tag, name: str) -> str:
        # html.parser lowercases attribute names, e.g. Download -> download
        value = element.get(name.lower())
        if not value:
            raise ParseError(
                f"Attribute {name} missing on <{element.name} id={element.get('id')}> on {self.url}"
            )
        if isinstance(value, list):
            value = " ".join(value)
        return value


class Fetched:
    """Final response of a GET together with every Set-Cookie seen on the way"""

    def __init__(self, response: httpx.Response, set_cookies: List[str]) -> None:
        self.response = response
        self.set_cookies = set_cookies
        self._page: Optional[Page] = None

    @property
    def url(self) -> str:
        return str(self.response.url)

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def text(self) -> str:
        return self.response.text

    @property
    def location(self) -> Optional[str]:
        location = self.response.headers.get("location")
        if not location:
            return None
        return urllib.parse.urljoin(self.url, location)

    def raise_for_status(self) -> None:
        if not self.response.is_success:
            raise TransportError(
                self.url, self.response.status_code, self.response.reason_phrase
            )

    def page(self) -> Page:
        if self._page is None:
            self._page = Page(self.url, self.response.text)
        return self._page


async def fetch(
    client: httpx.AsyncClient,
    url: str,
    cookie_header: str = "",
    follow_redirects: bool = False,
) -> Fetched:
    """GET url sending only the given cookie header.

    Redirects are followed by hand so the cookie header is sent on every
    hop, which httpx would drop on its own redirects.
    """
    headers = {"Cookie": cookie_header} if cookie_header else {}
    set_cookies: List[str] = []
    for _ in range(MAX_REDIRECTS + 1):
        response = await client.get(url, headers=headers, follow_redirects=False)
        set_cookies.extend(response.headers.get_list("set-cookie"))
        fetched = Fetched(response, set_cookies)
        if not (follow_redirects and response.is_redirect and fetched.location):
            return fetched
        logger.debug(f"Following redirect {url} -> {fetched.location}")
        url = fetched.location
    raise TransportError(url, response.status_code, "Too many redirects")
