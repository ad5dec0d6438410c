"""Extraction of the Office for the web form embedded in preview pages.

The preview page fills a hidden form by script, e.g.::

    form.action = 'https://view.officeapps.live.com/wv/wordviewerframe.aspx?WOPISrc=https\\x253a\\x252f\\x252fresource.itslearning.com\\x252fwopi\\x252ffiles\\x252f123&ui=en-US';
    accessTokenInput.value = 'eyJ0eXAi...';
    accessTokenTtlInput.value = '1700000000000';

The WOPI source of the action is the file's content endpoint, which serves
the raw file when given the access token.
"""
import re
from dataclasses import dataclass
from typing import Optional

from syncmyitslearning.exceptions import ParseError

FORM_ACTION_REGEX = re.compile(r"form\.action = '(\S+)';")
ACCESS_TOKEN_REGEX = re.compile(r"accessTokenInput\.value = '(\S+)';")
ACCESS_TOKEN_TTL_REGEX = re.compile(r"accessTokenTtlInput\.value = '(\S+)';")
WOPI_SRC_REGEX = re.compile(r"WOPISrc=(\S+)&ui=")

ESCAPED_CHARS = {r"\x253a": ":", r"\x252f": "/"}


@dataclass(frozen=True)
class OfficeForm:
    action: str
    access_token: str
    access_token_ttl: Optional[str] = None  # not needed for downloading

    @classmethod
    def parse(cls, text: str) -> "OfficeForm":
        action = FORM_ACTION_REGEX.search(text)
        if not action:
            raise ParseError("No form action found in office preview page")
        token = ACCESS_TOKEN_REGEX.search(text)
        if not token:
            raise ParseError("No access token found in office preview page")
        ttl = ACCESS_TOKEN_TTL_REGEX.search(text)
        return cls(action.group(1), token.group(1), ttl.group(1) if ttl else None)

    @property
    def content_url(self) -> str:
        match = WOPI_SRC_REGEX.search(self.action)
        if not match:
            raise ParseError(f"No WOPISrc in office form action {self.action}")
        url = match.group(1)
        for escaped, char in ESCAPED_CHARS.items():
            url = url.replace(escaped, char)
        return url

    @property
    def download_url(self) -> str:
        return f"{self.content_url}/contents?access_token={self.access_token}"
