import logging
import urllib.parse
from collections import Counter
from functools import partial
from http.cookiejar import CookieJar, DefaultCookiePolicy
from pathlib import Path
from typing import List, Optional, Tuple

import httpx

from syncmyitslearning.config import SyncConfig
from syncmyitslearning.cookies import SESSION_COOKIE, Domain, SessionContext
from syncmyitslearning.download import FileMaterializer
from syncmyitslearning.exceptions import (
    AuthenticationError,
    ItslearningError,
    ParseError,
    TransportError,
)
from syncmyitslearning.filetree import (
    Course,
    EntryKind,
    duplicate_names,
    folder_name,
    parse_entries,
    sanitize,
)
from syncmyitslearning.page import fetch
from syncmyitslearning.pool import Outcome, ResolutionPool
from syncmyitslearning.resolver import TITLE_ID, ResourceResolver

USERNAME_FIELD = "ctl00$ContentPlaceHolder1$Username$input"
PASSWORD_FIELD = "ctl00$ContentPlaceHolder1$Password$input"
COURSE_CARDS_PATH = "/restapi/personal/courses/cards/{}/v1?SortBy=LastUpdated"
CONTENT_AREA_PATH = "/ContentArea/ContentArea.aspx?LocationID={}&LocationType=1"
RESOURCES_LINK_ID = "link-resources"

logger = logging.getLogger(__name__)


class SyncMyItslearning:
    def __init__(
        self,
        config: SyncConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        # Cookies of the three domains are tracked in SessionContext objects,
        # the client itself must never store or send any.
        self.session = httpx.AsyncClient(
            cookies=CookieJar(policy=DefaultCookiePolicy(allowed_domains=[])),
            timeout=config.timeout,
            transport=transport,
        )
        self.materializer = FileMaterializer(self.session, config)
        self.resolver = ResourceResolver(self.session, config, self.materializer)
        self.pool = ResolutionPool(config.max_concurrent_files)
        self.context: Optional[SessionContext] = None

    async def __aenter__(self) -> "SyncMyItslearning":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.session.aclose()

    async def login(self) -> None:
        """Get a portal session id, either configured or by posting credentials"""
        if self.config.session_id:
            self.context = SessionContext.for_portal(self.config.session_id)
            return

        if not self.config.user or not self.config.password:
            raise AuthenticationError("No session id and no credentials configured")

        response = await self.session.post(
            self.config.portal_url,
            data={
                USERNAME_FIELD: self.config.user,
                PASSWORD_FIELD: self.config.password,
            },
        )
        context = SessionContext()
        context.merge(
            Domain.PORTAL, response.headers.get_list("set-cookie"), only=SESSION_COOKIE
        )
        if not context.has(Domain.PORTAL):
            raise AuthenticationError(
                f"Failed to obtain a session id (HTTP {response.status_code})"
            )
        logger.debug(f"Obtained session id: {context.get(Domain.PORTAL)}")
        self.context = context

    def _require_login(self) -> SessionContext:
        if not self.context:
            raise Exception("You need to login() first.")
        return self.context

    async def get_all_courses(self) -> List[Course]:
        context = self._require_login()
        courses = []
        for cards in ("starred", "unstarred"):
            url = self.config.portal_url + COURSE_CARDS_PATH.format(cards)
            response = await self.session.get(
                url,
                headers={
                    "Content-Type": "application/json",
                    "Cookie": context.cookie_header(Domain.PORTAL),
                },
            )
            if not response.is_success:
                raise TransportError(url, response.status_code, response.reason_phrase)
            try:
                entities = response.json()["EntityArray"]
                courses += [Course(str(e["Title"]), e["CourseId"]) for e in entities]
            except (ValueError, KeyError, TypeError) as e:
                raise ParseError(
                    f"Unexpected response while getting courses: {e!r}"
                ) from e
        return courses

    async def get_resources_url(self, course: Course) -> str:
        context = self._require_login()
        url = self.config.portal_url + CONTENT_AREA_PATH.format(course.course_id)
        content = await fetch(self.session, url, context.cookie_header(Domain.PORTAL))
        content.raise_for_status()
        page = content.page()
        return page.attribute(page.require_id(RESOURCES_LINK_ID), "href")

    async def sync(self) -> None:
        """Mirrors the resource folders of all selected courses"""
        for course in await self.get_all_courses():
            if not self.config.wants_course(course.course_id):
                logger.info(f"Skipping course {course.title}")
                continue
            await self.sync_course(course)

    async def sync_course(self, course: Course) -> List[Tuple[str, Outcome]]:
        context = self._require_login()
        logger.info(f"Syncing {course.title}...")
        try:
            resources_url = await self.get_resources_url(course)
        except (ItslearningError, httpx.HTTPError) as e:
            logger.error(f"Failed to find the resources of course {course.title}: {e}")
            return []

        await self.traverse(
            resources_url, context, self.config.basedir / sanitize(course.title)
        )
        results = await self.pool.join()

        counts = Counter(outcome for _, outcome in results)
        logger.info(
            f"{course.title}: "
            + ", ".join(f"{counts[o]} {o.value}" for o in Outcome if counts[o])
        )
        return results

    async def traverse(
        self,
        folder_ref: str,
        session: SessionContext,
        parent: Path,
        disambiguate: bool = False,
    ) -> None:
        """Mirror one folder and its subfolders below parent.

        Failures abort only this folder's subtree. Files are handed to the
        resolution pool and may still be downloading when this returns.
        """
        folder_url = urllib.parse.urljoin(self.config.portal_url, folder_ref)
        try:
            await self._traverse(folder_url, session, parent, disambiguate)
        except ItslearningError as e:
            logger.error(f"Failed to sync folder {folder_url}: {e}")
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch folder {folder_url}: {e!r}")

    async def _traverse(
        self, folder_url: str, session: SessionContext, parent: Path, disambiguate: bool
    ) -> None:
        fetched = await fetch(
            self.session, folder_url, session.cookie_header(Domain.PORTAL)
        )
        fetched.raise_for_status()
        page = fetched.page()

        path = parent / folder_name(page.text_of(TITLE_ID), folder_url, disambiguate)
        entries = parse_entries(page)
        if not entries:
            logger.info(f"Folder {path} is empty")
            return

        duplicated = duplicate_names(entries)
        for entry in entries:
            entry_disambiguate = entry.name in duplicated
            kind = entry.kind
            if kind is EntryKind.FOLDER:
                await self.traverse(entry.url, session, path, entry_disambiguate)
            elif kind is EntryKind.FILE:
                try:
                    element_id = entry.element_id
                except ParseError as e:
                    logger.error(str(e))
                    continue
                self.pool.submit(
                    str(path / entry.name),
                    partial(
                        self.resolver.process,
                        element_id,
                        session.fork(),
                        path,
                        entry_disambiguate,
                    ),
                )
            else:
                logger.warning(f"Unknown folder entry type. Url: {entry.url}")
