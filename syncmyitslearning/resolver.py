import logging
import urllib.parse
from pathlib import Path
from typing import Optional

import httpx

from syncmyitslearning.config import RESOURCE_BASE_URL, SyncConfig
from syncmyitslearning.cookies import SESSION_COOKIE, Domain, SessionContext
from syncmyitslearning.download import FileMaterializer, ResolvedDownload
from syncmyitslearning.exceptions import (
    ItslearningError,
    ParseError,
    UnsupportedResourceKind,
)
from syncmyitslearning.filetree import disambiguated_file_name, strip_invalid
from syncmyitslearning.office import OfficeForm
from syncmyitslearning.page import Page, fetch
from syncmyitslearning.pool import Outcome

VIEW_PATH = "/LearningToolElement/ViewLearningToolElement.aspx?LearningToolElementId={}"

TITLE_ID = "ctl00_PageHeader_TT"
EXTENSION_IFRAME_ID = "ctl00_ContentPlaceHolder_ExtensionIframe"
DOWNLOAD_LINK_ID = "ctl00_ctl00_MainFormContent_DownloadLinkForViewType"
PREVIEW_IFRAME_ID = "ctl00_ctl00_MainFormContent_PreviewIframe_FilePreviewIframe"

logger = logging.getLogger(__name__)


def resource_url(reference: str) -> str:
    return urllib.parse.urljoin(RESOURCE_BASE_URL + "/", reference)


class ResourceResolver:
    """Follows a learning tool element to the actual file behind it.

    The element's view page embeds a frame on another domain. Requesting it
    hands out the platform session and redirects to the resource page, which
    sets the resource session and either links the file directly or embeds
    an Office for the web preview carrying an access token.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: SyncConfig,
        materializer: FileMaterializer,
    ) -> None:
        self.client = client
        self.config = config
        self.materializer = materializer

    async def resolve(
        self,
        element_id: str,
        session: SessionContext,
        folder: Path,
        disambiguate: bool = False,
    ) -> ResolvedDownload:
        view_url = self.config.portal_url + VIEW_PATH.format(element_id)
        view = await fetch(self.client, view_url, session.cookie_header(Domain.PORTAL))
        view.raise_for_status()
        view_page = view.page()
        title = strip_invalid(view_page.text_of(TITLE_ID))
        frame_url = view_page.attribute(
            view_page.require_id(EXTENSION_IFRAME_ID), "src"
        )

        # The frame hands out the platform session and redirects onwards
        handoff = await fetch(self.client, frame_url)
        session.merge(Domain.PLATFORM, handoff.set_cookies)
        instance_url = handoff.location
        if not instance_url:
            raise ParseError(
                f"No redirect from {frame_url} (HTTP {handoff.status_code})"
            )

        resource = await fetch(
            self.client,
            instance_url,
            session.cookie_header(Domain.PLATFORM),
            follow_redirects=True,
        )
        resource.raise_for_status()
        session.merge(Domain.RESOURCE, resource.set_cookies, only=SESSION_COOKIE)
        resource_page = resource.page()

        download = self._direct_download(resource_page, session, folder)
        if download is None:
            download = await self._office_download(resource_page, session, folder, title)
        if download is None:
            raise UnsupportedResourceKind(
                f"Resource type unsupported. No direct download link available: {title}"
            )

        if disambiguate:
            download = ResolvedDownload(
                download.url,
                download.cookie_header,
                download.folder,
                disambiguated_file_name(download.file_name, element_id),
            )
        return self.materializer.claim(download, element_id)

    def _direct_download(
        self, page: Page, session: SessionContext, folder: Path
    ) -> Optional[ResolvedDownload]:
        anchor = page.find_id(DOWNLOAD_LINK_ID)
        if anchor is None:
            return None
        return ResolvedDownload(
            url=resource_url(page.attribute(anchor, "href")),
            cookie_header=session.cookie_header(Domain.RESOURCE),
            folder=folder,
            file_name=strip_invalid(page.attribute(anchor, "Download")),
        )

    async def _office_download(
        self, page: Page, session: SessionContext, folder: Path, title: str
    ) -> Optional[ResolvedDownload]:
        frame = page.find_id(PREVIEW_IFRAME_ID)
        if frame is None:
            return None
        preview = await fetch(
            self.client,
            resource_url(page.attribute(frame, "src")),
            session.cookie_header(Domain.RESOURCE),
        )
        preview.raise_for_status()
        form = OfficeForm.parse(preview.text)
        # The access token is the only credential the content endpoint needs
        return ResolvedDownload(
            url=form.download_url, cookie_header="", folder=folder, file_name=title
        )

    async def process(
        self,
        element_id: str,
        session: SessionContext,
        folder: Path,
        disambiguate: bool = False,
    ) -> Outcome:
        """Resolve and download one element, containing every failure"""
        try:
            download = await self.resolve(element_id, session, folder, disambiguate)
            if await self.materializer.materialize(download):
                return Outcome.DOWNLOADED
            return Outcome.SKIPPED
        except UnsupportedResourceKind as e:
            logger.info(str(e))
            return Outcome.UNSUPPORTED
        except ItslearningError as e:
            logger.error(f"Failed to download element {element_id} into {folder}: {e}")
        except httpx.HTTPError as e:
            logger.error(
                f"Failed to download element {element_id} into {folder}: {e!r}"
            )
        except OSError as e:
            logger.error(f"Failed to write element {element_id} into {folder}: {e}")
        return Outcome.FAILED
