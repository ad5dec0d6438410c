import logging
import tempfile
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict

import httpx
from tqdm import tqdm

from syncmyitslearning.config import SyncConfig
from syncmyitslearning.exceptions import TransportError
from syncmyitslearning.filetree import disambiguated_file_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedDownload:
    url: str
    cookie_header: str
    folder: Path
    file_name: str

    @property
    def path(self) -> Path:
        return self.folder / self.file_name


class FileMaterializer:
    block_size = 1024

    def __init__(self, client: httpx.AsyncClient, config: SyncConfig) -> None:
        self.client = client
        self.config = config
        # Target path -> id of the element that is written there
        self._claims: Dict[Path, str] = {}

    def claim(self, download: ResolvedDownload, element_id: str) -> ResolvedDownload:
        """Reserve the target path of a download for one element.

        Different elements may serve the same file name into one folder. The
        first one keeps the name, later ones get their id appended.
        """
        if self._claims.setdefault(download.path, element_id) == element_id:
            return download
        renamed = replace(
            download, file_name=disambiguated_file_name(download.file_name, element_id)
        )
        logger.info(
            f"{download.path} is already used by element {self._claims[download.path]}, "
            f"saving element {element_id} as {renamed.file_name}"
        )
        self._claims.setdefault(renamed.path, element_id)
        return renamed

    async def materialize(self, download: ResolvedDownload) -> bool:
        """Download file with progress bar if it isn't already downloaded

        Returns False if an existing file was kept.
        """
        dest = download.path
        if self.config.skip_existing and dest.exists():
            logger.info(f"Skipping file: {dest}")
            return False

        headers = {"Cookie": download.cookie_header} if download.cookie_header else {}
        async with self.client.stream(
            "GET", download.url, headers=headers, follow_redirects=True
        ) as response:
            if not response.is_success:
                raise TransportError(
                    download.url, response.status_code, response.reason_phrase
                )
            download.folder.mkdir(parents=True, exist_ok=True)
            total_size_in_bytes = int(response.headers.get("content-length", 0))
            file = tempfile.NamedTemporaryFile(
                dir=download.folder,
                prefix=f"{dest.name}.",
                suffix=".temp",
                delete=False,
            )
            tmp_dest = Path(file.name)
            try:
                with tqdm(
                    total=total_size_in_bytes,
                    unit="iB",
                    unit_scale=True,
                    desc=download.file_name,
                    leave=False,
                    disable=None,
                ) as progress_bar, file:
                    async for data in response.aiter_bytes(self.block_size):
                        file.write(data)
                        progress_bar.update(len(data))
                tmp_dest.replace(dest)
            except BaseException:
                tmp_dest.unlink(missing_ok=True)
                raise
        logger.info(f"Downloaded file to {dest}")
        return True
