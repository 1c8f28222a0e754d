# src/extractor/loader.py
import logging
from typing import NamedTuple, Optional, Union

from linkcheck.services.http_request_service import HttpRequestService
from pubrules.core.errors import ExtractionError
from .model import DocumentSource

logger = logging.getLogger(__name__)


class LoadedDocument(NamedTuple):
    content: Union[str, bytes]
    url: Optional[str]


class DocumentLoader:
    """Turns a DocumentSource into raw markup plus the URL it should be resolved against."""

    def __init__(self, http_service: Optional[HttpRequestService] = None):
        self.http = http_service

    async def load(self, source: DocumentSource) -> LoadedDocument:
        if source.content is not None:
            return LoadedDocument(source.content, source.base_url)

        if source.file is not None:
            try:
                data = source.file.read_bytes()
            except OSError as e:
                raise ExtractionError(f"Could not read document: {e.strerror or e}", str(source.file)) from e
            return LoadedDocument(data, source.base_url)

        return await self._fetch(source.url)

    async def _fetch(self, url: str) -> LoadedDocument:
        if self.http is None:
            async with HttpRequestService() as http:
                result = await http.fetch_text(url)
        else:
            result = await self.http.fetch_text(url)

        if result["content"] is None:
            raise ExtractionError(f"Could not retrieve document: {result['error']}", url)
        logger.debug("Fetched %s (%d chars, final URL %s)", url, len(result["content"]), result["final_url"])
        return LoadedDocument(result["content"], result["final_url"])
