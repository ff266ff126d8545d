"""
File upload, single-shot or in stashed chunks.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from ..core.exceptions import ProtocolError
from ..core.session import Session
from ..parsing.scanner import attributes, section
from . import classifier
from .classifier import ErrorHandler
from .executor import RequestExecutor


logger = logging.getLogger(__name__)


class ChunkedUploader:
    """
    Uploads files through ``action=upload``.

    Files smaller than ``2 ** session.upload_chunk_exponent`` bytes go up in
    one multipart request. Larger files are sent in stashed chunks; the
    server answers the first chunk with a file key that every later chunk
    and the final commit request must echo.
    """

    def __init__(self, session: Session, executor: RequestExecutor):
        self.session = session
        self.executor = executor

    @property
    def chunk_size(self) -> int:
        return 2 ** self.session.upload_chunk_exponent

    def upload(
        self,
        data: bytes,
        filename: str,
        description: str,
        reason: str,
        token: str,
        overrides: Optional[Mapping[str, ErrorHandler]] = None,
    ) -> str:
        """
        Upload file contents.

        Args:
            data: File contents
            filename: Target file name, without the File: prefix
            description: Initial description page text
            reason: Upload summary
            token: CSRF token
            overrides: Per-call error code handlers

        Returns:
            The response text of the final request

        Raises:
            ProtocolError: a chunk response carried no file key
        """
        params = {"action": "upload"}
        common = {
            "filename": filename,
            "token": token,
            "ignorewarnings": True,
            "text": description,
            "comment": reason,
        }
        size = len(data)
        chunk_size = self.chunk_size

        if size < chunk_size:
            logger.info(f"Uploading {filename} ({size} bytes)")
            text = self.executor.execute(params, {**common, "file": data})
            classifier.check(text, overrides, "upload")
            return text

        chunks = (size + chunk_size - 1) // chunk_size
        logger.info(f"Uploading {filename} ({size} bytes) in {chunks} chunks")
        filekey = None
        for index, offset in enumerate(range(0, size, chunk_size)):
            post: Dict[str, Any] = {
                "filename": filename,
                "token": token,
                "ignorewarnings": True,
                "stash": True,
                "offset": offset,
                "filesize": size,
                "chunk": data[offset:offset + chunk_size],
            }
            if filekey is not None:
                post["filekey"] = filekey

            text = self.executor.execute(params, post)
            classifier.check(text, overrides, "upload")
            filekey = self._filekey(text)
            if filekey is None:
                raise ProtocolError(
                    f"No file key in response to chunk {index + 1}/{chunks} of {filename}"
                )
            logger.debug(f"{filename}: chunk {index + 1}/{chunks} stashed as {filekey}")

        text = self.executor.execute(params, {**common, "filekey": filekey})
        classifier.check(text, overrides, "upload")
        return text

    @staticmethod
    def _filekey(text: str) -> Optional[str]:
        element = section(text, "upload")
        if element is None:
            return None
        return attributes(element).get("filekey")
