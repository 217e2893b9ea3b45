"""Download response for scratch files."""
import logging
import os
from pathlib import Path
from typing import Optional

from fastapi.responses import FileResponse, JSONResponse
from starlette.requests import ClientDisconnect
from starlette.types import Message, Receive, Scope, Send

from videolab.conversion.models import ConversionRequest, RequestState

logger = logging.getLogger("videolab.api")


class ScratchFileResponse(FileResponse):
    """FileResponse that deletes its file once the response is over.

    The file is removed whether the body was fully sent, the client went away
    mid-stream, or sending never started. Anything that fails before the
    headers go out (missing file, stat error) becomes a 500 JSON error
    instead of a broken download.
    """

    def __init__(self, path, *args, job: Optional[ConversionRequest] = None, **kwargs):
        super().__init__(path, *args, **kwargs)
        self.job = job

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        path = Path(self.path)
        started = False

        async def send_tracked(message: Message) -> None:
            nonlocal started
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        try:
            await super().__call__(scope, receive, send_tracked)
        except Exception as e:
            if started:
                if not isinstance(e, (OSError, ClientDisconnect)):
                    raise
                # Headers are out; the client is gone and there is nothing left to report
                logger.warning("Download of %s interrupted: %s", path.name, e)
            else:
                logger.error("Could not send %s: %s", path.name, e)
                await JSONResponse({"error": "Download failed"}, status_code=500)(scope, receive, send)
        finally:
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Could not remove %s: %s", path, e)
            if self.job is not None:
                self.job.advance(RequestState.RESPONDED)
                self.job.advance(RequestState.CLEANED_UP)
