"""Landing page route: serves the HTML shell of the report viewer."""

import logging
from pathlib import Path

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Landing"])


@router.get("/", include_in_schema=False)
async def home(request: Request):
    """Send the client the single-page application shell."""
    url = request.url.path
    if not url.endswith("/"):
        url += "/"
    logger.info(f"Resolved URL: {url}")

    index = Path(request.app.state.root_dir) / "index.html"
    if not index.is_file():
        raise HTTPException(status_code=404, detail="Application shell not found")

    # All further routing happens client-side
    return FileResponse(str(index), media_type="text/html")
