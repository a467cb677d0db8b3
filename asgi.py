"""
asgi.py -- Application assembly for ProfileDash.

Joins the API app with the static mount for locally stored uploads. api/main.py
knows nothing about where upload bytes are served from; cards/blob.py knows
nothing about FastAPI.

Run with:  uvicorn asgi:app --reload
"""

from fastapi.staticfiles import StaticFiles

from api.main import app
from core.config import get_settings

_settings = get_settings()

# Only the local backend needs serving; remote blob URLs point off-site.
if not _settings.blob_read_write_token:
    app.mount(
        _settings.upload_base_url,
        StaticFiles(directory=_settings.upload_dir, check_dir=False),
        name="uploads",
    )
