"""
asgi.py -- Application assembly for ClassHub.

This is the ONLY file that imports from both api/ and web/. It joins the two
independent layers into a single ASGI app without coupling them to each other.
api/main.py knows nothing about web/; web/routes.py knows nothing about api/.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app
from web.routes import PageRedirect, page_redirect_handler, public_router
from web.routes import router as web_router

# Mount the web UI routers here, not in api/main.py.
# The page guard raises PageRedirect, so its handler is registered alongside.
app.include_router(public_router, tags=["Web UI"])
app.include_router(web_router, tags=["Web UI"])
app.add_exception_handler(PageRedirect, page_redirect_handler)
