"""
server.py — aiohttp web surface in front of the pipeline.

Endpoints:
  POST   /analyze                   → run the pipeline on an uploaded photo
                                      (multipart field "image" or raw body)
  GET    /runs/{run_id}/{region}.png → download one cropped region
  DELETE /runs/{run_id}              → reset the active run (frees the crops)
  GET    /health                     → plain-text health check

The settings / keys admin routes live in admin.py.

Only one run is active at a time: a new upload resets the previous one.
The upload size limit (config.MAX_UPLOAD_BYTES) is enforced here, not in
the pipeline.
"""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from aiohttp import web

import admin
import config
import pipeline
from errors import RenderError
from providers import router
from wardrobe import Region

logger = logging.getLogger(__name__)

_ACTIVE = web.AppKey("active_run", dict)


# ── Helpers ────────────────────────────────────────────────────────────────────

async def _read_upload(request: web.Request) -> bytes:
    if request.content_type.startswith("multipart/"):
        reader = await request.multipart()
        async for part in reader:
            if part.name == "image":
                return bytes(await part.read())
        raise web.HTTPBadRequest(text="multipart body has no 'image' field")
    return await request.read()


def _serialise(run_id: str, run: pipeline.PipelineRun) -> dict:
    body = run.to_dict()
    body["run_id"] = run_id
    for item, data in zip(run.items, body["items"]):
        data["image_url"] = (
            f"/runs/{run_id}/{item.region.value}.png" if item.image is not None else None
        )
    return body


def _reset_active(app: web.Application) -> Optional[str]:
    active = app[_ACTIVE]
    run_id = active.pop("run_id", None)
    run = active.pop("run", None)
    if run is not None:
        run.reset()
        logger.info("Reset run %s", run_id)
    return run_id


# ── Request handlers ───────────────────────────────────────────────────────────

async def handle_analyze(request: web.Request) -> web.Response:
    data = await _read_upload(request)
    if not data:
        raise web.HTTPBadRequest(text="empty upload")
    if len(data) > config.MAX_UPLOAD_BYTES:
        raise web.HTTPRequestEntityTooLarge(
            max_size=config.MAX_UPLOAD_BYTES, actual_size=len(data),
        )

    try:
        run = await pipeline.run(data)
    except RenderError as exc:
        raise web.HTTPBadRequest(text=str(exc))

    _reset_active(request.app)
    run_id = uuid.uuid4().hex
    request.app[_ACTIVE].update(run_id=run_id, run=run)
    return web.json_response(_serialise(run_id, run))


async def handle_download(request: web.Request) -> web.Response:
    active = request.app[_ACTIVE]
    if request.match_info["run_id"] != active.get("run_id"):
        raise web.HTTPNotFound(text="Run not found or already reset.")
    try:
        region = Region(request.match_info["region"])
    except ValueError:
        raise web.HTTPNotFound(text="Unknown region.")

    item = active["run"].item(region)
    if item is None or item.image is None or item.image.released:
        raise web.HTTPNotFound(text="No image for this region.")
    return web.Response(
        body=item.image.read(),
        content_type=item.image.content_type,
        headers={"Content-Disposition": f'attachment; filename="{region.value}.png"'},
    )


async def handle_reset(request: web.Request) -> web.Response:
    if request.match_info["run_id"] != request.app[_ACTIVE].get("run_id"):
        raise web.HTTPNotFound(text="Run not found or already reset.")
    _reset_active(request.app)
    return web.Response(status=204)


async def handle_health(request: web.Request) -> web.Response:
    """Health check for uptime monitors."""
    return web.Response(
        text=f"OK, classifier: {await router.backend_name()}",
        content_type="text/plain",
    )


# ── App factory ────────────────────────────────────────────────────────────────

def build_web_app() -> web.Application:
    # Leave headroom for multipart framing; the exact limit is checked per upload
    app = web.Application(client_max_size=config.MAX_UPLOAD_BYTES + 64 * 1024)
    app[_ACTIVE] = {}
    app.router.add_get("/health",                      handle_health)
    app.router.add_post("/analyze",                    handle_analyze)
    app.router.add_get("/runs/{run_id}/{region}.png",  handle_download)
    app.router.add_delete("/runs/{run_id}",            handle_reset)
    admin.add_admin_routes(app)
    return app


async def start_server() -> web.AppRunner:
    """Start the web server. Returns runner so caller can shut it down cleanly."""
    app    = build_web_app()
    runner = web.AppRunner(app, access_log=logger)
    await runner.setup()
    site = web.TCPSite(runner, config.SERVER_HOST, config.SERVER_PORT)
    await site.start()
    logger.info("Listening on %s:%d", config.SERVER_HOST, config.SERVER_PORT)
    return runner
