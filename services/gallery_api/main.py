# services/gallery_api/main.py
from __future__ import annotations
import asyncio
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from common.config import load_config, section
from common.errors import ListError
from common.logging import get_logger
from common.schemas import BoundingBox
from media import keys
from media.face_crop import DEFAULT_CONTAINER_PX, FACE_SCALE_MAX, FACE_SCALE_MIN, project_face_crop
from media.lister import MediaLister
from media.pagination import DEFAULT_WINDOW_SIZE, PaginationController
from media.store import ObjectStore, build_store

log = get_logger("gallery_api")


# ----------------------- request bodies -----------------------
class FaceCropRequest(BaseModel):
    bounding_box: Optional[BoundingBox] = None
    container_size: int = Field(DEFAULT_CONTAINER_PX, ge=1, le=4096)


class DeleteRequest(BaseModel):
    keys: List[str] = Field(default_factory=list)


# ----------------------- app factory -----------------------
def create_app(cfg: Optional[Dict[str, Any]] = None, store: Optional[ObjectStore] = None) -> FastAPI:
    cfg = cfg if cfg is not None else load_config()
    gal = section(cfg, "gallery")
    faces = section(cfg, "faces")

    window_size = int(gal.get("window_size", DEFAULT_WINDOW_SIZE))
    refetch = bool(gal.get("refetch_pages", True))
    scale_bounds = (float(faces.get("scale_min", FACE_SCALE_MIN)), float(faces.get("scale_max", FACE_SCALE_MAX)))
    default_container = int(faces.get("container_px", DEFAULT_CONTAINER_PX))

    app = FastAPI(title="Media Gallery API")
    app.state.lister = MediaLister(store or build_store(cfg))
    app.state.controllers = {}
    lock = asyncio.Lock()

    async def controller_for(event_id: str) -> PaginationController:
        async with lock:
            ctl = app.state.controllers.get(event_id)
            if ctl is None:
                prefix = keys.event_images_prefix(event_id)
                ctl = PaginationController(lambda: app.state.lister.list_media(prefix),
                                           window_size, refetch_pages=refetch)
                app.state.controllers[event_id] = ctl
            return ctl

    def page_body(ctl: PaginationController, items) -> Dict[str, Any]:
        return {
            "items": [a.model_dump(mode="json") for a in items],
            "visible_count": len(ctl.visible),
            **ctl.snapshot(),
        }

    @app.exception_handler(ListError)
    async def _list_error(_request: Request, exc: ListError):
        log.error(f"[api] listing failed prefix={exc.prefix}: {exc}")
        return JSONResponse(status_code=502, content={"detail": str(exc), "prefix": exc.prefix})

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/events/{event_id}/photos")
    async def first_page(event_id: str):
        ctl = await controller_for(event_id)
        items = await ctl.reset()
        return page_body(ctl, items)

    @app.get("/events/{event_id}/photos/next")
    async def next_page(event_id: str):
        ctl = await controller_for(event_id)
        items = await ctl.load_next_page()
        return page_body(ctl, items)

    @app.delete("/events/{event_id}/photos")
    async def delete_photos(event_id: str, body: DeleteRequest):
        deleted = await app.state.lister.delete_media(body.keys)
        ctl = app.state.controllers.get(event_id)
        if ctl is not None:
            for key in deleted:
                ctl.remove(key)
        failed = [k for k in dict.fromkeys(body.keys) if k not in set(deleted)]
        return {"deleted": deleted, "failed": failed}

    @app.get("/events/{event_id}/videos")
    async def videos(event_id: str):
        items = await app.state.lister.list_videos(keys.event_videos_prefix(event_id))
        return {"items": [v.model_dump(mode="json") for v in items], "total": len(items)}

    @app.post("/faces/crop")
    async def face_crop(body: FaceCropRequest):
        size = body.container_size if "container_size" in body.model_fields_set else default_container
        t = project_face_crop(body.bounding_box, size, scale_bounds=scale_bounds)
        return {**t.model_dump(), "css": t.css()}

    return app


def main(config_path: Optional[str] = None):
    cfg = load_config(config_path)
    gal = section(cfg, "gallery")
    host = gal.get("host", "0.0.0.0")
    port = int(gal.get("port", 8080))
    log.info(f"gallery_api starting on {host}:{port}")
    uvicorn.run(create_app(cfg), host=host, port=port, log_level="info")

if __name__ == "__main__":
    main()
