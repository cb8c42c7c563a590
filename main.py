"""HTTP control surface for the alert monitor."""

from typing import Any, Dict, Optional

import structlog
import uvicorn
from fastapi import Body, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from alert_monitor import __version__
from alert_monitor.config import MonitorSettings, load_config
from alert_monitor.errors import EndpointConfigError, EndpointNotFoundError, MuteNotAllowedError
from alert_monitor.fetch import probe_fetch, probe_map
from alert_monitor.logging_setup import configure_logging
from alert_monitor.registry import validate_mapping_paths
from alert_monitor.scheduler import DEFAULT_MUTE_MINUTES
from alert_monitor.service import AlertMonitor, build_monitor

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[MonitorSettings] = None,
    monitor: Optional[AlertMonitor] = None,
    start_scheduler: bool = True,
) -> FastAPI:
    settings = settings or (monitor.settings if monitor is not None else load_config())
    app = FastAPI(title="API Alert Monitor", version=__version__)
    app.state.settings = settings
    app.state.monitor = monitor or build_monitor(settings)

    def _monitor() -> AlertMonitor:
        return app.state.monitor

    @app.on_event("startup")
    async def startup_event():
        if start_scheduler:
            _monitor().scheduler.start()
            _monitor().scheduler.start_active()
        logger.info("Alert monitor control app started", event_type="SYSTEM", scheduler=start_scheduler)

    @app.on_event("shutdown")
    async def shutdown_event():
        _monitor().scheduler.shutdown()
        await _monitor().aclose()
        logger.info("Alert monitor control app stopped", event_type="SYSTEM")

    @app.exception_handler(EndpointNotFoundError)
    async def _not_found(_request: Request, exc: EndpointNotFoundError):
        return JSONResponse(status_code=404, content={"ok": False, "error": str(exc)})

    @app.exception_handler(EndpointConfigError)
    async def _bad_config(_request: Request, exc: EndpointConfigError):
        return JSONResponse(status_code=400, content={"ok": False, "error": str(exc)})

    @app.exception_handler(MuteNotAllowedError)
    async def _mute_forbidden(_request: Request, exc: MuteNotAllowedError):
        return JSONResponse(status_code=403, content={"ok": False, "error": str(exc)})

    @app.get("/health")
    async def health():
        return {"status": "ok", "running": _monitor().scheduler.running_tags()}

    # --- endpoint configs ---------------------------------------------------

    @app.get("/api/endpoints")
    async def list_endpoints():
        m = _monitor()
        active = set(m.registry.active_tags())
        return {
            "ok": True,
            "endpoints": [
                {
                    **cfg.model_dump(mode="json"),
                    "active": tag in active,
                    "running": m.scheduler.is_running(tag),
                    "has_base": m.registry.has_base(tag),
                }
                for tag, cfg in m.registry.get_all().items()
            ],
        }

    @app.get("/api/endpoints/active")
    async def get_active_endpoints():
        active = _monitor().registry.active_tags()
        return {"ok": True, "active_tags": active, "count": len(active)}

    @app.post("/api/endpoints/active")
    async def set_active_endpoints(payload: Dict[str, Any] = Body(...)):
        tags = payload.get("tags")
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise EndpointConfigError("tags must be a list of endpoint tags")
        result = _monitor().scheduler.set_active(tags)
        return {"ok": True, "active_tags": result["active"], "started": result["started"], "stopped": result["stopped"]}

    @app.get("/api/endpoints/{tag}")
    async def get_endpoint(tag: str):
        m = _monitor()
        cfg = m.registry.get(tag)
        return {
            "ok": True,
            "config": cfg.model_dump(mode="json"),
            "active": tag in m.registry.active_tags(),
            "running": m.scheduler.is_running(tag),
        }

    @app.put("/api/endpoints/{tag}")
    async def save_endpoint(tag: str, payload: Dict[str, Any] = Body(...)):
        cfg = _monitor().scheduler.save_endpoint(tag, payload)
        return {"ok": True, "config": cfg.model_dump(mode="json"), "warnings": validate_mapping_paths(cfg)}

    @app.delete("/api/endpoints/{tag}")
    async def delete_endpoint(tag: str):
        result = await _monitor().scheduler.delete_endpoint(tag)
        return {"ok": True, **result.model_dump()}

    @app.post("/api/endpoints/{tag}/activate")
    async def activate_endpoint(tag: str):
        _monitor().scheduler.activate(tag)
        return {"ok": True, "tag": tag, "active": True}

    @app.post("/api/endpoints/{tag}/deactivate")
    async def deactivate_endpoint(tag: str):
        stopped = _monitor().scheduler.deactivate(tag)
        return {"ok": True, "tag": tag, "active": False, "stopped": stopped}

    @app.post("/api/endpoints/{tag}/toggle-active")
    async def toggle_endpoint(tag: str):
        active = _monitor().scheduler.toggle_active(tag)
        return {"ok": True, "tag": tag, "active": active, "running": _monitor().scheduler.is_running(tag)}

    @app.post("/api/endpoints/{tag}/run")
    async def run_endpoint(tag: str):
        outcome = await _monitor().scheduler.run_now(tag)
        return {"ok": True, "tag": tag, "outcome": outcome.value}

    @app.get("/api/endpoints/{tag}/test-fetch")
    async def test_fetch_endpoint(tag: str):
        m = _monitor()
        return await probe_fetch(m.data_source, m.registry.get(tag))

    @app.get("/api/endpoints/{tag}/test-map")
    async def test_map_endpoint(tag: str):
        m = _monitor()
        return await probe_map(m.data_source, m.registry.get(tag))

    @app.get("/api/endpoints/{tag}/state")
    async def endpoint_state(tag: str):
        state = await _monitor().mutes.get_state(tag)
        return {"ok": True, "tag": tag, "state": state.to_document()}

    # --- global settings ----------------------------------------------------

    @app.get("/api/settings")
    async def get_settings():
        return {"ok": True, "settings": _monitor().registry.global_settings().model_dump()}

    @app.put("/api/settings")
    async def update_settings(payload: Dict[str, Any] = Body(...)):
        updated = _monitor().registry.update_global_settings(payload)
        return {"ok": True, "settings": updated.model_dump()}

    # --- schedulers ----------------------------------------------------------

    @app.get("/api/schedulers")
    async def list_schedulers():
        m = _monitor()
        active = m.registry.active_tags()
        running = m.scheduler.running_tags()
        return {
            "ok": True,
            "schedulers": m.scheduler.status(),
            "mismatch": {
                "should_run_but_not": [t for t in active if t not in running],
                "running_but_should_not": [t for t in running if t not in active],
            },
        }

    @app.post("/api/schedulers/cleanup")
    async def cleanup_schedulers():
        return {"ok": True, "stopped": _monitor().scheduler.cleanup()}

    @app.post("/api/schedulers/{tag}/start")
    async def start_scheduler_for(tag: str):
        handle = _monitor().scheduler.start_endpoint(tag)
        return {"ok": True, "tag": tag, "interval_ms": handle.last_known_interval_ms}

    @app.post("/api/schedulers/{tag}/stop")
    async def stop_scheduler_for(tag: str):
        return {"ok": True, "tag": tag, "stopped": _monitor().scheduler.stop_endpoint(tag)}

    @app.post("/api/schedulers/{tag}/restart")
    async def restart_scheduler_for(tag: str):
        handle = _monitor().scheduler.restart_endpoint(tag)
        return {"ok": True, "tag": tag, "interval_ms": handle.last_known_interval_ms}

    # --- mute links (GET so they work straight from an email) ---------------

    @app.get("/mute/payment")
    async def mute_payment(tag: str = Query(...), minutes: float = Query(DEFAULT_MUTE_MINUTES, gt=0)):
        state = await _monitor().mutes.mute_items(tag, minutes)
        return {"ok": True, "tag": tag, "state": state.to_document()}

    @app.get("/unmute/payment")
    async def unmute_payment(tag: str = Query(...)):
        state = await _monitor().mutes.unmute_items(tag)
        return {"ok": True, "tag": tag, "state": state.to_document()}

    @app.get("/reset/payment")
    async def reset_payment(tag: str = Query(...)):
        state = await _monitor().mutes.reset_items(tag)
        return {"ok": True, "tag": tag, "state": state.to_document()}

    @app.get("/mute/api")
    async def mute_api(tag: str = Query(...)):
        state = await _monitor().mutes.mute_api(tag)
        return {"ok": True, "tag": tag, "state": state.to_document()}

    @app.get("/unmute/api")
    async def unmute_api(tag: str = Query(...)):
        state = await _monitor().mutes.unmute_api(tag)
        return {"ok": True, "tag": tag, "state": state.to_document()}

    return app


def main():
    settings = load_config()
    configure_logging(settings.log_level, settings.log_format)
    logger.info("Starting alert monitor web server", port=settings.control_server_port)
    uvicorn.run(
        "main:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.control_server_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
