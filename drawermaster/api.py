import asyncio, uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from .config       import Settings, get_settings
from .logging_config import setup_logging, get_logger
from .drawermaster import DrawerMaster
from .escpos.config_ext import get as get_driver_config
from .escpos.driver import DrawerDriver
from .events       import EventBridge
from .errors       import DrawerError
from .models       import ConnectRq, OpenRq
from .prefs        import load_preferences, save_preferences
from .state        import DrawerPreferences
from .updater      import AutoUpdateService

api_log = get_logger("API")


def create_app(settings: Settings | None = None,
               master: DrawerMaster | None = None,
               updater: AutoUpdateService | None = None) -> FastAPI:
    settings = settings or get_settings()
    if settings.configure_logging:
        setup_logging(log_level=settings.log_level, log_to_file=settings.log_to_file)

    if master is None:
        cfg = get_driver_config().model_copy(update={"baud_rate": settings.baud_rate})
        master = DrawerMaster(DrawerDriver(cfg))
    updater = updater or AutoUpdateService(settings)
    update_events = EventBridge()
    updater.add_listener(update_events.publish)

    # ────────── lifecycle
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        api_log.info("=== APPLICATION STARTUP ===")
        api_log.info("Starting DrawerMaster API v%s", updater.get_current_version())
        loop = asyncio.get_running_loop()
        master.bind_loop(loop)
        update_events.bind(loop)

        if settings.auto_connect:
            try:
                if settings.default_port:
                    await master.connect(settings.default_port, settings.baud_rate)
                else:
                    await master.auto_connect()
            except DrawerError as e:
                api_log.warning("Startup connect failed: %s", e.message)

        updater.start_periodic_checks()
        try:
            yield
        finally:
            api_log.info("=== APPLICATION SHUTDOWN ===")
            updater.stop_periodic_checks()
            await master.disconnect()

    app = FastAPI(title="DrawerMaster API", version=updater.get_current_version(),
                  lifespan=lifespan)
    app.state.settings = settings
    app.state.master = master
    app.state.updater = updater

    @app.exception_handler(DrawerError)
    async def _drawer_error(request: Request, exc: DrawerError):
        api_log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # ────────── cash drawer
    @app.get("/cash-drawer/ports")
    async def list_ports():
        ports = await master.list_ports()
        return {"ok": True, "ports": [p.model_dump() for p in ports]}

    @app.post("/cash-drawer/connect")
    async def connect(body: ConnectRq):
        api_log.info("Connect request: port=%s, baud=%d", body.port, body.baud_rate)
        connected = await master.connect(body.port, body.baud_rate)
        return {"ok": True, "connected": connected, "message": "Connected to cash drawer"}

    @app.post("/cash-drawer/disconnect")
    async def disconnect():
        await master.disconnect()
        return {"ok": True, "message": "Disconnected from cash drawer"}

    @app.post("/cash-drawer/open")
    async def open_drawer(body: OpenRq | None = None):
        body = body or OpenRq()
        api_log.info("Open request: command=%s", body.command.value)
        opened = await master.open_drawer(body.command)
        return {"ok": True, "opened": opened, "message": "Cash drawer opened"}

    @app.post("/cash-drawer/test")
    async def test_drawer():
        opened = await master.test_drawer()
        return {"ok": True, "opened": opened, "message": "Cash drawer test successful"}

    @app.get("/cash-drawer/status")
    async def drawer_status():
        return {"ok": True, "status": master.get_status().model_dump(mode="json")}

    @app.post("/cash-drawer/auto-connect")
    async def auto_connect():
        connected = await master.auto_connect()
        status = master.get_status()
        return {"ok": True, "connected": connected,
                "message": f"Auto-connected to cash drawer on {status.port}"}

    @app.post("/cash-drawer/reconnect")
    async def reconnect():
        connected = await master.reconnect()
        return {"ok": True, "connected": connected, "message": "Reconnected to cash drawer"}

    @app.get("/cash-drawer/preferences")
    async def get_preferences():
        prefs = load_preferences(settings.preferences_path)
        return {"ok": True, "preferences": prefs.model_dump(mode="json")}

    @app.put("/cash-drawer/preferences")
    async def put_preferences(body: DrawerPreferences):
        save_preferences(body, settings.preferences_path)
        return {"ok": True, "preferences": body.model_dump(mode="json")}

    # ────────── auto-update
    @app.post("/auto-update/check")
    async def check_for_updates():
        release = await asyncio.get_running_loop().run_in_executor(None, updater.check_for_updates)
        return {"ok": True, "available": release is not None,
                "release": release.model_dump() if release else None}

    @app.post("/auto-update/download")
    async def download_update():
        path = await asyncio.get_running_loop().run_in_executor(None, updater.download_update)
        return {"ok": True, "path": str(path) if path else None}

    @app.post("/auto-update/install")
    async def install_update():
        updater.install_and_restart()
        return {"ok": True}

    @app.get("/auto-update/version")
    async def get_version():
        return {"ok": True, "version": updater.get_current_version()}

    @app.get("/auto-update/status")
    async def update_status():
        return {"ok": True, "status": updater.get_status().model_dump()}

    # ────────── WebSocket
    @app.websocket("/ws")
    async def ws_drawer(ws: WebSocket):
        await _serve_events(ws, master.events, "drawer")

    @app.websocket("/ws/updates")
    async def ws_updates(ws: WebSocket):
        await _serve_events(ws, update_events, "update")

    return app


async def _serve_events(ws: WebSocket, bridge: EventBridge, name: str):
    api_log.info("=== WebSocket Connection (%s events) ===", name)
    await ws.accept()

    forward = asyncio.create_task(_forward_events(ws, bridge))
    try:
        while True:
            message = await ws.receive_text()
            api_log.debug("Received WebSocket message: %s", message)
    except WebSocketDisconnect:
        api_log.info("WebSocket disconnected")
    finally:
        forward.cancel()

async def _forward_events(ws: WebSocket, bridge: EventBridge):
    try:
        while True:
            ev = await bridge.get()
            api_log.info("Forwarding event to WebSocket: %s", ev)
            await ws.send_json(ev)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        api_log.error("Error forwarding event: %s", e)


if __name__ == "__main__":
    uvicorn.run("drawermaster.api:create_app", factory=True,
                host="127.0.0.1", port=8000, log_level="debug")
