import asyncio, logging
from functools import partial
from typing import List

from .enums import KickCommand
from .escpos.driver import DrawerDriver
from .events import EventBridge
from .models import PortInfo
from .state import DrawerStatus

log = logging.getLogger("DrawerMaster")


class DrawerMaster:
    """
    • Async face of ``DrawerDriver`` for the API layer
    • Blocking serial calls run in the default executor
    • Driver events (connect/disconnect/fault/opened) go to ``self.events``
    """

    def __init__(self, driver: DrawerDriver | None = None):
        self.driver = driver or DrawerDriver()
        self.events = EventBridge()
        self.driver.add_listener(self.events.publish)

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self.events.bind(loop)

    async def _run(self, fn, *args):
        return await asyncio.get_running_loop().run_in_executor(None, partial(fn, *args))

    # ───── public methods ──────────────────────────────────────
    async def list_ports(self) -> List[PortInfo]:
        return await self._run(self.driver.list_ports)

    async def connect(self, port: str, baud_rate: int | None = None) -> bool:
        return await self._run(self.driver.connect, port, baud_rate)

    async def disconnect(self) -> None:
        await self._run(self.driver.disconnect)

    async def reconnect(self) -> bool:
        return await self._run(self.driver.reconnect)

    async def auto_connect(self) -> bool:
        return await self._run(self.driver.auto_connect)

    async def open_drawer(self, cmd: KickCommand = KickCommand.STANDARD) -> bool:
        log.info("Open drawer requested (%s)", KickCommand(cmd).value)
        return await self._run(self.driver.send, cmd)

    async def test_drawer(self) -> bool:
        return await self._run(self.driver.test_drawer)

    def get_status(self) -> DrawerStatus:
        return self.driver.get_status()

    def is_drawer_connected(self) -> bool:
        return self.driver.is_connected()
