from __future__ import annotations

import re

from dbus_next import Variant
from dbus_next.aio import MessageBus
from dbus_next.constants import BusType, PropertyAccess
from dbus_next.service import ServiceInterface, dbus_property, method

from music_bridge.controller import BridgeController
from music_bridge.models import PlaybackState, PlayerState


OBJECT_PATH = "/org/mpris/MediaPlayer2"
IDENTITY = "Music Bridge"
DESKTOP_ENTRY = "music-bridge"


def _track_object_path(state: PlayerState) -> str:
    url = state.track.url if state.track else None
    if not url:
        return f"{OBJECT_PATH}/track/none"
    ident = re.sub(r"[^A-Za-z0-9_]", "_", url.rstrip("/").rsplit("/", maxsplit=1)[-1])
    return f"{OBJECT_PATH}/track/{ident or 'none'}"


def _can_control(state: PlayerState) -> bool:
    return state.state is not PlaybackState.DISCONNECTED


class MediaPlayer2Interface(ServiceInterface):
    def __init__(self, controller: BridgeController) -> None:
        super().__init__("org.mpris.MediaPlayer2")
        self._controller = controller

    @method()
    def Raise(self) -> "":
        return None

    @method()
    async def Quit(self) -> "":
        await self._controller.stop()

    @dbus_property(access=PropertyAccess.READ)
    def CanQuit(self) -> "b":
        return False

    @dbus_property(access=PropertyAccess.READ)
    def CanRaise(self) -> "b":
        return False

    @dbus_property(access=PropertyAccess.READ)
    def HasTrackList(self) -> "b":
        return False

    @dbus_property(access=PropertyAccess.READ)
    def Identity(self) -> "s":
        return IDENTITY

    @dbus_property(access=PropertyAccess.READ)
    def DesktopEntry(self) -> "s":
        return DESKTOP_ENTRY

    @dbus_property(access=PropertyAccess.READ)
    def SupportedUriSchemes(self) -> "as":
        return ["https"]

    @dbus_property(access=PropertyAccess.READ)
    def SupportedMimeTypes(self) -> "as":
        return []


class MediaPlayer2PlayerInterface(ServiceInterface):
    def __init__(self, controller: BridgeController) -> None:
        super().__init__("org.mpris.MediaPlayer2.Player")
        self._controller = controller

    @method()
    async def Next(self) -> "":
        await self._controller.next()

    @method()
    async def Previous(self) -> "":
        await self._controller.previous()

    @method()
    async def Pause(self) -> "":
        await self._controller.pause()

    @method()
    async def PlayPause(self) -> "":
        await self._controller.play_pause()

    @method()
    async def Stop(self) -> "":
        await self._controller.pause()

    @method()
    async def Play(self) -> "":
        await self._controller.play()

    @method()
    def Seek(self, _offset: "x") -> "":
        return None

    @method()
    def SetPosition(self, _track_id: "o", _position: "x") -> "":
        return None

    @method()
    def OpenUri(self, uri: "s") -> "":
        self._controller.open_link_detached(str(uri))

    @dbus_property(access=PropertyAccess.READ)
    def PlaybackStatus(self) -> "s":
        return self._controller.state.state.mpris_status

    @dbus_property(access=PropertyAccess.READ)
    def LoopStatus(self) -> "s":
        return "None"

    @dbus_property(access=PropertyAccess.READ)
    def Rate(self) -> "d":
        return 1.0

    @dbus_property(access=PropertyAccess.READ)
    def Shuffle(self) -> "b":
        return False

    @dbus_property(access=PropertyAccess.READ)
    def Volume(self) -> "d":
        return 1.0

    @dbus_property(access=PropertyAccess.READ)
    def Position(self) -> "x":
        return 0

    @dbus_property(access=PropertyAccess.READ)
    def MinimumRate(self) -> "d":
        return 1.0

    @dbus_property(access=PropertyAccess.READ)
    def MaximumRate(self) -> "d":
        return 1.0

    @dbus_property(access=PropertyAccess.READ)
    def CanGoNext(self) -> "b":
        return _can_control(self._controller.state)

    @dbus_property(access=PropertyAccess.READ)
    def CanGoPrevious(self) -> "b":
        return _can_control(self._controller.state)

    @dbus_property(access=PropertyAccess.READ)
    def CanPlay(self) -> "b":
        return _can_control(self._controller.state)

    @dbus_property(access=PropertyAccess.READ)
    def CanPause(self) -> "b":
        return _can_control(self._controller.state)

    @dbus_property(access=PropertyAccess.READ)
    def CanSeek(self) -> "b":
        return False

    @dbus_property(access=PropertyAccess.READ)
    def CanControl(self) -> "b":
        return True

    @dbus_property(access=PropertyAccess.READ)
    def Metadata(self) -> "a{sv}":
        state = self._controller.state
        track = state.track
        metadata: dict[str, Variant] = {
            "mpris:trackid": Variant("o", _track_object_path(state)),
        }
        if track is None:
            return metadata
        if track.title:
            metadata["xesam:title"] = Variant("s", track.title)
        if track.artists:
            metadata["xesam:artist"] = Variant("as", list(track.artists))
        if track.album:
            metadata["xesam:album"] = Variant("s", track.album)
        if track.duration_ms:
            metadata["mpris:length"] = Variant("x", track.duration_ms * 1000)
        if track.url:
            metadata["xesam:url"] = Variant("s", track.url)
        return metadata


class BridgeMprisService:
    def __init__(self, controller: BridgeController, mpris_name: str) -> None:
        self._controller = controller
        self._mpris_name = mpris_name
        self._bus: MessageBus | None = None
        self._root = MediaPlayer2Interface(controller)
        self._player = MediaPlayer2PlayerInterface(controller)

    async def start(self) -> None:
        self._bus = await MessageBus(bus_type=BusType.SESSION).connect()
        self._bus.export(OBJECT_PATH, self._root)
        self._bus.export(OBJECT_PATH, self._player)
        await self._bus.request_name(f"org.mpris.MediaPlayer2.{self._mpris_name}")
        self._controller.subscribe(self.on_state_changed)

    async def stop(self) -> None:
        if self._bus:
            self._bus.disconnect()

    async def on_state_changed(self, state: PlayerState) -> None:
        can_control = _can_control(state)
        self._player.emit_properties_changed(
            {
                "PlaybackStatus": state.state.mpris_status,
                "CanGoNext": can_control,
                "CanGoPrevious": can_control,
                "CanPlay": can_control,
                "CanPause": can_control,
                "Metadata": self._player.Metadata,
            },
            [],
        )
