"""RoomSync Client room status window."""
from __future__ import annotations
import asyncio
import logging
from dataclasses import replace

from PySide6.QtCore import Qt, Signal, QObject
from PySide6.QtGui import QFont, QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QLabel,
    QPushButton, QSpinBox, QStatusBar,
)

from client.app import ClientApp
from client.session import SyncStatus
from shared.playback_state import VideoIdentity

logger = logging.getLogger("roomsync.client.ui")


class _StatusSignaler(QObject):
    status_changed = Signal(object, object)  # SyncStatus, VideoIdentity


class RoomWindow(QMainWindow):
    """
    Shows room membership and the current video, and offers the host-side
    actions: sync now, and (owner only) switching episode.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, app: ClientApp):
        super().__init__()
        self.loop = loop
        self.app = app
        self._signaler = _StatusSignaler()
        self._identity = app.identity

        self.setWindowTitle("RoomSync")
        self.resize(480, 260)
        self._setup_ui()

        # app callbacks run on the asyncio thread
        self._signaler.status_changed.connect(self._on_status)
        app.on_status = lambda status, identity: self._signaler.status_changed.emit(status, identity)

        shortcut = QShortcut(QKeySequence("Ctrl+S"), self)
        shortcut.activated.connect(self._sync_now)

    def _setup_ui(self) -> None:
        central = QWidget()
        layout = QVBoxLayout(central)
        layout.setContentsMargins(20, 20, 20, 20)
        font = QFont("Monospace", 14)

        self.lbl_room = QLabel(f"Room: {self.app.room.room_id or '-'}")
        self.lbl_room.setFont(font)
        layout.addWidget(self.lbl_room)

        self.lbl_role = QLabel(f"Role: {self.app.room.role.value}")
        self.lbl_role.setFont(font)
        layout.addWidget(self.lbl_role)

        self.lbl_video = QLabel("Video: -")
        self.lbl_video.setStyleSheet("color: #4CAF50;")
        layout.addWidget(self.lbl_video)

        self.lbl_controls = QLabel("")
        self.lbl_controls.setStyleSheet("color: #FF9800;")
        layout.addWidget(self.lbl_controls)

        row = QHBoxLayout()
        self.btn_sync = QPushButton("Sync now")
        self.btn_sync.clicked.connect(self._sync_now)
        row.addWidget(self.btn_sync)

        self.fld_episode = QSpinBox()
        self.fld_episode.setRange(1, 9999)
        self.fld_episode.setValue(self.app.identity.episode or 1)
        row.addWidget(self.fld_episode)

        self.btn_episode = QPushButton("Switch episode")
        self.btn_episode.clicked.connect(self._switch_episode)
        row.addWidget(self.btn_episode)
        layout.addLayout(row)
        layout.addStretch()

        self.setCentralWidget(central)
        self.status_bar = QStatusBar()
        self.setStatusBar(self.status_bar)
        self.status_bar.showMessage("Connecting...")

    def _on_status(self, status: SyncStatus, identity: VideoIdentity) -> None:
        self._identity = identity
        title = identity.video_title or identity.video_id or "-"
        if identity.episode:
            title += f" (ep {identity.episode})"
        self.lbl_video.setText(f"Video: {title}")
        # owner picks the video; members follow it
        self.fld_episode.setEnabled(status.is_owner)
        self.btn_episode.setEnabled(status.is_owner)
        self.lbl_controls.setText("Video is chosen by the room owner" if status.controls_disabled else "")
        connected = "connected" if self.app.room.connected else "offline"
        self.status_bar.showMessage(f"{'In room' if status.in_room else 'Not in room'} ({connected})")

    def _sync_now(self) -> None:
        self.loop.call_soon_threadsafe(self.app.broadcast_now)

    def _switch_episode(self) -> None:
        identity = replace(self._identity, episode=self.fld_episode.value(), media_url="")
        asyncio.run_coroutine_threadsafe(self.app.open_video(identity), self.loop)
