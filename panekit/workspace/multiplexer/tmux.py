"""tmux multiplexer via libtmux.

A session is built in one window: the root pane is split right once per
extra column, then each column is split downward once per extra row.
Split sizes are computed from the geometry tree's relative shares so
that each new pane takes the right fraction of the region it is carved
from.

Attaching hands the terminal to tmux itself (``attach-session`` or, from
inside tmux, ``switch-client``), so it goes through ``subprocess`` rather
than libtmux.
"""

from __future__ import annotations

import os
import shlex
import shutil
import subprocess
from collections.abc import Sequence
from typing import Any

import libtmux
from libtmux.constants import PaneDirection
from libtmux.exc import LibTmuxException
from loguru import logger

from panekit.workspace.errors import ExternalToolError
from panekit.workspace.models.enums import Orientation
from panekit.workspace.models.execution import ExecutionSpec
from panekit.workspace.models.geometry import GeometryLeaf, GeometryTree
from panekit.workspace.multiplexer.base import MANIFEST_KEY, SessionHandle, SessionInfo

# Named pane background colours.  Anything else is passed to tmux as-is.
PANE_COLORS: dict[str, str] = {
    "purple": "#251F2B",
    "yellow": "#2B2011",
    "red": "#231517",
    "green": "#122322",
    "blue": "#1E202E",
    "gray": "#1a1a1a",
    "grey": "#1a1a1a",
    "orange": "#2B1D11",
}

SESSION_OPTIONS: tuple[tuple[str, str], ...] = (
    ("mouse", "on"),
    ("pane-border-status", "top"),
    ("pane-border-format", " #{pane_title} "),
)

_DIRECTIONS = {
    Orientation.HORIZONTAL: PaneDirection.Right,
    Orientation.VERTICAL: PaneDirection.Below,
}


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def split_percentages(sizes: Sequence[float]) -> list[int]:
    """Percentages for the successive splits that carve out ``sizes``.

    Split *i* (for child *i* >= 1) cuts the region still holding children
    ``i-1..n`` and gives the new pane the share belonging to ``i..n``.
    Returns one entry per split (``len(sizes) - 1``), clamped to 1..99.
    """
    result: list[int] = []
    for i in range(1, len(sizes)):
        region = sum(sizes[i - 1 :])
        pct = round(sum(sizes[i:]) / region * 100) if region else 50
        result.append(min(99, max(1, pct)))
    return result


def pane_color(color: str) -> str:
    return PANE_COLORS.get(color.lower(), color)


def pane_command(spec: ExecutionSpec) -> str:
    """The line typed into a pane to run ``spec``."""
    parts = [f"cd {shlex.quote(str(spec.cwd))}"]
    if spec.notes:
        parts.append("printf '%s\\n' " + shlex.join(spec.notes))
    assignments = " ".join(f"{key}={shlex.quote(value)}" for key, value in sorted(spec.env.items()))
    if spec.program is not None:
        prefix = f"env {assignments} " if assignments else ""
        parts.append(prefix + spec.command_line())
    else:
        if assignments:
            parts.append(f"export {assignments}")
        if spec.raw_command:
            parts.append(spec.raw_command)
    return " && ".join(parts)


# ---------------------------------------------------------------------------
# Multiplexer
# ---------------------------------------------------------------------------


class TmuxMultiplexer:
    """``Multiplexer`` backed by a local tmux server."""

    def __init__(self, socket_name: str | None = None) -> None:
        self.socket_name = socket_name
        self._server: libtmux.Server | None = None

    @property
    def server(self) -> libtmux.Server:
        if self._server is None:
            self._server = libtmux.Server(socket_name=self.socket_name)
        return self._server

    def _tmux(self, *args: str) -> list[str]:
        base = ["tmux"]
        if self.socket_name:
            base += ["-L", self.socket_name]
        return [*base, *args]

    def _find(self, name: str) -> libtmux.Session | None:
        return self.server.sessions.get(session_name=name, default=None)

    # -- Queries ---------------------------------------------------------------

    def list_sessions(self) -> set[str]:
        return {s.session_name for s in self.server.sessions if s.session_name}

    def describe_sessions(self) -> list[SessionInfo]:
        infos = []
        for session in self.server.sessions:
            windows = session.windows
            infos.append(
                SessionInfo(
                    name=session.session_name or "",
                    windows=len(windows),
                    panes=sum(len(w.panes) for w in windows),
                    attached=session.session_attached not in (None, "", "0"),
                    manifest=self._getenv(session, MANIFEST_KEY),
                )
            )
        return sorted(infos, key=lambda info: info.name)

    def current_session(self) -> str | None:
        if not os.environ.get("TMUX"):
            return None
        result = self.server.cmd("display-message", "-p", "#S")
        return result.stdout[0] if result.stdout else None

    # -- Metadata --------------------------------------------------------------

    @staticmethod
    def _getenv(session: libtmux.Session, key: str) -> str | None:
        value = session.getenv(key)
        return value if isinstance(value, str) else None

    def set_metadata(self, name: str, key: str, value: str) -> None:
        session = self._find(name)
        if session is None:
            raise ExternalToolError(self._tmux("set-environment", "-t", name, key), "session not found")
        session.set_environment(key, value)

    def get_metadata(self, name: str, key: str) -> str | None:
        session = self._find(name)
        if session is None:
            return None
        return self._getenv(session, key)

    # -- Lifecycle -------------------------------------------------------------

    def create_session(
        self,
        name: str,
        tree: GeometryTree,
        *,
        start_directory: str,
        window_name: str | None = None,
    ) -> SessionHandle:
        try:
            session = self.server.new_session(
                session_name=name,
                start_directory=start_directory,
                window_name=window_name,
                attach=False,
            )
        except LibTmuxException as exc:
            raise ExternalToolError(self._tmux("new-session", "-d", "-s", name), str(exc)) from exc

        handle = SessionHandle(name=name, native=session)
        try:
            for option, value in SESSION_OPTIONS:
                self._check(session.cmd("set-option", option, value), "set-option", option, value)
            root = session.windows[0].active_pane
            self._build(root, tree, handle.panes, start_directory)
        except (LibTmuxException, ExternalToolError) as exc:
            logger.debug("Layout build for '{}' failed; removing half-built session", name)
            session.kill()
            if isinstance(exc, ExternalToolError):
                raise
            raise ExternalToolError(self._tmux("split-window"), str(exc)) from exc

        logger.debug("Created tmux session '{}' with {} panes", name, len(handle.panes))
        return handle

    def _build(self, pane: Any, tree: GeometryTree, out: dict[str, Any], start_directory: str) -> None:
        if isinstance(tree, GeometryLeaf):
            out[tree.pane] = pane
            return

        regions = [pane]
        direction = _DIRECTIONS[tree.orientation]
        for pct in split_percentages(tree.sizes):
            regions.append(
                regions[-1].split(direction=direction, size=f"{pct}%", start_directory=start_directory)
            )
        for region, child in zip(regions, tree.children, strict=True):
            self._build(region, child, out, start_directory)

    def _check(self, result: Any, *args: str, pane: str | None = None) -> None:
        if result.returncode not in (0, None) or result.stderr:
            raise ExternalToolError(
                self._tmux(*args), " ".join(result.stderr), returncode=result.returncode, pane=pane
            )

    def start_pane(self, handle: SessionHandle, leaf: GeometryLeaf, spec: ExecutionSpec) -> None:
        pane = handle.panes.get(leaf.pane)
        if pane is None:
            raise ExternalToolError(self._tmux("send-keys"), "no tmux pane for this leaf", pane=leaf.pane)
        if spec.program is not None and shutil.which(spec.program) is None:
            raise ExternalToolError(spec.argv, f"'{spec.program}' not found on PATH", pane=spec.pane)

        try:
            self._check(pane.cmd("select-pane", "-T", spec.title), "select-pane", "-T", spec.title, pane=spec.pane)
            if spec.color:
                style = f"bg={pane_color(spec.color)}"
                self._check(pane.cmd("select-pane", "-P", style), "select-pane", "-P", style, pane=spec.pane)
            pane.send_keys(pane_command(spec), enter=True)
        except LibTmuxException as exc:
            raise ExternalToolError(spec.command_line() or "send-keys", str(exc), pane=spec.pane) from exc

    def kill_session(self, name: str) -> bool:
        session = self._find(name)
        if session is None:
            return False
        try:
            session.kill()
        except LibTmuxException as exc:
            # Lost a race with another kill: the session is gone either way.
            if self._find(name) is None:
                return True
            raise ExternalToolError(self._tmux("kill-session", "-t", name), str(exc)) from exc
        return True

    def attach(self, name: str, *, control_mode: bool = False) -> bool:
        if self._find(name) is None:
            return False
        if os.environ.get("TMUX"):
            command = self._tmux("switch-client", "-t", name)
        elif control_mode:
            command = self._tmux("-CC", "attach-session", "-t", name)
        else:
            command = self._tmux("attach-session", "-t", name)

        completed = subprocess.run(command, check=False)  # noqa: S603
        if completed.returncode != 0:
            raise ExternalToolError(command, returncode=completed.returncode)
        return True
