"""Application state: the saved forward ports, the active route and the page on screen."""

from __future__ import annotations

import contextlib
import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from portswitch.config import ConfigError, ForwardTarget, ProxyConfig

DEFAULT_LISTEN_PORT = 8080
DEFAULT_FORWARD_PORT = 8080
DEFAULT_PORT_NAME = "New Port"
PORT_EXISTS = "Port Already exist"
_MAX_PORT = 65535


def _port_value(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{what} must be an integer")
    if not 0 <= value <= _MAX_PORT:
        raise ConfigError(f"{what} must be between 0 and {_MAX_PORT}")
    return value


def _field(data: Mapping[str, Any], key: str) -> Any:
    try:
        return data[key]
    except KeyError as exc:
        raise ConfigError(f"missing field {key!r}") from exc
    except TypeError as exc:
        raise ConfigError("expected a mapping") from exc


@dataclass
class ForwardPort:
    """A named forward target; two ports are equal when their targets are."""

    target: ForwardTarget = field(
        default_factory=lambda: ForwardTarget(port=DEFAULT_FORWARD_PORT)
    )
    name: str = field(default=DEFAULT_PORT_NAME, compare=False)
    error: Optional[str] = field(default=None, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {"target": self.target.to_dict(), "name": self.name}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ForwardPort":
        target = ForwardTarget.from_dict(_field(data, "target"))
        name = _field(data, "name")
        if not isinstance(name, str):
            raise ConfigError("name must be a string")
        return cls(target=target, name=name)


@dataclass(frozen=True)
class ListPage:
    """The main page listing the forward ports."""


@dataclass
class CreationPage:
    """The form for adding a new forward port."""

    port: ForwardPort = field(default_factory=ForwardPort)


@dataclass
class EditPage:
    """The form for changing the forward port at index."""

    index: int
    port: ForwardPort


Page = Union[ListPage, CreationPage, EditPage]


@dataclass
class AppState:
    """Everything the application remembers, and the actions the pages perform."""

    listen_port: int = 0
    is_enabled: bool = False
    forward_ports: list[ForwardPort] = field(default_factory=list)
    active_forward_port: Optional[ForwardPort] = None
    page: Page = field(default_factory=ListPage)
    proxy: Optional[Any] = field(default=None, repr=False, compare=False)
    error: Optional[str] = None

    @classmethod
    def init_state(cls) -> "AppState":
        """The state of a fresh start without storage."""
        return cls(listen_port=DEFAULT_LISTEN_PORT)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AppState":
        listen_port = _port_value(_field(data, "listen_port"), "listen_port")
        is_enabled = _field(data, "is_enabled")
        if not isinstance(is_enabled, bool):
            raise ConfigError("is_enabled must be a boolean")
        ports = _field(data, "forward_ports")
        if not isinstance(ports, list):
            raise ConfigError("forward_ports must be a list")
        active = _field(data, "active_forward_port")
        return cls(
            listen_port=listen_port,
            is_enabled=is_enabled,
            forward_ports=[ForwardPort.from_dict(item) for item in ports],
            active_forward_port=None if active is None else ForwardPort.from_dict(active),
        )

    def to_dict(self) -> dict[str, Any]:
        active = self.active_forward_port
        return {
            "listen_port": self.listen_port,
            "is_enabled": self.is_enabled,
            "forward_ports": [port.to_dict() for port in self.forward_ports],
            "active_forward_port": None if active is None else active.to_dict(),
        }

    @classmethod
    def load(cls, path: Optional[Union[str, Path]]) -> "AppState":
        """Load saved state; without a path start fresh, with an unusable file use defaults."""
        if path is None:
            return cls.init_state()
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
            return cls.from_dict(data)
        except (OSError, ValueError):
            return cls()

    def save(self, path: Union[str, Path]) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")

    def attach(self, proxy: Any) -> None:
        """Connect the proxy backend and send it the current configuration."""
        self.proxy = proxy
        self.update_backend()

    def detach(self) -> Optional[Any]:
        """Disconnect and close the proxy backend, returning it."""
        proxy, self.proxy = self.proxy, None
        if proxy is not None:
            proxy.close()
        return proxy

    def update_backend(self) -> None:
        """Send the configuration to the proxy, or record why it cannot run."""
        config = ProxyConfig()
        if self.is_enabled and self.active_forward_port is not None:
            config = ProxyConfig((self.listen_port, self.active_forward_port.target))
        try:
            config.validate()
        except ConfigError as exc:
            self.error = str(exc)
            self.is_enabled = False
            return
        self.error = None
        if self.proxy is None:
            raise RuntimeError("Sender Channel Not found")
        with contextlib.suppress(RuntimeError):
            self.proxy.update(config)

    def is_active(self, port: ForwardPort) -> bool:
        return self.active_forward_port is not None and self.active_forward_port == port

    def set_enabled(self, enabled: bool) -> None:
        self.is_enabled = bool(enabled)
        self.update_backend()

    def toggle_port(self, port: ForwardPort) -> None:
        """Make port the active target, or clear it if it already is."""
        if self.is_active(port):
            self.active_forward_port = None
        else:
            self.active_forward_port = replace(port, error=None)
        self.update_backend()

    def remove_port(self, port: ForwardPort) -> None:
        if self.is_active(port):
            raise ValueError("cannot remove the active port")
        self.forward_ports = [item for item in self.forward_ports if item != port]

    def start_create(self) -> None:
        self.page = CreationPage(ForwardPort())

    def start_edit(self, index: int) -> None:
        port = self.forward_ports[index]
        if self.is_active(port):
            raise ValueError("cannot edit the active port")
        self.page = EditPage(index, replace(port))

    def back_to_list(self) -> None:
        self.page = ListPage()

    def save_editing(self) -> bool:
        """Store the port being created or edited; return False if it was refused."""
        page = self.page
        if isinstance(page, ListPage):
            return False
        editing = page.port
        new_port = replace(editing, error=None)
        position = next(
            (i for i, item in enumerate(self.forward_ports) if item == new_port), None
        )
        if isinstance(page, EditPage):
            if position is not None and position != page.index:
                editing.error = PORT_EXISTS
                return False
            self.forward_ports[page.index] = new_port
        else:
            if position is not None:
                editing.error = PORT_EXISTS
                return False
            self.forward_ports.append(new_port)
        self.page = ListPage()
        return True