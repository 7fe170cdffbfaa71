import json

import pytest

from portswitch.app import (
    AppState,
    CreationPage,
    EditPage,
    ForwardPort,
    ListPage,
)
from portswitch.config import ConfigError, ForwardTarget


class RecordingProxy:
    def __init__(self):
        self.configs = []
        self.closed = False

    def update(self, config):
        self.configs.append(config)

    def close(self):
        self.closed = True


class ClosedProxy(RecordingProxy):
    def update(self, config):
        raise RuntimeError("proxy is closed")


def make_port(port, name="svc", domain="localhost"):
    return ForwardPort(target=ForwardTarget(domain=domain, port=port), name=name)


def test_forward_port_defaults():
    port = ForwardPort()
    assert port.target.port == 8080
    assert port.target.domain == "localhost"
    assert port.name == "New Port"
    assert port.error is None


def test_forward_port_equality_ignores_name_and_error():
    a = make_port(3000, name="a")
    b = make_port(3000, name="b")
    b.error = "oops"
    assert a == b
    assert a != make_port(3001, name="a")


def test_forward_port_round_trip_drops_error():
    port = make_port(4000, name="api", domain="example.com")
    port.error = "bad"
    data = port.to_dict()
    assert "error" not in data
    back = ForwardPort.from_dict(data)
    assert back == port
    assert back.name == "api"
    assert back.error is None


def test_forward_port_from_dict_missing_field():
    with pytest.raises(ConfigError):
        ForwardPort.from_dict({"name": "x"})


def test_init_state_and_default():
    assert AppState.init_state().listen_port == 8080
    assert AppState().listen_port == 0
    assert isinstance(AppState().page, ListPage)


def test_update_backend_without_proxy_raises():
    state = AppState.init_state()
    with pytest.raises(RuntimeError, match="Sender Channel Not found"):
        state.update_backend()


def test_attach_sends_off_config_when_disabled():
    state = AppState.init_state()
    proxy = RecordingProxy()
    state.attach(proxy)
    assert len(proxy.configs) == 1
    assert proxy.configs[0].is_off()


def test_enabling_with_active_port_sends_route():
    state = AppState(listen_port=9000)
    port = make_port(3000)
    state.forward_ports.append(port)
    proxy = RecordingProxy()
    state.attach(proxy)
    state.toggle_port(port)
    state.set_enabled(True)
    last = proxy.configs[-1]
    assert last.is_on()
    assert last.listen_port() == 9000
    assert last.forward_target() == port.target
    assert state.error is None


def test_forwarding_to_listen_port_is_refused():
    state = AppState.init_state()
    port = make_port(state.listen_port)
    state.forward_ports.append(port)
    proxy = RecordingProxy()
    state.attach(proxy)
    state.toggle_port(port)
    sent = len(proxy.configs)
    state.set_enabled(True)
    assert state.error == "Cannot forward to listening port"
    assert state.is_enabled is False
    assert len(proxy.configs) == sent


def test_toggle_port_twice_clears_active():
    state = AppState.init_state()
    port = make_port(3000)
    state.forward_ports.append(port)
    state.attach(RecordingProxy())
    state.toggle_port(port)
    assert state.is_active(port)
    state.toggle_port(port)
    assert state.active_forward_port is None
    assert not state.is_active(port)


def test_closed_proxy_is_ignored():
    state = AppState.init_state()
    state.attach(ClosedProxy())
    state.set_enabled(True)
    assert state.is_enabled is True
    assert state.error is None


def test_create_port_appends_and_returns_to_list():
    state = AppState.init_state()
    state.start_create()
    assert isinstance(state.page, CreationPage)
    state.page.port.name = "web"
    state.page.port.target = ForwardTarget(port=5000)
    assert state.save_editing() is True
    assert isinstance(state.page, ListPage)
    assert state.forward_ports == [make_port(5000)]
    assert state.forward_ports[0].name == "web"


def test_create_duplicate_port_is_refused():
    state = AppState.init_state()
    state.forward_ports.append(make_port(5000))
    state.start_create()
    state.page.port.target = ForwardTarget(port=5000)
    assert state.save_editing() is False
    assert state.page.port.error == "Port Already exist"
    assert isinstance(state.page, CreationPage)
    assert len(state.forward_ports) == 1


def test_edit_replaces_port_in_place():
    state = AppState.init_state()
    state.forward_ports.extend([make_port(5000, "a"), make_port(6000, "b")])
    state.start_edit(1)
    assert isinstance(state.page, EditPage)
    state.page.port.name = "renamed"
    assert state.save_editing() is True
    assert state.forward_ports[1].name == "renamed"
    assert state.forward_ports[0].name == "a"


def test_edit_conflicting_with_other_port_is_refused():
    state = AppState.init_state()
    state.forward_ports.extend([make_port(5000, "a"), make_port(6000, "b")])
    state.start_edit(1)
    state.page.port.target = ForwardTarget(port=5000)
    assert state.save_editing() is False
    assert state.page.port.error == "Port Already exist"
    assert state.forward_ports[1] == make_port(6000)


def test_edit_does_not_change_list_until_saved():
    state = AppState.init_state()
    state.forward_ports.append(make_port(5000, "a"))
    state.start_edit(0)
    state.page.port.name = "changed"
    state.back_to_list()
    assert state.forward_ports[0].name == "a"
    assert state.save_editing() is False


def test_remove_port():
    state = AppState.init_state()
    state.forward_ports.extend([make_port(5000), make_port(6000)])
    state.remove_port(make_port(5000))
    assert state.forward_ports == [make_port(6000)]


def test_active_port_cannot_be_removed_or_edited():
    state = AppState.init_state()
    port = make_port(5000)
    state.forward_ports.append(port)
    state.attach(RecordingProxy())
    state.toggle_port(port)
    with pytest.raises(ValueError):
        state.remove_port(port)
    with pytest.raises(ValueError):
        state.start_edit(0)
    assert state.forward_ports == [port]


def test_save_and_load_round_trip(tmp_path):
    state = AppState(listen_port=7000, is_enabled=True)
    port = make_port(5000, "api", "example.com")
    state.forward_ports.append(port)
    state.active_forward_port = port
    path = tmp_path / "nested" / "state.json"
    state.save(path)
    loaded = AppState.load(path)
    assert loaded.to_dict() == state.to_dict()
    assert loaded.active_forward_port == port


def test_load_without_path_is_fresh_state():
    assert AppState.load(None).listen_port == 8080


def test_load_missing_or_invalid_file_gives_defaults(tmp_path):
    assert AppState.load(tmp_path / "absent.json").listen_port == 0
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    assert AppState.load(bad).listen_port == 0
    partial = tmp_path / "partial.json"
    partial.write_text(json.dumps({"listen_port": 10}), encoding="utf-8")
    assert AppState.load(partial).listen_port == 0


def test_from_dict_rejects_bad_listen_port():
    data = AppState.init_state().to_dict()
    data["listen_port"] = 70000
    with pytest.raises(ConfigError):
        AppState.from_dict(data)


def test_detach_closes_proxy():
    state = AppState.init_state()
    proxy = RecordingProxy()
    state.attach(proxy)
    assert state.detach() is proxy
    assert proxy.closed is True
    assert state.proxy is None
    assert state.detach() is None