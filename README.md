# portswitch

A small desktop tool that forwards one fixed local port to a target you choose
from a saved list.

You pick one port to listen on, for example `8080`, and keep a list of
targets. Each target has a name, a domain and a port. When forwarding is on and
a target is active, every TCP connection that arrives on `127.0.0.1` at the
listening port goes to that target. Clients keep using the same address while
you change where it leads.

## Install

```
pip install .
```

The window uses Tkinter from the standard library. The package has no
third-party dependencies.

## Run

```
portswitch
```

The window has two sections.

- **From**: the port that portswitch listens on, bound to `127.0.0.1`. The
  switch next to it turns forwarding on or off. You cannot change the port
  while forwarding is on.
- **To**: your saved targets. Each entry shows its name and port. It also
  shows its domain when that is not `localhost`. A target's switch makes it
  the active target, or clears it if it is already active. While a target is
  active, its **Edit** and **x** (delete) buttons are disabled. **Add New**
  opens a form with Name, Domain and Port fields, a **Save** button and a
  **Back** button.

The listener reads its target when it starts. Selecting a different target
while the listener runs only records that target. To switch a running proxy,
turn the active target off, then turn the new one on. You can also turn
forwarding off and on again.

The same target cannot appear in the list twice. Two entries count as the same
target when their domain and port match, whatever their names. If you save a
duplicate, the form shows "Port Already exist" and stays open.

portswitch will not forward `localhost` to the port it listens on. If you try,
forwarding is switched off and the window shows the warning "Cannot forward to
listening port".

Every connection through the proxy prints a line to standard output giving the
number of bytes sent and received. Failures to reach the target are printed to
standard error.

### State file

When you close the window with **File → Quit** or the window's close button,
portswitch saves four things as JSON:

- the listening port
- whether forwarding is on
- the list of targets
- the active target

It loads them again the next time it starts. The default location is
`port_switch/state.json` under:

- `$XDG_DATA_HOME`, or `~/.local/share` when that is not set, on Linux and
  other Unix systems
- `~/Library/Application Support` on macOS
- `%APPDATA%` on Windows

To use a different file, pass `--state`:

```
portswitch --state ./my-state.json
```

If the file is missing or cannot be read, portswitch starts with an empty list
and listening port `0`.

## Using the proxy from Python

You can run the forwarding engine without the window:

```python
from portswitch.config import ForwardTarget, ProxyConfig
from portswitch.proxy import DynamicProxy

config = ProxyConfig((8080, ForwardTarget("localhost", 3000)))
config.validate()  # raises ConfigError if localhost is forwarded to 8080 itself

with DynamicProxy() as proxy:
    proxy.update(config)
    # ...
    proxy.update(ProxyConfig())  # turn forwarding off
    proxy.update(ProxyConfig((8080, ForwardTarget("localhost", 4000))))  # on, new target
```

- **`DynamicProxy`** runs the proxy on its own background thread.
  - `update()` queues a new configuration for that thread.
  - `close()` stops the proxy.
  - `join()` waits for the thread to end.
  - Leaving a `with` block does both `close()` and `join()`.
  - Calling `update()` after `close()` raises `RuntimeError`.
- **`ForwardTarget`** and **`ProxyConfig`** check their port numbers, which
  must be between 0 and 65535, and raise `ConfigError` otherwise.
- **`portswitch.proxy.serve_proxy`** is the coroutine that runs a single
  listener, if you want to drive one from your own event loop.
- **`portswitch.app.AppState`** holds the state and actions that the window
  uses. It works without a display.

## Limitations

- Forwarding covers TCP only.
- The listener binds to `127.0.0.1` only, so other machines cannot connect to
  it.
- A running listener keeps the target it started with until it is restarted.

## Tests

```
pip install .[test]
pytest
```