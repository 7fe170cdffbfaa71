"""Desktop window for switching which target a local port forwards to."""

from __future__ import annotations

import argparse
import os
import sys
import tkinter as tk
from pathlib import Path
from typing import Callable, Optional, Sequence

from portswitch.app import AppState, ForwardPort, ListPage
from portswitch.config import ForwardTarget
from portswitch.proxy import DynamicProxy

APP_DIR_NAME = "port_switch"
STATE_FILE_NAME = "state.json"
WINDOW_TITLE = "Port switch"
_MAX_PORT = 65535
_HEADING = ("Helvetica", 14, "bold")
_PAD = 10


def default_state_path() -> Path:
    """Where the application state is stored for the current user."""
    if sys.platform.startswith("win"):
        appdata = os.environ.get("APPDATA")
        base = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        xdg = os.environ.get("XDG_DATA_HOME")
        base = Path(xdg) if xdg else Path.home() / ".local" / "share"
    return base / APP_DIR_NAME / STATE_FILE_NAME


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portswitch",
        description="Forward a local port to one of several saved targets.",
    )
    parser.add_argument(
        "--state",
        type=Path,
        default=None,
        metavar="PATH",
        help="file to keep the application state in",
    )
    return parser


class Toggle(tk.Canvas):
    """A pill-shaped on/off switch; command receives the new value when clicked."""

    def __init__(
        self,
        master: tk.Misc,
        value: bool = False,
        command: Optional[Callable[[bool], None]] = None,
        enabled: bool = True,
        height: int = 20,
    ) -> None:
        super().__init__(
            master, width=2 * height, height=height, highlightthickness=0, bd=0
        )
        self._value = bool(value)
        self._command = command
        self._enabled = enabled
        self._size = height
        self.bind("<Button-1>", self._on_click)
        self._draw()

    def set(self, value: bool) -> None:
        self._value = bool(value)
        self._draw()

    def get(self) -> bool:
        return self._value

    def _on_click(self, _event: tk.Event) -> None:
        if not self._enabled:
            return
        self.set(not self._value)
        if self._command is not None:
            self._command(self._value)

    def _draw(self) -> None:
        self.delete("all")
        h = self._size - 1
        w = 2 * self._size - 1
        r = h / 2
        if not self._enabled:
            fill = "#d1d5db"
        elif self._value:
            fill = "#3b82f6"
        else:
            fill = "#9ca3af"
        self.create_oval(0, 0, h, h, fill=fill, outline=fill)
        self.create_oval(w - h, 0, w, h, fill=fill, outline=fill)
        self.create_rectangle(r, 0, w - r, h, fill=fill, outline=fill)
        cx = w - r if self._value else r
        knob = 0.75 * r
        self.create_oval(
            cx - knob, r - knob, cx + knob, r + knob, fill="white", outline="#374151"
        )


class PortSwitchWindow:
    """The main window, redrawn from the application state after every action."""

    def __init__(
        self,
        state: AppState,
        state_path: Optional[Path] = None,
        root: Optional[tk.Tk] = None,
    ) -> None:
        self.state = state
        self.state_path = state_path
        self.root = root if root is not None else tk.Tk()
        self.root.title(WINDOW_TITLE)
        self.root.geometry("450x700")
        self.root.minsize(300, 220)
        self.root.protocol("WM_DELETE_WINDOW", self.quit)
        self._body = tk.Frame(self.root)
        self._body.pack(fill="both", expand=True)
        self.refresh()

    def refresh(self) -> None:
        """Rebuild the window contents for the current page."""
        for child in self._body.winfo_children():
            child.destroy()
        self.root.config(menu="")
        if isinstance(self.state.page, ListPage):
            self._build_list_page()
        else:
            self._build_form_page()

    def quit(self) -> None:
        """Save the state, stop the proxy and close the window."""
        if self.state_path is not None:
            try:
                self.state.save(self.state_path)
            except OSError as exc:
                print(f"Cannot save state: {exc}", file=sys.stderr)
        self.state.detach()
        self.root.destroy()

    def _later(self, action: Callable[[], None]) -> Callable[..., None]:
        def run(*_args: object) -> None:
            action()
            self.root.after_idle(self.refresh)

        return run

    def _build_list_page(self) -> None:
        menubar = tk.Menu(self.root)
        file_menu = tk.Menu(menubar, tearoff=False)
        file_menu.add_command(label="Quit", command=self.quit)
        menubar.add_cascade(label="File", menu=file_menu)
        self.root.config(menu=menubar)

        body = self._body
        if self.state.error:
            tk.Label(body, text=f"⚠ {self.state.error} ⚠", fg="#b45309").pack(
                anchor="w", padx=_PAD, pady=(_PAD, 0)
            )

        tk.Label(body, text="From", font=_HEADING).pack(anchor="w", padx=_PAD, pady=(_PAD, 0))
        row = tk.Frame(body)
        row.pack(fill="x", padx=_PAD)
        tk.Label(row, text="Port: ").pack(side="left")
        listen_var = tk.StringVar(master=self.root, value=str(self.state.listen_port))
        tk.Spinbox(
            row,
            from_=0,
            to=_MAX_PORT,
            width=7,
            textvariable=listen_var,
            state="disabled" if self.state.is_enabled else "normal",
        ).pack(side="left")

        def set_enabled(value: bool) -> None:
            try:
                port = int(listen_var.get())
            except ValueError:
                port = self.state.listen_port
            if 0 <= port <= _MAX_PORT:
                self.state.listen_port = port
            self.state.set_enabled(value)

        Toggle(row, value=self.state.is_enabled, command=self._later_value(set_enabled)).pack(
            side="right"
        )

        tk.Frame(body, height=1, bg="#9ca3af").pack(fill="x", padx=_PAD, pady=_PAD)
        tk.Label(body, text="To", font=_HEADING).pack(anchor="w", padx=_PAD, pady=(0, _PAD))

        for index, port in enumerate(list(self.state.forward_ports)):
            self._build_port_rows(index, port)

        tk.Frame(body, height=1, bg="#9ca3af").pack(fill="x", padx=_PAD, pady=_PAD)
        tk.Button(body, text="Add New", command=self._later(self.state.start_create)).pack(
            anchor="w", padx=_PAD
        )

    def _later_value(self, action: Callable[[bool], None]) -> Callable[[bool], None]:
        def run(value: bool) -> None:
            action(value)
            self.root.after_idle(self.refresh)

        return run

    def _build_port_rows(self, index: int, port: ForwardPort) -> None:
        active = self.state.is_active(port)
        button_state = "disabled" if active else "normal"

        top = tk.Frame(self._body)
        top.pack(fill="x", padx=_PAD)
        tk.Label(top, text=port.name).pack(side="left")
        tk.Button(
            top,
            text="Edit",
            state=button_state,
            command=self._later(lambda: self.state.start_edit(index)),
        ).pack(side="right")
        tk.Button(
            top,
            text="x",
            state=button_state,
            command=self._later(lambda: self.state.remove_port(port)),
        ).pack(side="right")

        bottom = tk.Frame(self._body)
        bottom.pack(fill="x", padx=_PAD, pady=(0, _PAD))
        tk.Label(bottom, text="Port: ").pack(side="left")
        tk.Label(bottom, text=str(port.target.port)).pack(side="left")
        if port.target.is_external():
            tk.Label(bottom, text="Domain: ").pack(side="left")
            tk.Label(bottom, text=f"({port.target.domain})").pack(side="left")
        Toggle(
            bottom,
            value=active,
            command=self._later_value(lambda _value: self.state.toggle_port(port)),
        ).pack(side="right")

    def _build_form_page(self) -> None:
        editing = self.state.page.port
        bar = tk.Frame(self._body)
        bar.pack(fill="x", padx=_PAD, pady=_PAD)
        tk.Button(bar, text="Back", command=self._later(self.state.back_to_list)).pack(
            side="left"
        )

        form = tk.Frame(self._body)
        form.pack(fill="x", padx=_PAD, pady=_PAD)
        form.columnconfigure(0, minsize=100)

        name_var = tk.StringVar(master=self.root, value=editing.name)
        domain_var = tk.StringVar(master=self.root, value=editing.target.domain)
        port_var = tk.StringVar(master=self.root, value=str(editing.target.port))

        fields = (
            ("Name: ", tk.Entry(form, textvariable=name_var)),
            ("Domain: ", tk.Entry(form, textvariable=domain_var)),
            ("Port: ", tk.Spinbox(form, from_=0, to=_MAX_PORT, textvariable=port_var)),
        )
        for row, (label, widget) in enumerate(fields):
            tk.Label(form, text=label).grid(row=row, column=0, sticky="w", pady=5)
            widget.grid(row=row, column=1, sticky="ew", pady=5)

        next_row = len(fields)
        if editing.error:
            tk.Label(form, text=editing.error, fg="#b45309").grid(
                row=next_row, column=0, columnspan=2, sticky="w", pady=5
            )
            next_row += 1

        def save() -> None:
            editing.name = name_var.get()
            try:
                port = int(port_var.get())
                editing.target = ForwardTarget(domain=domain_var.get(), port=port)
            except ValueError:
                editing.error = f"Port must be a number between 0 and {_MAX_PORT}"
                return
            self.state.save_editing()

        tk.Button(form, text="Save", command=self._later(save)).grid(
            row=next_row, column=0, sticky="w", pady=5
        )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    path = args.state if args.state is not None else default_state_path()
    state = AppState.load(path)
    proxy = DynamicProxy()
    try:
        state.attach(proxy)
        window = PortSwitchWindow(state, state_path=path)
        window.root.mainloop()
    finally:
        proxy.close()
        proxy.join()
    return 0