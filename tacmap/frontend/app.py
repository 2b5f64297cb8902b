"""Tkinter GUI for tacmap.

This is the main application file: it wires the headless engine (store,
drawing machine, edit workflow, router) to a map canvas and an attribute
form. The major classes are:

  * ``ToolPanel``: the left sidebar with the drawing tools, Complete and
    Cancel buttons, layer toggles and overlay export/import.
  * ``EntityForm``: the right sidebar bound to the edit workflow's form.
    It is rebuilt for the staged entity's kind and shows the entity's
    position in lat/lon, MGRS and UTM.
  * ``App``: the top-level window. It owns the ``Viewport``, turns canvas
    events into router calls (click, drag-end on anchors, pan with the
    right button, wheel zoom) and re-renders ``build_overlay`` output with
    ``render_overlay`` after every change.

Collections persist to JSON files under ``config.DATA_DIR``. Export and
import (PNG with embedded snapshot, or JSON) are handled by
``overlay_io.py``.
"""

import logging
import time
import tkinter as tk
from tkinter import filedialog, messagebox, ttk

from PIL import ImageTk

from .. import config
from ..engine import LayerVisibility, build_overlay, create_engine
from ..engine.editing import FIELD_CHOICES, FORM_FIELDS
from ..engine.geometry import describe_position, format_bearing, format_distance
from ..engine.geometry import anchor as area_anchor
from ..engine.storage import JsonFileStorage
from ..engine.types import Area
from .overlay_io import load_overlay, save_overlay_json, save_overlay_png
from .renderer import Viewport, render_overlay

logger = logging.getLogger(__name__)

CANVAS_BG = "#1e1e1e"
DRAG_GHOST_COLOR = "#00ff88"
DRAG_GHOST_RADIUS = 8
ZOOM_STEP = 1.25
EXPORT_SIZE = (1600, 1200)

TOOL_BUTTONS = [
    ("target", "Target", "Click the map to place a target"),
    ("ownforce", "Own Forces", "Click the map to place a friendly unit"),
    ("area-polygon", "Polygon", "Click vertices, then Complete (3+ points)"),
    ("area-circle", "Circle", "Click the center, then a point on the rim"),
    ("area-line", "Line", "Click vertices, then Complete (2+ points)"),
    ("measure", "Measure", "Click two points to read distance and bearing"),
]

KIND_TITLES = {"target": "Target", "ownforce": "Own Force", "area": "Area"}


# ---------------------------------------------------------------------------
# Tooltip helper
# ---------------------------------------------------------------------------


class Tooltip:
    """Hover tooltip shown under a widget."""

    _DELAY_MS = 500

    def __init__(self, widget, text):
        self.widget = widget
        self.text = text
        self._window = None
        self._after_id = None
        widget.bind("<Enter>", self._schedule, add="+")
        widget.bind("<Leave>", self._cancel, add="+")

    def _schedule(self, _event=None):
        self._cancel()
        self._after_id = self.widget.after(self._DELAY_MS, self._show)

    def _cancel(self, _event=None):
        if self._after_id:
            self.widget.after_cancel(self._after_id)
            self._after_id = None
        if self._window:
            self._window.destroy()
            self._window = None

    def _show(self):
        if self._window:
            return
        x = self.widget.winfo_rootx()
        y = self.widget.winfo_rooty() + self.widget.winfo_height() + 2
        self._window = tk.Toplevel(self.widget)
        self._window.wm_overrideredirect(True)
        self._window.wm_geometry(f"+{x}+{y}")
        tk.Label(
            self._window,
            text=self.text,
            background="#2b2b2b",
            foreground="#f3f4f6",
            relief="solid",
            borderwidth=1,
            padx=4,
            pady=2,
            wraplength=260,
        ).pack()


# ---------------------------------------------------------------------------
# Tool panel
# ---------------------------------------------------------------------------


class ToolPanel(ttk.Frame):
    """Tool buttons, layer toggles and file actions."""

    def __init__(
        self,
        parent,
        on_tool,
        on_complete,
        on_cancel,
        on_layers_changed,
        on_export,
        on_import,
    ):
        super().__init__(parent, padding=6)
        self._on_tool = on_tool
        self.tool_buttons = {}
        self.layer_vars = {
            "targets": tk.BooleanVar(value=True),
            "ownforces": tk.BooleanVar(value=True),
            "areas": tk.BooleanVar(value=True),
            "names": tk.BooleanVar(value=True),
        }

        row = self._section("Tools", 0)
        for tool, label, tip in TOOL_BUTTONS:
            btn = ttk.Button(self, text=label, command=lambda t=tool: self._on_tool(t))
            btn.grid(row=row, column=0, columnspan=2, sticky="ew", pady=1)
            Tooltip(btn, tip)
            self.tool_buttons[tool] = btn
            row += 1

        self.complete_btn = ttk.Button(self, text="Complete", command=on_complete)
        self.complete_btn.grid(row=row, column=0, sticky="ew", pady=(6, 1))
        Tooltip(self.complete_btn, "Finish the polygon or line (Enter)")
        cancel_btn = ttk.Button(self, text="Cancel", command=on_cancel)
        cancel_btn.grid(row=row, column=1, sticky="ew", pady=(6, 1), padx=(4, 0))
        Tooltip(cancel_btn, "Discard the shape being drawn (Esc)")
        row += 1

        row = self._sep(row)
        row = self._section("Layers", row)
        for key, label in [
            ("targets", "Targets"),
            ("ownforces", "Own forces"),
            ("areas", "Areas"),
            ("names", "Names"),
        ]:
            ttk.Checkbutton(
                self,
                text=label,
                variable=self.layer_vars[key],
                command=on_layers_changed,
            ).grid(row=row, column=0, columnspan=2, sticky="w")
            row += 1

        row = self._sep(row)
        row = self._section("Overlay", row)
        ttk.Button(self, text="Export...", command=on_export).grid(
            row=row, column=0, columnspan=2, sticky="ew", pady=1
        )
        row += 1
        ttk.Button(self, text="Import...", command=on_import).grid(
            row=row, column=0, columnspan=2, sticky="ew", pady=1
        )

    def _section(self, title, row):
        ttk.Label(self, text=title, font=("", 11, "bold")).grid(
            row=row, column=0, columnspan=2, pady=(8, 4), sticky="w"
        )
        return row + 1

    def _sep(self, row):
        ttk.Separator(self, orient="horizontal").grid(
            row=row, column=0, columnspan=2, sticky="ew", pady=8
        )
        return row + 1

    def layers(self):
        return LayerVisibility(**{k: v.get() for k, v in self.layer_vars.items()})

    def sync(self, active_tool, can_complete, locked):
        """Reflect the drawing machine in the buttons."""
        for tool, btn in self.tool_buttons.items():
            if locked:
                btn.state(["disabled"])
            else:
                btn.state(["!disabled"])
            btn.state(["pressed"] if tool == active_tool else ["!pressed"])
        self.complete_btn.state(["!disabled"] if can_complete else ["disabled"])


# ---------------------------------------------------------------------------
# Attribute form
# ---------------------------------------------------------------------------


class EntityForm(ttk.Frame):
    """Form for the staged entity; empty when nothing is staged."""

    def __init__(self, parent, on_save, on_cancel, on_delete):
        super().__init__(parent, padding=6, width=260)
        self._on_save = on_save
        self._on_cancel = on_cancel
        self._on_delete = on_delete
        self._vars = {}
        self._body = None
        self.clear()

    def _reset_body(self):
        if self._body is not None:
            self._body.destroy()
        self._vars = {}
        self._body = ttk.Frame(self)
        self._body.pack(fill=tk.BOTH, expand=True)

    def clear(self):
        self._reset_body()
        ttk.Label(
            self._body,
            text="Click an entity to edit it,\nor pick a tool to add one.",
            foreground="#888888",
        ).pack(anchor="w", pady=8)

    def show(self, kind, entity, form, is_new):
        self._reset_body()
        body = self._body
        title = f"{'New' if is_new else 'Edit'} {KIND_TITLES[kind]}"
        ttk.Label(body, text=title, font=("", 12, "bold")).grid(
            row=0, column=0, columnspan=2, sticky="w", pady=(0, 6)
        )
        row = 1
        for name in FORM_FIELDS[kind]:
            label = name.capitalize()
            ttk.Label(body, text=label).grid(row=row, column=0, sticky="w", pady=2)
            value = form[name]
            choices = FIELD_CHOICES.get((kind, name))
            if choices is not None:
                var = tk.StringVar(value=value)
                ttk.Combobox(
                    body, textvariable=var, values=choices, state="readonly", width=18
                ).grid(row=row, column=1, sticky="w", pady=2, padx=(5, 0))
            elif name == "certainty":
                var = tk.IntVar(value=value)
                frame = ttk.Frame(body)
                frame.grid(row=row, column=1, sticky="w", pady=2, padx=(5, 0))
                ttk.Scale(
                    frame,
                    from_=0,
                    to=100,
                    orient="horizontal",
                    length=120,
                    command=lambda v, var=var: var.set(round(float(v))),
                    value=value,
                ).pack(side=tk.LEFT)
                ttk.Label(frame, textvariable=var, width=4).pack(side=tk.LEFT)
            else:
                var = tk.StringVar(value=value)
                ttk.Entry(body, textvariable=var, width=20).grid(
                    row=row, column=1, sticky="w", pady=2, padx=(5, 0)
                )
            self._vars[name] = var
            row += 1

        ttk.Separator(body, orient="horizontal").grid(
            row=row, column=0, columnspan=2, sticky="ew", pady=8
        )
        row += 1
        for line in _position_lines(entity):
            ttk.Label(body, text=line, font=("TkFixedFont", 9)).grid(
                row=row, column=0, columnspan=2, sticky="w"
            )
            row += 1

        buttons = ttk.Frame(body)
        buttons.grid(row=row, column=0, columnspan=2, sticky="ew", pady=(10, 0))
        ttk.Button(buttons, text="Save", command=self._on_save).pack(side=tk.LEFT)
        ttk.Button(buttons, text="Cancel", command=self._on_cancel).pack(
            side=tk.LEFT, padx=4
        )
        if not is_new:
            ttk.Button(buttons, text="Delete", command=self._on_delete).pack(
                side=tk.LEFT
            )

    def values(self):
        """Current widget values. IntVar.get raises TclError on junk."""
        out = {}
        for name, var in self._vars.items():
            try:
                out[name] = var.get()
            except tk.TclError as e:
                raise ValueError(f"{name}: {e}") from e
        return out


def _position_lines(entity):
    if isinstance(entity, Area):
        pos = area_anchor(entity)
        extra = []
        if entity.shape == "circle":
            extra.append(f"Radius: {format_distance(entity.radius_m / 1000.0)}")
        else:
            extra.append(f"Vertices: {len(entity.vertices)}")
    else:
        pos = entity.position
        extra = []
    d = describe_position(pos)
    return [
        f"Lat/Lon: {d['lat']}, {d['lon']}",
        f"MGRS: {d['mgrs']}",
        f"UTM:  {d['utm']}",
        *extra,
    ]


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


class App:
    def __init__(self, storage=None):
        self.root = tk.Tk()
        self.root.title("tacmap")
        self.root.geometry("1400x800")
        self.root.configure(bg=CANVAS_BG)

        style = ttk.Style()
        style.theme_use("clam")

        self.router = create_engine(storage or JsonFileStorage(config.DATA_DIR))
        self.viewport = Viewport(800, 600)

        self.tools = ToolPanel(
            self.root,
            on_tool=self._on_tool,
            on_complete=self._on_complete,
            on_cancel=self._on_cancel_drawing,
            on_layers_changed=self._render,
            on_export=self._on_export,
            on_import=self._on_import,
        )
        self.tools.pack(side=tk.LEFT, fill=tk.Y)

        self.form = EntityForm(
            self.root,
            on_save=self._on_form_save,
            on_cancel=self._on_form_cancel,
            on_delete=self._on_form_delete,
        )
        self.form.pack(side=tk.RIGHT, fill=tk.Y)
        self.form.pack_propagate(False)

        center = ttk.Frame(self.root)
        center.pack(side=tk.LEFT, fill=tk.BOTH, expand=True, padx=5, pady=5)
        self.summary_label = ttk.Label(center, text="", font=("", 11, "bold"))
        self.summary_label.pack(side=tk.TOP, fill=tk.X)
        self.canvas = tk.Canvas(center, bg=CANVAS_BG, highlightthickness=0)
        self.canvas.pack(side=tk.TOP, fill=tk.BOTH, expand=True)
        self.status_label = ttk.Label(center, text="", anchor="w")
        self.status_label.pack(side=tk.BOTTOM, fill=tk.X)

        self._photo = None  # prevent GC
        self._press = None  # (x, y, drag candidate id or None)
        self._dragging = False
        self._pan_from = None
        self._message = ""

        self.canvas.bind("<Configure>", self._on_canvas_configure)
        self.canvas.bind("<ButtonPress-1>", self._on_press)
        self.canvas.bind("<B1-Motion>", self._on_drag_motion)
        self.canvas.bind("<ButtonRelease-1>", self._on_release)
        self.canvas.bind("<ButtonPress-3>", self._on_pan_start)
        self.canvas.bind("<B3-Motion>", self._on_pan_motion)
        self.canvas.bind("<MouseWheel>", self._on_wheel)
        self.canvas.bind("<Button-4>", lambda e: self._zoom_at(e, ZOOM_STEP))
        self.canvas.bind("<Button-5>", lambda e: self._zoom_at(e, 1 / ZOOM_STEP))
        self.canvas.bind("<Motion>", self._on_hover)
        self.root.bind("<Escape>", lambda _e: self._on_cancel_drawing())
        self.root.bind("<Return>", lambda _e: self._on_complete())

        self.root.after(50, self._render)

    # -- rendering --

    def _render(self):
        cw = self.canvas.winfo_width()
        ch = self.canvas.winfo_height()
        if cw < 20 or ch < 20:
            return
        self.viewport.resize(cw, ch)

        r = self.router
        requests = build_overlay(r.store, r.workflow, r.drawing, self.tools.layers())
        img = render_overlay(self.viewport, requests)
        self._photo = ImageTk.PhotoImage(img)
        self.canvas.delete("all")
        self.canvas.create_image(0, 0, image=self._photo, anchor="nw")

        self.summary_label.config(text=r.store.summary())
        self.tools.sync(
            r.drawing.tool, r.drawing.can_complete, locked=r.workflow.is_open
        )
        self._update_status()

    def _update_status(self, cursor=None):
        d = self.router.drawing
        parts = [f"Tool: {d.tool or 'none'}"]
        if d.points:
            parts.append(f"{len(d.points)} point(s)")
        m = d.last_measurement
        if m is not None:
            parts.append(
                f"Measured {format_distance(m.distance_km)} at {format_bearing(m.bearing_deg)}"
            )
        if cursor is not None:
            parts.append(f"Cursor {describe_position(cursor)['mgrs']}")
        if self._message:
            parts.append(self._message)
        self.status_label.config(text="   |   ".join(parts))

    def _sync_form(self):
        wf = self.router.workflow
        if wf.is_open:
            self.form.show(wf.kind, wf.preview(), wf.form, wf.is_new)
        else:
            self.form.clear()

    # -- tools --

    def _on_tool(self, tool):
        if not self.router.select_tool(tool):
            self._message = "Save or cancel the open form first"
        else:
            self._message = ""
        self._render()

    def _on_complete(self):
        if self.router.complete_drawing():
            self._sync_form()
        self._render()

    def _on_cancel_drawing(self):
        self.router.cancel_drawing()
        self._render()

    # -- canvas events --

    def _tolerance_km(self):
        return config.HIT_TOLERANCE_PX * self.viewport.km_per_pixel()

    def _on_press(self, event):
        point = self.viewport.to_latlon(event.x, event.y)
        candidate = None
        if self.router.drawing.is_idle:
            hit = self.router.entity_at_anchor(point, self._tolerance_km())
            if hit is not None and not self.router.workflow.is_editing(hit[1]):
                candidate = hit[1]
        self._press = (event.x, event.y, candidate)
        self._dragging = False

    def _on_drag_motion(self, event):
        if self._press is None:
            return
        x0, y0, candidate = self._press
        if candidate is None:
            return
        if not self._dragging:
            if max(abs(event.x - x0), abs(event.y - y0)) < config.DRAG_THRESHOLD_PX:
                return
            self._dragging = True
        r = DRAG_GHOST_RADIUS
        self.canvas.delete("drag")
        self.canvas.create_oval(
            event.x - r,
            event.y - r,
            event.x + r,
            event.y + r,
            outline=DRAG_GHOST_COLOR,
            width=2,
            dash=(4, 2),
            tags="drag",
        )

    def _on_release(self, event):
        if self._press is None:
            return
        _, _, candidate = self._press
        point = self.viewport.to_latlon(event.x, event.y)
        self._press = None
        if self._dragging:
            self._dragging = False
            if not self.router.on_drag_end(candidate, point):
                self._message = "Move rejected"
            self._render()
            return

        outcome = self.router.on_click(point, self._tolerance_km())
        logger.debug("Click at %s -> %s", point, outcome)
        if outcome in ("staged", "opened"):
            self._message = ""
            self._sync_form()
        elif outcome == "ignored" and self.router.workflow.is_open:
            self._message = "Save or cancel the open form first"
        self._render()

    def _on_pan_start(self, event):
        self._pan_from = (event.x, event.y)

    def _on_pan_motion(self, event):
        if self._pan_from is None:
            return
        x0, y0 = self._pan_from
        self.viewport.pan(event.x - x0, event.y - y0)
        self._pan_from = (event.x, event.y)
        self._render()

    def _on_wheel(self, event):
        self._zoom_at(event, ZOOM_STEP if event.delta > 0 else 1 / ZOOM_STEP)

    def _zoom_at(self, event, factor):
        self.viewport.zoom(factor, around_px=(event.x, event.y))
        self._render()

    def _on_hover(self, event):
        self._update_status(self.viewport.to_latlon(event.x, event.y))

    def _on_canvas_configure(self, _event):
        self._render()

    # -- form actions --

    def _on_form_save(self):
        try:
            self.router.workflow.update_form(**self.form.values())
        except ValueError as e:
            messagebox.showerror("Invalid value", str(e))
            return
        try:
            saved = self.router.save()
        except ValueError as e:
            messagebox.showerror("Save failed", str(e))
            return
        if saved is None:
            self._message = "Entity no longer exists"
        else:
            self._message = f"Saved {saved.name or saved.id[:8]}"
        self.form.clear()
        self._render()

    def _on_form_cancel(self):
        self.router.cancel()
        self.form.clear()
        self._render()

    def _on_form_delete(self):
        if not messagebox.askyesno("Delete", "Delete this entity?"):
            return
        if self.router.delete():
            self.form.clear()
        self._render()

    # -- export / import --

    def _on_export(self):
        path = filedialog.asksaveasfilename(
            defaultextension=".png",
            filetypes=[("PNG files", "*.png"), ("JSON files", "*.json")],
            initialfile=f"overlay_{time.strftime('%Y-%m-%d_%H-%M-%S')}.png",
        )
        if not path:
            return
        snapshot = self.router.store.snapshot()
        try:
            if path.lower().endswith(".json"):
                save_overlay_json(snapshot, path)
            else:
                vp = Viewport(
                    *EXPORT_SIZE,
                    center=self.viewport.center,
                    meters_per_pixel=self.viewport.meters_per_pixel,
                    ref_lat=self.viewport.ref_lat,
                )
                r = self.router
                requests = build_overlay(
                    r.store, r.workflow, r.drawing, self.tools.layers()
                )
                img = render_overlay(vp, requests, supersample=4)
                save_overlay_png(img.convert("RGB"), snapshot, path)
        except OSError as e:
            messagebox.showerror("Export Error", str(e))
            return
        logger.info("Exported overlay to %s", path)

    def _on_import(self):
        if self.router.workflow.is_open:
            messagebox.showinfo("Import", "Save or cancel the open form first.")
            return
        path = filedialog.askopenfilename(
            filetypes=[
                ("Overlay files", "*.png *.json"),
                ("PNG files", "*.png"),
                ("JSON files", "*.json"),
            ],
        )
        if not path:
            return
        try:
            self.router.store.replace_all(load_overlay(path))
        except (ValueError, OSError) as e:
            messagebox.showerror("Import Error", str(e))
            return
        self.router.cancel_drawing()
        logger.info("Imported overlay from %s", path)
        self._render()

    def run(self):
        self.root.mainloop()


def main():
    config.configure_logging()
    App().run()


if __name__ == "__main__":
    main()
