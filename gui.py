import tkinter as tk
from tkinter import messagebox
import logging

import ttkbootstrap as ttk
from PIL import ImageTk

import config
from gestures import PressGesture
from preset_store import JsonFileStorage, PresetStore
from preview import ThumbnailCache, grid_to_image, preset_thumbnail
from reconciler import TABS
from remote_client import RemoteSettingsClient
from scheduler import ThreadedRunner, TkScheduler
from session import ReconcilerSession

logger = logging.getLogger("sparkle_matrix.gui")

PREVIEW_SCALE = 6  # screen pixels per matrix cell
THUMBNAIL_SCALE = 1
SWATCH_SIZE = 56
INACTIVE_DIM = 0.15  # brightness of a switched-off swatch

SLIDERS = (
    # (field, label, min, max, inverted)
    ("num_sparkles", "Number", config.NUM_SPARKLES_MIN, config.NUM_SPARKLES_MAX, False),
    ("sparkle_size", "Size", config.SPARKLE_SIZE_MIN, config.SPARKLE_SIZE_MAX, False),
    ("speed", "Speed", config.SPEED_MIN, config.SPEED_MAX, True),
)


def slider_to_value(position, low, high, inverted):
    """Sliders read "right = more"; speed is an interval, so it is flipped."""
    position = int(round(float(position)))
    return low + high - position if inverted else position


def _hex(rgb_int, dim=1.0):
    r = int(((rgb_int >> 16) & 0xFF) * dim)
    g = int(((rgb_int >> 8) & 0xFF) * dim)
    b = int((rgb_int & 0xFF) * dim)
    return f"#{r:02x}{g:02x}{b:02x}"


class SparkleController:
    """Main application window."""

    def __init__(self, root, settings):
        self.root = root
        self.root.title("Sparkle Matrix Controller")
        self.root.geometry("460x820")
        self.root.minsize(420, 760)

        self.settings = settings
        self.scheduler = TkScheduler(root)

        self.store = PresetStore(JsonFileStorage(settings["presets_file"]))
        self.client = RemoteSettingsClient(settings["api_url"], settings["api_key"])
        self.session = ReconcilerSession(
            self.store,
            self.client,
            self.scheduler,
            runner=ThreadedRunner(root),
            confirm=self._confirm_delete,
            on_frame=self._draw_grid,
        )
        self.gesture = PressGesture(
            self.scheduler,
            on_click=self.session.select_preset,
            on_long_press=self.session.long_press_preset,
        )

        # Tk images must stay referenced or they are garbage collected
        self._preview_photo = None
        self._thumbnails = ThumbnailCache(
            lambda preset: ImageTk.PhotoImage(preset_thumbnail(preset, THUMBNAIL_SCALE))
        )
        self._shown_presets = None
        self._syncing = False

        self.create_ui()
        self.session.add_listener(self._on_state_changed)
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)

        self.session.start()
        self._on_state_changed(self.session.state)

    def create_ui(self):
        """Build the user interface."""

        # ===== Preview =====
        self.preview_label = ttk.Label(self.root)
        self.preview_label.pack(pady=(15, 5))

        # ===== Tabs =====
        self.notebook = ttk.Notebook(self.root, bootstyle="dark")
        self.notebook.pack(fill="both", expand=True, padx=15, pady=5)
        self.notebook.bind("<<NotebookTabChanged>>", self._on_tab_changed)

        self.colors_tab = ttk.Frame(self.notebook, padding=10)
        self.values_tab = ttk.Frame(self.notebook, padding=10)
        self.presets_tab = ttk.Frame(self.notebook, padding=10)
        for frame, tab in zip((self.colors_tab, self.values_tab, self.presets_tab), TABS):
            self.notebook.add(frame, text=tab.capitalize())

        # Colors: 3 rows of 4 swatches
        self.swatches = []
        for index, color in enumerate(config.PALETTE):
            swatch = tk.Canvas(
                self.colors_tab,
                width=SWATCH_SIZE,
                height=SWATCH_SIZE,
                highlightthickness=0,
                bg=_hex(color),
                cursor="hand2",
            )
            swatch.grid(row=index // 4, column=index % 4, padx=6, pady=6)
            swatch.bind("<Button-1>", lambda event, i=index: self.session.toggle_color(i))
            self.swatches.append(swatch)

        # Values: one slider per field
        self.slider_vars = {}
        for row, (field, text, low, high, inverted) in enumerate(SLIDERS):
            ttk.Label(self.values_tab, text=text, width=8).grid(
                row=row, column=0, sticky="w", pady=12
            )
            var = tk.DoubleVar()
            scale = ttk.Scale(
                self.values_tab,
                from_=low,
                to=high,
                variable=var,
                command=lambda position, f=field, lo=low, hi=high, inv=inverted: (
                    self._on_slider(f, position, lo, hi, inv)
                ),
            )
            scale.grid(row=row, column=1, sticky="ew", padx=5)
            self.slider_vars[field] = (var, low, high, inverted)
        self.values_tab.columnconfigure(1, weight=1)

        # Presets: rebuilt whenever the preset list changes
        self.presets_frame = ttk.Frame(self.presets_tab)
        self.presets_frame.pack(fill="both", expand=True)

        # ===== Primary button =====
        self.primary_button = ttk.Button(
            self.root,
            text="Loading...",
            command=self.session.press_primary,
            bootstyle="info",
        )
        self.primary_button.pack(fill="x", padx=15, pady=10)

        # ===== Status bar =====
        if self.client.has_api_key:
            status_text = f"Device: {self.client.base_url}"
        else:
            status_text = "No API key - device sync disabled"
        self.status_bar = ttk.Label(self.root, text=status_text, bootstyle="secondary")
        self.status_bar.pack(fill="x", padx=15, pady=(0, 10))

    # ===== Rendering =====

    def _draw_grid(self, grid):
        self._preview_photo = ImageTk.PhotoImage(grid_to_image(grid, PREVIEW_SCALE))
        self.preview_label.config(image=self._preview_photo)

    def _on_state_changed(self, state):
        configuration = state.configuration

        for index, swatch in enumerate(self.swatches):
            dim = 1.0 if configuration.active_colors[index] else INACTIVE_DIM
            swatch.config(bg=_hex(config.PALETTE[index], dim))

        self._syncing = True
        try:
            for field, (var, low, high, inverted) in self.slider_vars.items():
                value = getattr(configuration, field)
                var.set(low + high - value if inverted else value)
        finally:
            self._syncing = False

        if state.presets != self._shown_presets:
            self._rebuild_presets(state.presets)
        self._highlight_selection(state.selected_preset_id)

        self.primary_button.config(
            text=state.label,
            state="normal" if state.button_enabled else "disabled",
        )

    def _rebuild_presets(self, presets):
        for child in self.presets_frame.winfo_children():
            child.destroy()
        self._shown_presets = presets
        self._thumbnails.retain(presets)
        self.preset_tiles = {}

        if not presets:
            ttk.Label(
                self.presets_frame,
                text="When you save presets, they'll show up here.",
                bootstyle="secondary",
            ).pack(pady=30)
            return

        for index, preset in enumerate(presets):
            tile = ttk.Label(
                self.presets_frame,
                text=preset.name,
                image=self._thumbnails.get(preset),
                compound="top",
                padding=6,
                cursor="hand2",
            )
            tile.grid(row=index // 4, column=index % 4, padx=4, pady=4)
            tile.bind("<ButtonPress-1>", lambda event, pid=preset.id: self.gesture.press_start(pid))
            tile.bind("<ButtonRelease-1>", lambda event: self.gesture.press_end())
            tile.bind("<Leave>", lambda event: self.gesture.press_cancel())
            self.preset_tiles[preset.id] = tile

    def _highlight_selection(self, selected_id):
        for preset_id, tile in getattr(self, "preset_tiles", {}).items():
            tile.config(bootstyle="inverse-info" if preset_id == selected_id else "default")

    # ===== Events =====

    def _on_tab_changed(self, event):
        index = self.notebook.index(self.notebook.select())
        self.session.change_tab(TABS[index])

    def _on_slider(self, field, position, low, high, inverted):
        if self._syncing:
            return
        self.session.change_value(field, slider_to_value(position, low, high, inverted))

    def _confirm_delete(self, preset):
        return messagebox.askyesno("Confirm", f"Delete preset '{preset.name}'?")

    def _on_close(self):
        self.session.close()
        self.root.destroy()
