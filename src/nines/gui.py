import logging
import threading
from typing import Optional

import tkinter as tk
from tkinter import messagebox, scrolledtext, ttk

from .drawing import PEN_COLOR, Drawing
from .exceptions import ModelLoadError
from .game import GameState
from .pipeline import CheckResult, NinesPipeline

logger = logging.getLogger(__name__)


class App(tk.Tk):
    def __init__(self, pipeline: NinesPipeline, game: Optional[GameState] = None):
        super().__init__()
        self.title("Nines")
        self.geometry("1100x700")

        self.pipeline = pipeline
        self.game = game or GameState()
        self.drawing = Drawing()
        self.canvas_width = 1000
        self.canvas_height = 480
        self.model_failed = False
        # Bumped on every clear so results of abandoned passes are dropped.
        self._generation = 0
        self._pan_last: Optional[tuple] = None

        self._build_ui()
        self._bind_events()
        self._refresh_target()

    def _build_ui(self):
        container = ttk.Frame(self)
        container.pack(fill=tk.BOTH, expand=True, padx=10, pady=10)

        header = ttk.Frame(container)
        header.pack(fill=tk.X, pady=(0, 8))
        self.target_var = tk.StringVar()
        ttk.Label(header, textvariable=self.target_var, font=("Segoe UI", 16, "bold")).pack(side=tk.LEFT)
        self.btn_check = ttk.Button(header, text="Check", command=self.on_check)
        self.btn_check.pack(side=tk.RIGHT)
        ttk.Button(header, text="New Target", command=self.new_target).pack(side=tk.RIGHT, padx=(0, 8))
        ttk.Button(header, text="Clear", command=self.clear_canvas).pack(side=tk.RIGHT, padx=(0, 8))

        self.canvas = tk.Canvas(container, bg="white", width=self.canvas_width, height=self.canvas_height,
                                highlightthickness=1, highlightbackground="#ccc", cursor="pencil")
        self.canvas.pack(fill=tk.BOTH, expand=True)
        self.canvas.bind("<Configure>", self._on_canvas_resize)

        ttk.Label(container, text="Left button draws, right button pans, wheel zooms.").pack(anchor=tk.W, pady=(4, 4))

        self.result_text = scrolledtext.ScrolledText(container, height=8)
        self.result_text.pack(fill=tk.X)

        self.status_var = tk.StringVar(value="Ready")
        status = ttk.Label(self, textvariable=self.status_var, anchor=tk.W, relief=tk.SUNKEN)
        status.pack(fill=tk.X, side=tk.BOTTOM)

    def _bind_events(self):
        self.canvas.bind("<ButtonPress-1>", self._on_press)
        self.canvas.bind("<B1-Motion>", self._on_drag)
        self.canvas.bind("<ButtonRelease-1>", self._on_release)
        self.canvas.bind("<ButtonPress-3>", self._on_pan_start)
        self.canvas.bind("<B3-Motion>", self._on_pan)
        self.canvas.bind("<ButtonRelease-3>", self._on_pan_end)
        self.canvas.bind("<Leave>", self._on_leave)
        self.canvas.bind("<MouseWheel>", self._on_wheel)
        # X11 reports wheel steps as buttons 4 and 5.
        self.canvas.bind("<Button-4>", lambda e: self._zoom(e, 1))
        self.canvas.bind("<Button-5>", lambda e: self._zoom(e, -1))

    def _on_canvas_resize(self, event):
        self.canvas_width = max(1, int(event.width))
        self.canvas_height = max(1, int(event.height))

    def _on_press(self, event):
        if self._pan_last is not None:
            return
        self.drawing.begin_stroke(event.x, event.y)

    def _on_drag(self, event):
        segment = self.drawing.extend_stroke(event.x, event.y)
        if segment is None:
            return
        (x0, y0), (x1, y1) = segment
        width = max(1, round(self.drawing.stroke_width * self.drawing.zoom))
        self.canvas.create_line(x0, y0, x1, y1, fill="black", width=width, capstyle=tk.ROUND, smooth=True)

    def _on_release(self, _event):
        self.drawing.end_stroke()

    def _on_pan_start(self, event):
        self._pan_last = (event.x, event.y)
        self.canvas.config(cursor="fleur")

    def _on_pan(self, event):
        if self._pan_last is None:
            return
        self.drawing.pan_by(event.x - self._pan_last[0], event.y - self._pan_last[1])
        self._pan_last = (event.x, event.y)
        self._redraw()

    def _on_pan_end(self, _event):
        self._pan_last = None
        self.canvas.config(cursor="pencil")

    def _on_leave(self, event):
        self._on_release(event)
        self._on_pan_end(event)

    def _on_wheel(self, event):
        self._zoom(event, 1 if event.delta > 0 else -1)

    def _zoom(self, event, direction: int):
        self.drawing.zoom_at(event.x, event.y, direction)
        self._redraw()
        self._set_status(f"Zoom {self.drawing.zoom:.2f}x")

    def _redraw(self):
        self.canvas.delete("all")
        width = max(1, round(self.drawing.stroke_width * self.drawing.zoom))
        color = "#%02x%02x%02x" % PEN_COLOR[:3]
        for stroke in self.drawing.strokes:
            if len(stroke) < 2:
                continue
            coords = []
            for px, py in stroke:
                coords.extend(self.drawing.world_to_screen(px, py))
            self.canvas.create_line(*coords, fill=color, width=width, capstyle=tk.ROUND, smooth=True)

    def clear_canvas(self):
        self._generation += 1
        self.drawing.clear()
        self.canvas.delete("all")
        self.result_text.delete("1.0", tk.END)
        self._set_status("Ready")

    def new_target(self):
        self.game.new_target()
        self._refresh_target()

    def _refresh_target(self):
        self.target_var.set(f"Target: {self.game.target}    Solved: {len(self.game.achieved)}/100")

    def on_check(self):
        if self.model_failed:
            messagebox.showerror("Model Missing", "The symbol classifier could not be loaded.")
            return
        snapshot = self.drawing.render(self.canvas_width, self.canvas_height)
        target = self.game.target
        generation = self._generation
        self.btn_check.state(["disabled"])
        self._set_status("Processing...")
        # Run in a worker thread to keep UI responsive
        threading.Thread(target=self._check_worker, args=(snapshot, target, generation), daemon=True).start()

    def _check_worker(self, snapshot, target, generation):
        try:
            outcome = self.pipeline.run_check(snapshot, target)
        except ModelLoadError as e:
            self.after(0, self._on_model_error, e)
            return
        except Exception as e:
            logger.exception("Unexpected failure while checking drawing")
            self.after(0, self._on_error, e)
            return
        self.after(0, self._on_checked, outcome, target, generation)

    def _on_checked(self, outcome: CheckResult, target: int, generation: int):
        self.btn_check.state(["!disabled"])
        if generation != self._generation:
            self._set_status("Ready")
            return
        self.game.record(outcome.expression, outcome.result, target=target)
        self._write_results(outcome)
        self._refresh_target()
        self._set_status(outcome.result.message)

    def _on_model_error(self, error):
        self.btn_check.state(["!disabled"])
        self.model_failed = True
        self._set_status("Model not found")
        messagebox.showerror("Model Missing", str(error))

    def _on_error(self, error):
        self.btn_check.state(["!disabled"])
        self._set_status("Error")
        messagebox.showerror("Error", str(error))

    def _set_status(self, text: str):
        self.status_var.set(text)

    def _write_results(self, outcome: CheckResult):
        self.result_text.delete("1.0", tk.END)
        pretty_expr = outcome.expression if outcome.expression else "<nothing recognised>"
        self.result_text.insert(tk.END, f"RECOGNIZED EXPRESSION: {pretty_expr}\n")
        self.result_text.insert(tk.END, "=" * 60 + "\n")
        if outcome.recognition:
            for i, symbol in enumerate(outcome.recognition.symbols, 1):
                self.result_text.insert(tk.END, f"Symbol {i}: {symbol.symbol} ({symbol.confidence:.3f})\n")
        self.result_text.insert(tk.END, f"\n{outcome.result.message}\n")


def run(pipeline: NinesPipeline, game: Optional[GameState] = None):
    app = App(pipeline, game)
    app.mainloop()
