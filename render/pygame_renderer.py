"""Pygame viewer: top-down block height map that integrates results on the main thread."""

from __future__ import annotations

import numpy as np

from config_io.config import Config
from config_io.schema import BlockDescriptor
from render.palettes import (
    height_colors,
    HUD_BG, HUD_TEXT, HUD_BAR_BG,
    BAR_PROGRESS, BAR_INTEGRATED, TEXT_WARN,
)
from world.builder import BuildReport
from world.grid import WorldGrid
from world.sink import SerialSink

# Lazy import pygame so headless works
_pygame = None

MAX_MAP_PX = 900


def _pg():
    global _pygame
    if _pygame is None:
        import pygame
        _pygame = pygame
    return _pygame


class PygameRenderer:
    """Owns the world on the pygame thread and draws it as it fills in.

    Workers only ever reach the world through :attr:`sink`; the render loop
    drains it each frame, so every insert happens on this thread.
    """

    def __init__(self, config: Config, grid_size: int):
        pg = _pg()
        pg.init()

        self.config = config
        self.grid_size = grid_size
        self.fps = config.render.fps
        self.drain_budget = config.render.drain_budget
        self.hud_width = config.render.hud_width
        self.out_min, self.out_max = config.elevation.output_range

        self.world = WorldGrid()
        self.sink = SerialSink(self.integrate)
        self._heights = np.zeros((grid_size, grid_size), dtype=np.int32)
        self._empty = np.ones((grid_size, grid_size), dtype=bool)
        self._dirty = True

        side = max(grid_size, 1)
        self.cell_size = max(1, min(config.render.cell_size, MAX_MAP_PX // side))
        self.map_px = min(side * self.cell_size, MAX_MAP_PX)
        self.screen_w = self.map_px + self.hud_width
        self.screen_h = max(self.map_px, 200)

        self.screen = pg.display.set_mode((self.screen_w, self.screen_h))
        pg.display.set_caption("Topoblock")
        self.clock = pg.time.Clock()
        self.font = pg.font.SysFont("monospace", 14)
        self.font_small = pg.font.SysFont("monospace", 11)
        self._map_surface = None

    # ── Sink consumer (runs on this thread via drain) ─────────────────

    def integrate(self, block: BlockDescriptor) -> None:
        self.world.insert(block)
        self._heights[block.grid_y, block.grid_x] = block.height
        self._empty[block.grid_y, block.grid_x] = False
        self._dirty = True

    # ── Loop ──────────────────────────────────────────────────────────

    def handle_events(self) -> bool:
        """Process pygame events. Returns False if quit requested."""
        pg = _pg()
        for event in pg.event.get():
            if event.type == pg.QUIT:
                return False
            if event.type == pg.KEYDOWN and event.key == pg.K_ESCAPE:
                return False
        return True

    def run(self, report: BuildReport) -> None:
        """Drain and draw until the window is closed."""
        try:
            while self.handle_events():
                self.sink.drain(self.drain_budget)
                self.render(report)
        finally:
            if not report.done:
                report.cancel()
                # units already running still hand over descriptors
                while not report.wait(0.05):
                    self.sink.drain()
            self.close()

    def render(self, report: BuildReport) -> None:
        """Render one frame."""
        pg = _pg()
        self.screen.fill((0, 0, 0))
        self._draw_map()
        self._draw_hud(report)
        pg.display.flip()
        self.clock.tick(self.fps)

    def _draw_map(self) -> None:
        pg = _pg()
        if self.grid_size == 0:
            return
        if self._dirty or self._map_surface is None:
            rgb = height_colors(self._heights, self.out_min, self.out_max, empty=self._empty)
            # surfarray is indexed [x, y]
            raw = pg.surfarray.make_surface(np.ascontiguousarray(rgb.transpose(1, 0, 2)))
            self._map_surface = pg.transform.scale(raw, (self.map_px, self.map_px))
            self._dirty = False
        self.screen.blit(self._map_surface, (0, 0))

    def _draw_hud(self, report: BuildReport) -> None:
        pg = _pg()
        hx = self.map_px
        pg.draw.rect(self.screen, HUD_BG, (hx, 0, self.hud_width, self.screen_h))

        y = 10
        title = self.font.render("TOPOBLOCK", True, HUD_TEXT)
        self.screen.blit(title, (hx + 10, y))
        y += 26

        total = max(report.total, 1)
        for label, value, color in (
            ("Sampled", report.completed, BAR_PROGRESS),
            ("Placed", report.integrated, BAR_INTEGRATED),
        ):
            self.screen.blit(self.font_small.render(f"{label}: {value}/{report.total}", True, HUD_TEXT), (hx + 10, y))
            y += 15
            bar_w = self.hud_width - 20
            pg.draw.rect(self.screen, HUD_BAR_BG, (hx + 10, y, bar_w, 8))
            pg.draw.rect(self.screen, color, (hx + 10, y, int(bar_w * value / total), 8))
            y += 16

        lines = [
            f"Grid: {self.grid_size}x{self.grid_size}",
            f"Queued: {self.sink.pending}",
            f"Elapsed: {report.elapsed:.1f}s",
            f"FPS: {self.clock.get_fps():.0f}",
            "Status: " + ("done" if report.done else "building"),
        ]
        for line in lines:
            self.screen.blit(self.font_small.render(line, True, HUD_TEXT), (hx + 10, y))
            y += 15

        if report.failures or report.cancelled:
            warn = f"Failed: {len(report.failures)}  Cancelled: {report.cancelled}"
            self.screen.blit(self.font_small.render(warn, True, TEXT_WARN), (hx + 10, y))

    def close(self) -> None:
        _pg().quit()
