from __future__ import annotations

import io
from typing import List

import matplotlib
matplotlib.use("Agg")  # servidor sin UI
import matplotlib.pyplot as plt

# Paleta fija: la misma letra siempre da el mismo color
PALETA: List[str] = [
    "#e57373", "#f06292", "#ba68c8", "#9575cd", "#7986cb",
    "#64b5f6", "#4fc3f7", "#4dd0e1", "#4db6ac", "#81c784",
    "#aed581", "#ff8a65", "#d4e157", "#ffd54f", "#ffb74d",
    "#a1887f", "#90a4ae",
]


class AvatarService:
    def color_for(self, letter: str) -> str:
        letter = (letter or "?")[:1].upper()
        return PALETA[ord(letter) % len(PALETA)]

    def render_png(self, letter: str, width: int = 100, height: int = 100) -> bytes:
        letter = (letter or "?")[:1].upper()
        dpi = 100
        fig_w = max(0.1, float(width) / dpi)
        fig_h = max(0.1, float(height) / dpi)

        fig = plt.figure(figsize=(fig_w, fig_h), dpi=dpi)
        fig.patch.set_facecolor(self.color_for(letter))
        ax = fig.add_axes([0, 0, 1, 1])
        ax.set_axis_off()

        # media altura de la imagen, en puntos
        font_pt = height * 0.5 * 72.0 / dpi
        ax.text(
            0.5, 0.5, letter,
            ha="center", va="center",
            color="white", fontsize=font_pt, fontweight="bold",
            transform=ax.transAxes,
        )

        buf = io.BytesIO()
        fig.savefig(buf, format="png", dpi=dpi, facecolor=fig.get_facecolor())
        plt.close(fig)
        return buf.getvalue()
