# stringart/render.py
from pathlib import Path
from typing import Optional

import imageio.v2 as imageio
import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
from matplotlib.collections import LineCollection  # noqa: E402

from stringart.generator import StringArtResult  # noqa: E402


def draw_string_art(ax, result: StringArtResult, line_color="black", line_width=0.5,
                    max_lines: Optional[int] = None, alpha=1.0, show_pegs=False):
    """Draws the first max_lines threads (all of them by default) onto ax."""
    size = result.frame_size
    n = result.line_count if max_lines is None else max(0, min(result.line_count, max_lines))

    segments = [((p.x, p.y), (q.x, q.y)) for p, q in list(result.segments())[:n]]
    ax.add_collection(LineCollection(segments, colors=line_color,
                                     linewidths=line_width, alpha=alpha,
                                     capstyle="round"))
    if show_pegs:
        ax.scatter([p.x for p in result.pegs], [p.y for p in result.pegs],
                   s=4, c="tab:red", zorder=3)

    # image coordinates: origin top-left, y pointing down
    ax.set_xlim(0, size)
    ax.set_ylim(size, 0)
    ax.set_aspect("equal")
    ax.axis("off")
    return ax


def render_result(result: StringArtResult, png_path: str, dpi=300,
                  max_lines: Optional[int] = None, line_width=0.5) -> str:
    Path(png_path).parent.mkdir(parents=True, exist_ok=True)
    fig = plt.figure(figsize=(8, 8), facecolor="white")
    ax = fig.add_axes([0, 0, 1, 1])
    draw_string_art(ax, result, line_width=line_width, max_lines=max_lines)
    fig.savefig(png_path, dpi=dpi, facecolor="white", pad_inches=0)
    plt.close(fig)
    return str(png_path)


def render_frame(result: StringArtResult, max_lines: Optional[int] = None,
                 size_px=400, line_width=0.5) -> np.ndarray:
    """RGB uint8 frame of size_px x size_px."""
    dpi = 100
    fig = plt.figure(figsize=(size_px / dpi, size_px / dpi), dpi=dpi, facecolor="white")
    ax = fig.add_axes([0, 0, 1, 1])
    draw_string_art(ax, result, line_width=line_width, max_lines=max_lines)
    fig.canvas.draw()
    frame = np.asarray(fig.canvas.buffer_rgba())[:, :, :3].copy()
    plt.close(fig)
    return frame


def iter_timelapse_frames(result: StringArtResult, snapshot_every=25, size_px=400):
    """Blank frame, one every snapshot_every lines, and the finished piece."""
    total = result.line_count
    counts = list(range(0, total, snapshot_every)) if snapshot_every > 0 else [0]
    counts.append(total)
    for n in counts:
        yield render_frame(result, max_lines=n, size_px=size_px)


def make_timelapse(result: StringArtResult, out_path: str, snapshot_every=25,
                   fps=30, size_px=400) -> str:
    """Writes an mp4 (needs imageio-ffmpeg) or gif depending on the suffix."""
    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    frames = iter_timelapse_frames(result, snapshot_every=snapshot_every, size_px=size_px)

    if str(out_path).lower().endswith(".gif"):
        imageio.mimsave(out_path, list(frames), duration=1000 / fps, loop=0)
        return str(out_path)

    writer = imageio.get_writer(str(out_path), format="FFMPEG", fps=fps,
                                codec="libx264", quality=8)
    try:
        for im in frames:
            writer.append_data(im)
    finally:
        writer.close()
    return str(out_path)
