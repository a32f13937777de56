from __future__ import annotations

from typing import TYPE_CHECKING

from .config import PrinterConfig, RenderingConfig

if TYPE_CHECKING:
    from .slicer import Layer


def render_layer(
    layer: "Layer",
    printer: PrinterConfig,
    rendering: RenderingConfig,
    output_path: str | None = None,
) -> None:
    try:
        import matplotlib.pyplot as plt
    except Exception as exc:  # pragma: no cover - matplotlib import guard
        raise RuntimeError("Matplotlib is required for preview rendering") from exc

    fig, ax = plt.subplots()
    ax.set_aspect("equal", adjustable="box")
    ax.set_facecolor("white")
    ax.set_xlim(0, printer.bed_width)
    ax.set_ylim(0, printer.bed_depth)
    ax.set_title(f"Layer {layer.index} (Z={layer.z:.2f} mm) - {printer.name}")
    ax.set_xlabel("X (mm)")
    ax.set_ylabel("Y (mm)")

    # Bed outline.
    boundary_x = [0, printer.bed_width, printer.bed_width, 0, 0]
    boundary_y = [0, 0, printer.bed_depth, printer.bed_depth, 0]
    ax.plot(boundary_x, boundary_y, color="grey", linewidth=0.5, linestyle="--")

    seams = []
    for contour in layer.contours:
        points = contour.xy()
        if len(points) < 2:
            continue
        xs, ys = zip(*points)
        ax.plot(xs, ys, color="black", linewidth=rendering.line_width)
        # First extrusion direction from the travel target.
        ax.annotate(
            "",
            xy=points[1],
            xytext=points[0],
            arrowprops={"arrowstyle": "->", "color": "tab:blue", "linewidth": 0.6},
        )
        seams.append(points[0])

    if seams:
        seam_x, seam_y = zip(*seams)
        ax.scatter(seam_x, seam_y, s=12, color="tab:red", zorder=3, label="Seam")
        ax.legend(loc="upper right", fontsize="small")

    ax.set_axisbelow(True)
    ax.grid(True, which="both", linestyle=":", linewidth=0.3, color="#dddddd")

    if output_path:
        fig.savefig(output_path, dpi=150, facecolor="white", bbox_inches="tight")
        plt.close(fig)
    else:
        try:
            plt.show()
        except Exception:  # pragma: no cover - fallback for headless envs
            fig.savefig("layer_preview.png", dpi=150, facecolor="white", bbox_inches="tight")
            plt.close(fig)
