# app/trade/render.py
from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Sequence

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

LEFT_MM = 20
TOP_MM = 20
BOTTOM_MM = 20


@dataclass(frozen=True)
class Line:
    text: str
    advance: float = 10  # mm moved down before drawing
    size: int = 12
    indent: float = LEFT_MM
    bold: bool = False


def render_pdf(lines: Sequence[Line], title: str = "") -> bytes:
    """Lay lines out top to bottom on A4, starting a new page at the bottom margin."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    if title:
        c.setTitle(title)

    _, page_h = A4
    usable_mm = page_h / mm - BOTTOM_MM
    y = 0.0
    for line in lines:
        y += line.advance
        if y > usable_mm:
            c.showPage()
            y = TOP_MM
        c.setFont("Helvetica-Bold" if line.bold else "Helvetica", line.size)
        c.drawString(line.indent * mm, page_h - y * mm, line.text)

    c.showPage()
    c.save()
    return buf.getvalue()
