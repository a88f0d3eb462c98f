"""Verovio-based HTML rendering of reduced scores."""

from __future__ import annotations

import html
import logging
from pathlib import Path
from typing import cast

from orchreduce.musicxml_exporter import MusicXmlExporter
from orchreduce.staves import StaveCollection

logger = logging.getLogger(__name__)


class VerovioHtmlRenderer:
    """Render MusicXML bytes into a self-contained HTML document with inline SVG."""

    # Verovio A4 layout constants (verovio abstract units; ~1 unit ≈ 0.1 mm)
    _PAGE_HEIGHT: int = 2970  # A4 portrait height
    _PAGE_WIDTH: int = 2100  # A4 portrait width
    _PAGE_MARGIN: int = 100  # uniform margin on all four sides
    _MAX_SCALE: int = 40  # a grand staff fits A4 comfortably at 40%
    _MIN_SCALE: int = 25

    def scale_for(self, staves: int) -> int:
        """Verovio zoom for a system of ``staves`` staves; taller systems are drawn smaller."""
        if staves <= 2:
            return self._MAX_SCALE
        return max(self._MIN_SCALE, self._MAX_SCALE - 5 * (staves - 2))

    def render(self, *, title: str, musicxml_bytes: bytes, staves: int = 2) -> str:
        svgs = self.render_svgs(musicxml_bytes, staves=staves)
        return self.build_html(title, svgs, subtitle=f"Reduction for {staves} stave(s)")

    def render_svgs(self, musicxml_bytes: bytes, staves: int = 2) -> list[str]:
        """
        Render a MusicXML document to a list of SVG strings via verovio.

        Raises:
            ValueError: If verovio cannot load the MusicXML data.
        """
        import verovio

        tk = verovio.toolkit()
        tk.setOptions(
            {
                "pageHeight": self._PAGE_HEIGHT,
                "pageWidth": self._PAGE_WIDTH,
                "scale": self.scale_for(staves),
                "pageMarginTop": self._PAGE_MARGIN,
                "pageMarginBottom": self._PAGE_MARGIN,
                "pageMarginLeft": self._PAGE_MARGIN,
                "pageMarginRight": self._PAGE_MARGIN,
                "adjustPageHeight": True,
                "breaks": "auto",
                "font": "Leipzig",
            }
        )

        loaded: bool = tk.loadData(musicxml_bytes.decode("utf-8"))
        if not loaded:
            raise ValueError("verovio could not load the MusicXML data.")

        page_count: int = tk.getPageCount()
        logger.debug("verovio laid out %d page(s)", page_count)
        # verovio >= 4 takes the page number positionally
        return [cast(str, tk.renderToSVG(page_no)) for page_no in range(1, page_count + 1)]

    def build_html(self, title: str, svgs: list[str], subtitle: str = "") -> str:
        """
        Wrap rendered pages in a self-contained HTML document.

        Each SVG gets a numbered ``<section class="page">``. The header holds
        the title and subtitle when given. Printing uses A4 sheets, one page
        per sheet, matching the layout verovio was asked for.
        """
        total = len(svgs)
        header_lines = []
        if title:
            header_lines.append(f"    <h1>{html.escape(title)}</h1>")
        if subtitle:
            header_lines.append(f'    <p class="subtitle">{html.escape(subtitle)}</p>')
        header = "  <header>\n" + "\n".join(header_lines) + "\n  </header>\n" if header_lines else ""
        pages = "\n".join(
            f'  <section class="page" id="page-{number}">\n'
            f"    {svg}\n"
            f'    <p class="page-number">{number} / {total}</p>\n'
            f"  </section>"
            for number, svg in enumerate(svgs, start=1)
        )

        return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>{html.escape(title)}</title>
  <style>
    :root {{
      --sheet-width: 210mm;
      --ink: #1b1b1b;
      --desk: #dcdcd6;
    }}
    body {{
      margin: 0;
      padding: 1.5rem 0;
      background: var(--desk);
      color: var(--ink);
      font-family: "Times New Roman", serif;
    }}
    header {{
      width: var(--sheet-width);
      margin: 0 auto 1rem;
      text-align: center;
    }}
    header h1 {{ margin: 0; font-size: 1.5rem; }}
    header .subtitle {{ margin: 0.25rem 0 0; font-style: italic; }}
    .page {{
      width: var(--sheet-width);
      margin: 0 auto 1.5rem;
      background: #fff;
      border: 1px solid #b8b8b0;
    }}
    .page svg {{ display: block; width: 100%; height: auto; }}
    .page-number {{ margin: 0; padding: 0 0 0.5rem; text-align: center; font-size: 0.8rem; }}
    @page {{ size: A4; margin: 0; }}
    @media print {{
      body {{ padding: 0; background: #fff; }}
      header {{ margin-bottom: 0; }}
      .page {{ border: none; margin: 0; page-break-after: always; }}
      .page:last-of-type {{ page-break-after: auto; }}
    }}
  </style>
</head>
<body>
{header}{pages}
</body>
</html>"""


class HtmlExporter:
    """Write a StaveCollection as printable HTML: music21 MusicXML, then verovio SVG."""

    def __init__(self, title: str = "", part_name: str = "Piano") -> None:
        self.title = title
        self.musicxml = MusicXmlExporter(title=title, part_name=part_name)
        self.renderer = VerovioHtmlRenderer()

    def export(self, collection: StaveCollection, output_path: str | Path) -> None:
        """
        Raises:
            ValueError: If verovio cannot render the generated MusicXML.
            OSError: If the output file cannot be written.
        """
        content = self.renderer.render(
            title=self.title,
            musicxml_bytes=self.musicxml.to_musicxml(collection),
            staves=collection.num_staves,
        )
        with open(output_path, "w", encoding="utf-8") as fh:
            fh.write(content)
