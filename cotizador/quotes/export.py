# cotizador/quotes/export.py
"""PDF generation through wkhtmltopdf (pdfkit)."""

import base64
import logging
import mimetypes
import os
import re
import shutil
from datetime import datetime
from pathlib import Path

import pdfkit

from cotizador.errors import ExportError

COMMON_WKHTMLTOPDF_PATHS = ["/usr/bin/wkhtmltopdf", "/usr/local/bin/wkhtmltopdf"]

PDF_OPTIONS = {
    "page-size": "A4",
    "encoding": "UTF-8",
    "margin-top": "8mm",
    "margin-right": "8mm",
    "margin-bottom": "8mm",
    "margin-left": "8mm",
    "quiet": "",
}


def safe_filename(s: str) -> str:
    s = (s or "").strip()
    s = re.sub(r"\s+", "_", s)
    s = re.sub(r"[^A-Za-z0-9._-]", "", s)
    return s or "cotizacion"


def asset_data_uri(path: str | os.PathLike | None) -> str:
    """Inline an image file as a ``data:`` URI; missing files give ''."""
    if not path or not os.path.isfile(path):
        return ""
    mime = mimetypes.guess_type(str(path))[0] or "application/octet-stream"
    with open(path, "rb") as fh:
        payload = base64.b64encode(fh.read()).decode("ascii")
    return f"data:{mime};base64,{payload}"


class PdfExporter:
    """Writes an HTML document to a PDF file under ``export_dir``."""

    def __init__(self, export_dir: str | os.PathLike, wkhtmltopdf: str | None = None) -> None:
        self.export_dir = Path(export_dir)
        self.wkhtmltopdf = wkhtmltopdf

    def _configuration(self):
        """
        Locate wkhtmltopdf:
          1) explicit path (WKHTMLTOPDF_PATH)
          2) `which wkhtmltopdf`
          3) common install locations
        """
        if self.wkhtmltopdf and os.path.exists(self.wkhtmltopdf):
            return pdfkit.configuration(wkhtmltopdf=self.wkhtmltopdf)

        which_path = shutil.which("wkhtmltopdf")
        if which_path:
            return pdfkit.configuration(wkhtmltopdf=which_path)

        for p in COMMON_WKHTMLTOPDF_PATHS:
            if os.path.exists(p):
                return pdfkit.configuration(wkhtmltopdf=p)

        raise ExportError("wkhtmltopdf no está instalado en el entorno.")

    def filename_for(self, reference: str, when: datetime | None = None) -> str:
        stamp = (when or datetime.now()).strftime("%Y%m%d_%H%M%S")
        return f"{stamp}_Cotizacion_{safe_filename(reference)}.pdf"

    def export(self, html: str, filename: str) -> Path:
        """Render ``html`` into ``export_dir/filename`` and return the path."""
        target = self.export_dir / filename
        try:
            self.export_dir.mkdir(parents=True, exist_ok=True)
            pdfkit.from_string(
                html,
                str(target),
                configuration=self._configuration(),
                options=PDF_OPTIONS,
            )
        except ExportError:
            raise
        except Exception as e:
            logging.exception("pdf export failed: %s", e)
            raise ExportError(str(e) or "Intenta de nuevo") from e
        logging.info("pdf exported to %s", target)
        return target
