"""Best-effort persistence of the structured document."""

from datetime import datetime
from pathlib import Path

from ..config import get_xml_output_dir
from ..logging_config import get_logger

logger = get_logger(__name__, namespace='analysis')


def persist_xml(document: str, out_dir: Path | None = None) -> str | None:
    """Write the document to <out_dir>/YYYYMMDD-HHMMSS.xml.

    Returns:
        The written path, or None when writing failed (the failure is logged)
    """
    out_dir = Path(out_dir) if out_dir is not None else get_xml_output_dir()
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / f"{datetime.now().strftime('%Y%m%d-%H%M%S')}.xml"
        path.write_text(document, encoding='utf-8')
        return str(path)
    except OSError as e:
        logger.error(f"Failed to write XML file: {e}")
        return None
