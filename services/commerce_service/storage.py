"""Local filesystem storage for rendered invoice documents."""

import asyncio
from pathlib import Path

from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


class InvoiceStorage:
    """Writes ``<number>.pdf`` under a directory served at ``public_base_url``."""

    def __init__(self, root: str | Path = None, public_base_url: str = None):
        settings = get_settings()
        self.root = Path(root or settings.INVOICE_STORAGE_DIR)
        self.public_base_url = (
            public_base_url or settings.INVOICE_PUBLIC_BASE_URL
        ).rstrip("/")

    def _write(self, path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_bytes(content)
        tmp.replace(path)

    async def save(self, invoice_number: str, content: bytes) -> str:
        """Store the document and return its public URL."""
        filename = f"{invoice_number}.pdf"
        await asyncio.to_thread(self._write, self.root / filename, content)
        logger.info("Stored invoice document %s (%d bytes)", filename, len(content))
        return f"{self.public_base_url}/{filename}"


def get_invoice_storage() -> InvoiceStorage:
    """FastAPI dependency; overridden in tests."""
    return InvoiceStorage()
