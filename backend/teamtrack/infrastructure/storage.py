"""
JSON file storage utilities for the workspace document.
"""

import json
import aiofiles
from pathlib import Path
from typing import Any, Dict, Optional
from datetime import date, datetime
import structlog

from teamtrack.infrastructure.exceptions import StorageError

logger = structlog.get_logger()


class JsonStorage:
    """Async JSON file storage with atomic writes."""

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def path_for(self, filename: str) -> Path:
        return self.base_path / filename

    async def exists(self, filename: str) -> bool:
        return self.path_for(filename).is_file()

    async def read(self, filename: str) -> Optional[Dict[str, Any]]:
        """Read JSON file and return contents, or None if it does not exist."""
        filepath = self.path_for(filename)
        try:
            async with aiofiles.open(filepath, 'r', encoding='utf-8') as f:
                content = await f.read()
        except FileNotFoundError:
            logger.debug("File not found", filepath=str(filepath))
            return None

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error("JSON decode error", filepath=str(filepath), error=str(e))
            raise StorageError(f"Stored document is not valid JSON: {e}", str(filepath)) from e

        if not isinstance(data, dict):
            raise StorageError("Stored document is not a JSON object", str(filepath))
        return data

    async def write(self, filename: str, data: Dict[str, Any]) -> None:
        """Write data to JSON file atomically."""
        filepath = self.path_for(filename)
        temp_filepath = filepath.with_suffix('.tmp')

        try:
            # Write to temp file first
            async with aiofiles.open(temp_filepath, 'w', encoding='utf-8') as f:
                await f.write(json.dumps(data, indent=2, default=json_serial))

            # Atomic rename
            temp_filepath.replace(filepath)
            logger.debug("File written", filepath=str(filepath))
        except (OSError, TypeError) as e:
            logger.error("Write error", filepath=str(filepath), error=str(e))
            if temp_filepath.exists():
                temp_filepath.unlink()
            raise StorageError(f"Failed to write document: {e}", str(filepath)) from e

    async def delete(self, filename: str) -> bool:
        filepath = self.path_for(filename)
        if not filepath.exists():
            return False
        filepath.unlink()
        return True


def json_serial(obj: Any) -> str:
    """JSON serializer for objects not serializable by default."""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Type {type(obj)} not serializable")
