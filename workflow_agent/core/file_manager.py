"""
File system management for generated workflows.
Handles asynchronous reads and writes of workflow files.
"""

import json
from pathlib import Path
from typing import Any, Iterable, List, Optional

import aiofiles
import aiofiles.os

from ..models.workflow import WorkflowOutput
from .logger import GeneratorLogger


class FileManager:
    """Reads detection input and writes workflow files."""

    def __init__(self, base_dir: Path = None, logger: GeneratorLogger = None):
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()
        self.logger = logger or GeneratorLogger("FileManager", quiet=True)

    async def read_file(self, path: Path) -> str:
        """Read file contents asynchronously."""
        full_path = self._resolve_path(path)
        try:
            async with aiofiles.open(full_path, "r", encoding="utf-8") as f:
                return await f.read()
        except OSError as e:
            self.logger.error(f"Failed to read {full_path}: {e}")
            raise

    async def read_json(self, path: Path) -> Any:
        """Read and decode a JSON file, e.g. a detection result."""
        return json.loads(await self.read_file(path))

    async def write_file(self, path: Path, content: str, create_dirs: bool = True) -> Path:
        """Write content to a file asynchronously."""
        full_path = self._resolve_path(path)
        try:
            if create_dirs:
                await aiofiles.os.makedirs(full_path.parent, exist_ok=True)
            async with aiofiles.open(full_path, "w", encoding="utf-8") as f:
                await f.write(content)
            self.logger.debug(f"Written to {full_path}")
        except OSError as e:
            self.logger.error(f"Failed to write {full_path}: {e}")
            raise
        return full_path

    async def write_workflows(
        self,
        outputs: Iterable[WorkflowOutput],
        output_dir: Optional[Path] = None,
        fmt: str = "yaml",
    ) -> List[Path]:
        """
        Write workflow outputs into a directory.

        Args:
            outputs: Rendered workflows
            output_dir: Target directory, relative to base_dir unless absolute
            fmt: "yaml" writes each workflow's content; "json" writes its
                to_dict() form next to it with a .json suffix

        Returns:
            Paths written, in output order
        """
        if fmt not in ("yaml", "json"):
            raise ValueError(f"Unsupported output format: {fmt}")

        directory = self._resolve_path(output_dir) if output_dir else self.base_dir
        written = []
        for output in outputs:
            if fmt == "json":
                path = directory / Path(output.filename).with_suffix(".json").name
                content = json.dumps(output.to_dict(), indent=2)
            else:
                path = directory / output.filename
                content = output.content
            written.append(await self.write_file(path, content))
        self.logger.success(f"Wrote {len(written)} files to {directory}")
        return written

    async def exists(self, path: Path) -> bool:
        """Check if a path exists."""
        full_path = self._resolve_path(path)
        return await aiofiles.os.path.exists(full_path)

    async def list_workflows(self, path: Path = None) -> List[Path]:
        """List .yml/.yaml files in a directory."""
        full_path = self._resolve_path(path) if path else self.base_dir
        entries = await aiofiles.os.listdir(full_path)
        return sorted(Path(full_path) / e for e in entries if e.endswith((".yml", ".yaml")))

    def _resolve_path(self, path: Path) -> Path:
        """Resolve a path relative to base_dir if not absolute."""
        if path is None:
            return self.base_dir
        path = Path(path) if isinstance(path, str) else path
        if path.is_absolute():
            return path
        return self.base_dir / path
