import hashlib
from pathlib import Path
from typing import List

import pandas as pd

_HASH_BLOCK_SIZE: int = 1 << 20


class FileUtils:
    def compute_content_hash(self, path: Path) -> str:
        """SHA-256 of the file contents, streamed in 1 MiB blocks."""
        digest = hashlib.sha256()
        with open(path, 'rb') as f:
            for block in iter(lambda: f.read(_HASH_BLOCK_SIZE), b""):
                digest.update(block)
        return digest.hexdigest()

    def filter_audio_files(self, paths: List[Path], extensions: List[str]) -> List[Path]:
        allowed = {ext.lower() for ext in extensions}
        return [p for p in paths if p.is_file() and p.suffix.lower() in allowed]

    def write_csv(self, df: pd.DataFrame, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(path, index=False)
