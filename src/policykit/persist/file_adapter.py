"""CSV policy file adapter.

File format, one rule per line, ptype first::

    p, alice, data1, read
    p, bob, data2, write
    g, alice, admin

Blank lines and lines starting with ``#`` are ignored. Fields containing
commas must be double-quoted. Only full load/save is supported; incremental
methods fall through to ``NotImplementedError`` and the enforcer relies on
``save_policy`` instead.
"""

from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import Union

from ..exceptions import AdapterError
from ..policy.store import PolicyStore
from .adapter import Adapter

logger = logging.getLogger(__name__)


class FileAdapter(Adapter):
    """Reads and writes rules from a CSV-like policy file."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"FileAdapter(path={str(self.path)!r})"

    def load_policy(self, store: PolicyStore) -> None:
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise AdapterError(f"Cannot read policy file {self.path}: {e}", path=str(self.path)) from e

        loaded = 0
        for lineno, line in enumerate(text.splitlines(), start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            fields = next(csv.reader([stripped], skipinitialspace=True))
            fields = [f.strip() for f in fields]
            if len(fields) < 2:
                raise AdapterError(f"{self.path}:{lineno}: rule has no fields", path=str(self.path), line=lineno)
            ptype, rule = fields[0], fields[1:]
            if store.add_policy(ptype[:1], ptype, rule):
                loaded += 1
        logger.info("Loaded %d rules from %s", loaded, self.path)

    def save_policy(self, store: PolicyStore) -> None:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        count = 0
        for table in store.iter_tables():
            for rule in table.rules():
                writer.writerow([table.ptype, *rule])
                count += 1
        try:
            self.path.write_text(buffer.getvalue(), encoding="utf-8")
        except OSError as e:
            raise AdapterError(f"Cannot write policy file {self.path}: {e}", path=str(self.path)) from e
        logger.info("Saved %d rules to %s", count, self.path)


__all__ = ["FileAdapter"]
