"""Create or replace a roadmap from a JSON file.

    python -m app.scripts.load_roadmap <project-id> roadmap.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path

from config import settings
from db import DatabaseGateway

_LOGGER = logging.getLogger(__name__)


async def load(project_id: str, path: Path) -> dict | None:
    data = json.loads(path.read_text(encoding="utf-8"))
    gateway = DatabaseGateway.from_settings(settings)
    try:
        return await gateway.upsert_roadmap(project_id, data)
    finally:
        await gateway.dispose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("project_id")
    parser.add_argument("path", type=Path)
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.LOG_LEVEL)
    row = asyncio.run(load(args.project_id, args.path))
    if row is None:
        _LOGGER.error("Roadmap %s was not saved", args.project_id)
        return 1
    _LOGGER.info("Roadmap %s saved", args.project_id)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
