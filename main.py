import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from sheetrules.config import EngineSettings
from sheetrules.content.hybrid_d20 import build_rulebook, describe
from sheetrules.models.manifest import ContentManifest
from sheetrules.utils.logger_config import setup_logging

logger = logging.getLogger(__name__)

USAGE = "usage: python main.py CHARACTER.json [MANIFEST.json ...]"


def run(character_path: Path, manifest_paths=()) -> int:
    settings = EngineSettings.from_env()
    setup_logging(settings.log_level)

    book = build_rulebook(settings)
    for path in manifest_paths:
        ContentManifest.from_file(path).apply_to(book)
    logger.info(f"Rule book ready: {describe(book)}")

    with open(character_path, "r", encoding="utf-8") as f:
        character = json.load(f)

    result = book.evaluate(character)
    for name in sorted(result.attributes):
        print(f"{name}: {result.attributes[name]}")
    if result.notes:
        print()
        for name in sorted(result.notes):
            print(f"{name}: {result.notes[name]}")

    for failure in result.failures:
        logger.warning(f"{failure.rule}: {failure.error}")
    if result.unresolved:
        logger.warning(f"Unresolved: {', '.join(result.unresolved)}")
    return 0


if __name__ == "__main__":
    load_dotenv()
    if len(sys.argv) < 2:
        print(USAGE, file=sys.stderr)
        sys.exit(2)
    sys.exit(run(Path(sys.argv[1]), [Path(p) for p in sys.argv[2:]]))
