"""
Dialogue loader.

Loads dialogue graphs from JSON files, validates them against the
bundled JSON Schema and parses them into DialogueGraph models. A file
holds one graph or a list of graphs. Files that fail to read, parse or
validate are logged and skipped.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

import jsonschema
import pydantic

from branchline.dialogue.models import DialogueGraph

SCHEMA_PATH = Path(__file__).parent / "schemas" / "dialogue.schema.json"


def load_schema(path: Path | str = SCHEMA_PATH) -> dict[str, Any]:
    """Read a JSON Schema from disk."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


class DialogueLoader:
    """
    Loads and caches dialogue graphs by id.

    Usage:
        loader = DialogueLoader("game/data/dialogue")
        loader.load_all()
        graph = loader.get("intro")
    """

    def __init__(self, dialogue_path: Path | str, schema: Optional[dict[str, Any]] = None):
        self._dialogue_path = Path(dialogue_path)
        self._schema = schema if schema is not None else load_schema()
        self._dialogues: dict[str, DialogueGraph] = {}

        self.logger = logging.getLogger(__name__)

    @property
    def dialogues(self) -> dict[str, DialogueGraph]:
        return dict(self._dialogues)

    def load_all(self) -> int:
        """
        Load every *.json file under the dialogue directory.

        Returns:
            Number of graphs loaded
        """
        if not self._dialogue_path.exists():
            self.logger.warning(f"Dialogue directory not found: {self._dialogue_path}")
            return 0

        count = 0
        for file_path in sorted(self._dialogue_path.glob("*.json")):
            count += len(self.load_file(file_path))

        self.logger.info(f"Loaded {count} dialogues from {self._dialogue_path}")
        return count

    def load_file(self, file_path: Path | str) -> list[DialogueGraph]:
        """Load the graphs in one file. Invalid entries are skipped."""
        file_path = Path(file_path)
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.error(f"Failed to load {file_path}: {e}")
            return []

        entries = data if isinstance(data, list) else [data]
        loaded = []
        for entry in entries:
            graph = self.parse(entry, source=str(file_path))
            if graph is not None:
                loaded.append(graph)
        return loaded

    def parse(self, data: Any, source: str = "<data>") -> Optional[DialogueGraph]:
        """Validate and parse one graph, caching it by id."""
        try:
            jsonschema.validate(instance=data, schema=self._schema)
        except jsonschema.ValidationError as e:
            self.logger.warning(f"Validation error in {source}: {e.message}")
            return None

        try:
            graph = DialogueGraph.model_validate(data)
        except pydantic.ValidationError as e:
            self.logger.warning(f"Invalid dialogue in {source}: {e}")
            return None

        if graph.id in self._dialogues:
            self.logger.warning(f"Dialogue {graph.id} redefined in {source}")
        self._dialogues[graph.id] = graph
        return graph

    def get(self, dialogue_id: str) -> Optional[DialogueGraph]:
        """Get a loaded dialogue by id."""
        return self._dialogues.get(dialogue_id)
