"""Export JSON schemas for the approval API payloads."""

import json
import sys
from pathlib import Path

from pydantic import BaseModel

from backend.app.models import ApprovalStatus, Group, Vote, VoteOutcome

EXPORTED_MODELS: list[type[BaseModel]] = [Vote, ApprovalStatus, VoteOutcome, Group]


def main(schemas_dir: Path = Path("docs/schemas")) -> list[Path]:
    """Export schemas to docs/schemas/ (or the given directory)."""
    schemas_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for model in EXPORTED_MODELS:
        # Serialization mode so computed fields (ApprovalStatus.state) are included
        schema = model.model_json_schema(mode="serialization")
        path = schemas_dir / f"{model.__name__}.schema.json"
        with open(path, "w") as f:
            json.dump(schema, f, indent=2)
        print(f"Exported {model.__name__} schema to {path}")
        written.append(path)

    return written


if __name__ == "__main__":
    main(Path(sys.argv[1]) if len(sys.argv) > 1 else Path("docs/schemas"))
