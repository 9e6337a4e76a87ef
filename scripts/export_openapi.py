#!/usr/bin/env python
"""Export the admin API OpenAPI schema to tourdesk/openapi.yaml."""

from __future__ import annotations

from pathlib import Path

import yaml


def main() -> None:
    repo_root = Path(__file__).resolve().parent.parent
    output_path = repo_root / "tourdesk" / "openapi.yaml"

    from tourdesk.main import app  # noqa: WPS433

    schema = app.openapi()
    output_path.write_text(yaml.dump(schema, sort_keys=False, allow_unicode=True), encoding="utf-8")
    print(f"Wrote {output_path.relative_to(repo_root)}")


if __name__ == "__main__":
    main()
