#!/usr/bin/env python3
"""Example: Quickstart for parcelkit

Minimal working example: write a small project with a package spec,
expand it into a manifest, stage it, and list the parcels that are
reachable with and without an optional group.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install parcelkit
"""
from __future__ import annotations

import tempfile
from pathlib import Path

import parcelkit
from parcelkit import InvoiceVersioning, run

_SPEC = """\
package:
  name: weather
  version: 1.0.0
  description: Weather forecasts at the edge
components:
  - name: app
    include: ["bin/*.wasm"]
    features:
      route: /forecast
  - name: docs
    include: ["docs/**"]
    required: false
"""


def main() -> None:
    print(f"parcelkit version: {parcelkit.__version__}")

    with tempfile.TemporaryDirectory() as workdir:
        project = Path(workdir) / "weather"
        (project / "bin").mkdir(parents=True)
        (project / "docs").mkdir()
        (project / "parcelkit.yaml").write_text(_SPEC, encoding="utf-8")
        (project / "bin" / "weather.wasm").write_bytes(b"\x00asm\x01\x00\x00\x00")
        (project / "docs" / "README.md").write_text("# Weather\n", encoding="utf-8")

        # Step 1: Expand and stage the project
        result = run(
            project,
            destination=Path(workdir) / "staging",
            versioning=InvoiceVersioning.PRODUCTION,
        )
        manifest = result.manifest
        print(f"Staged {result.identity} to {result.destination}")

        # Step 2: Inspect groups
        for group in manifest.groups:
            flag = "required" if group.required else "optional"
            print(f"  group {group.name:<6} {flag:<9} features={dict(group.features)}")

        # Step 3: Reachability with and without the optional group
        default = [p.label for p in manifest.reachable_parcels()]
        with_docs = [p.label for p in manifest.reachable_parcels({"docs"})]
        print(f"Reachable by default:   {default}")
        print(f"Reachable with 'docs':  {with_docs}")
        print(f"Total size: {manifest.total_size} bytes")


if __name__ == "__main__":
    main()
