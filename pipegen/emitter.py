"""YAML emission for assembled pipelines."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

import yaml

from .assembler import AssembledPipeline

HEADER = "# Generated by pipegen. Review before committing.\n"


class _PipelineDumper(yaml.SafeDumper):
    """Indents block sequences under their parent key."""

    def increase_indent(self, flow: bool = False, indentless: bool = False) -> Any:
        return super().increase_indent(flow, False)


def render_yaml(pipeline: AssembledPipeline | Mapping[str, Any], *, header: bool = True) -> str:
    data = pipeline.to_dict() if isinstance(pipeline, AssembledPipeline) else dict(pipeline)
    body = yaml.dump(
        data,
        Dumper=_PipelineDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=120,
    )
    return (HEADER + "\n" + body) if header else body


def write_pipeline(pipeline: AssembledPipeline, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_yaml(pipeline), encoding="utf-8")
    return path


__all__ = ["render_yaml", "write_pipeline"]
