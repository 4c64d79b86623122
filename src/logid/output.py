"""JSON rendering of query results."""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from logid.log_query.types import QueryResult


@dataclass
class OutputConfig:
    """Which optional sections to include."""

    show_metadata: bool = True
    show_scan_time_range: bool = True
    show_tag_infos: bool = False


def result_to_dict(result: QueryResult, config: Optional[OutputConfig] = None) -> dict[str, Any]:
    config = config or OutputConfig()
    data = result.to_dict()
    if config.show_metadata and result.meta is not None:
        data["meta"] = result.meta
    if config.show_scan_time_range and result.scan_time_range is not None:
        data["scan_time_range"] = result.scan_time_range
    if config.show_tag_infos and result.tag_infos is not None:
        data["tag_infos"] = result.tag_infos
    return data


def format_result(result: QueryResult, config: Optional[OutputConfig] = None) -> str:
    """Render a result as pretty-printed JSON."""
    return json.dumps(result_to_dict(result, config), indent=2, ensure_ascii=False)


def print_result(result: QueryResult, config: Optional[OutputConfig] = None, file=None) -> None:
    out = file or sys.stdout
    print(format_result(result, config), file=out)
    out.flush()


def write_to_file(result: QueryResult, path: Path, config: Optional[OutputConfig] = None) -> Path:
    """Write the JSON rendering to ``path``, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_result(result, config) + "\n", encoding="utf-8")
    return path
