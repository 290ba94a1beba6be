"""HCL loading — parse builder config files into BuilderConfig."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import hcl2
import jinja2

from .config import BuilderConfig, parse_config
from .errors import ConfigError
from .resolve import Resolver

logger = logging.getLogger(__name__)

SOURCE_TYPE = "oracle-classic"


def load(
    file: str | Path,
    *,
    context: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Load and parse a single HCL file, rendering Jinja2 templates with context."""
    file = Path(file)
    text = file.read_text()
    ctx = context if context is not None else {}
    env = jinja2.Environment(
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    try:
        template = env.from_string(text)
        text = template.render(ctx)
    except jinja2.TemplateError as exc:
        raise ValueError(f"{file}: {exc}") from exc
    return hcl2.loads(text)


def sources(data: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Collect ``source "oracle-classic" "<name>"`` blocks by name.

    HCL2 structure for source blocks:
        {"source": [{"oracle-classic": {"name": {attrs}}}, ...]}
    """
    found: dict[str, dict[str, Any]] = {}
    for block in data.get("source", []):
        for source_type, named in block.items():
            if source_type != SOURCE_TYPE:
                logger.debug("Ignoring source of type '%s'", source_type)
                continue
            for name, attrs in named.items():
                if name in found:
                    raise ValueError(f"Duplicate source: '{name}'")
                logger.debug("Found source '%s'", name)
                found[name] = attrs
    return found


def load_config(
    file: str | Path,
    name: str | None = None,
    *,
    context: dict[str, Any] | None = None,
) -> BuilderConfig:
    """Load one oracle-classic source block from an HCL file.

    ``name`` may be omitted when the file holds a single source. String
    values may reference ``${env.VAR}`` and ``${cwd}``.
    """
    found = sources(load(file, context=context))
    if not found:
        raise ValueError(f"{file}: no '{SOURCE_TYPE}' source found")
    if name is None:
        if len(found) > 1:
            raise ValueError(f"{file}: multiple sources found; pick one of {sorted(found)}")
        name = next(iter(found))
    if name not in found:
        raise ValueError(f"{file}: unknown source '{name}'")

    try:
        attrs = Resolver().resolve(dict(found[name]))
        attrs.setdefault("packer_build_name", name)
        return parse_config(attrs)
    except ConfigError as exc:
        raise ConfigError([f"{file}: {problem}" for problem in exc.problems]) from exc
