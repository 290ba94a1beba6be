"""Expand ``${env.NAME}`` and ``${cwd}`` references in raw config attributes."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from typing import Any

from .errors import ConfigError

logger = logging.getLogger(__name__)

# $${ is an escaped literal; ${{ ... }} is left alone
_REF_PATTERN = re.compile(r"\$\$\{|\$\{\s*([^{}]+?)\s*\}")


class Resolver:
    """Expand references in source attributes before validation.

    Only two namespaces exist: ``env.<NAME>`` reads the process environment
    and ``cwd`` is the working directory. Expanded values are always
    strings; validation coerces them afterwards. Every unresolved reference
    is reported against the attribute it occurred in.
    """

    def __init__(self, environ: Mapping[str, str] | None = None, cwd: str | None = None) -> None:
        self._environ = dict(os.environ if environ is None else environ)
        self._cwd = os.getcwd() if cwd is None else cwd

    def lookup(self, ref: str) -> str:
        namespace, _, name = ref.partition(".")
        if namespace == "cwd" and not name:
            return self._cwd
        if namespace == "env" and name:
            try:
                return self._environ[name]
            except KeyError:
                raise LookupError(f"undefined variable '{ref}'") from None
        raise LookupError(f"unknown reference '{ref}' (expected env.<NAME> or cwd)")

    def expand(self, value: str) -> str:
        if "${" not in value:
            return value

        def _replace(m: re.Match[str]) -> str:
            if m.group(0) == "$${":
                return "${"
            return self.lookup(m.group(1))

        return _REF_PATTERN.sub(_replace, value)

    def resolve(self, attrs: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of ``attrs`` with every reference expanded.

        Raises ConfigError listing each attribute that could not be expanded.
        """
        problems: list[str] = []
        resolved = self._walk(attrs, "", problems)
        if problems:
            raise ConfigError(problems)
        return resolved

    def _walk(self, obj: Any, path: str, problems: list[str]) -> Any:
        if isinstance(obj, dict):
            return {
                key: self._walk(value, f"{path}.{key}" if path else key, problems)
                for key, value in obj.items()
            }
        if isinstance(obj, list):
            return [self._walk(item, f"{path}[{i}]", problems) for i, item in enumerate(obj)]
        if isinstance(obj, str):
            try:
                return self.expand(obj)
            except LookupError as exc:
                logger.debug("Cannot expand %s: %s", path, exc)
                problems.append(f"{path}: {exc}")
        return obj
