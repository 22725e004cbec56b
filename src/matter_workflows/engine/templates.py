"""``{{path}}`` placeholder substitution for action parameters."""

from __future__ import annotations

import re
from collections.abc import Mapping

from .conditions import lookup
from .errors import ConditionEvaluationError

PLACEHOLDER = re.compile(r"\{\{([^}]+)\}\}")


def _resolve(path: str, scope: Mapping[str, object]) -> tuple[bool, object]:
    try:
        return lookup(scope, path.strip())
    except ConditionEvaluationError:
        return False, None


def resolve_value(value: object, scope: Mapping[str, object]) -> object:
    if isinstance(value, str):
        whole = PLACEHOLDER.fullmatch(value.strip())
        if whole is not None:
            # A lone placeholder keeps the referenced value's type.
            found, resolved = _resolve(whole.group(1), scope)
            return resolved if found else ""

        def _substitute(match: re.Match[str]) -> str:
            found, resolved = _resolve(match.group(1), scope)
            if not found or resolved is None:
                return ""
            return str(resolved)

        return PLACEHOLDER.sub(_substitute, value)
    if isinstance(value, Mapping):
        return {k: resolve_value(v, scope) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_value(v, scope) for v in value]
    return value


def resolve_params(params: Mapping[str, object], scope: Mapping[str, object]) -> dict[str, object]:
    return {key: resolve_value(value, scope) for key, value in params.items()}
