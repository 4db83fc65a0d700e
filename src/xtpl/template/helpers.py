"""Runtime helpers shared by every compiled renderer.

Generated modules run in a namespace seeded from STATIC_NAMESPACE, so the
names below are what ``_lookup``/``_path``/``_report`` refer to inside the
generated code. Keep them cheap: they sit on the per-tag hot path.

Resolution rules:
    - Mappings are read by key first, objects by attribute first.
    - A numeric string key indexes a sequence (``{0}``, ``{kids.1}``).
    - A missing key, attribute or index yields UNDEFINED, never an error.
    - ``None`` and UNDEFINED render as the empty string; everything else
      renders with ``str()``.
"""

from __future__ import annotations

import builtins
import logging
from collections.abc import Mapping, Sequence
from datetime import date, datetime, time
from numbers import Number
from types import MappingProxyType
from typing import Any

from xtpl.environment.exceptions import TemplateSyntaxError
from xtpl.render_context import Diagnostic, get_render_context

logger = logging.getLogger(__name__)


class _Undefined:
    """Sentinel for a value that does not exist.

    Falsy, empty when rendered, and iterates as nothing, so a missing path
    flows through conditions and loops like an absent value.
    """

    __slots__ = ()
    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __str__(self) -> str:
        return ""

    def __bool__(self) -> bool:
        return False

    def __len__(self) -> int:
        return 0

    def __iter__(self):
        return iter(())

    def __reduce__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _Undefined()

# Substituted for a missing/None parent argument.
EMPTY: Mapping[str, Any] = MappingProxyType({})

_SCALARS = (str, Number, date, datetime, time)


def is_absent(value: Any) -> bool:
    """True for ``None`` and UNDEFINED."""
    return value is None or value is UNDEFINED


def lookup(obj: Any, key: str) -> Any:
    """Resolve one path segment against ``obj``; UNDEFINED when missing.

    Example:
        >>> lookup({"name": "Don"}, "name")
        'Don'
        >>> lookup(["a", "b"], "1")
        'b'
        >>> lookup({}, "name")
        UNDEFINED
    """
    if obj is None or obj is UNDEFINED:
        return UNDEFINED
    if isinstance(obj, Mapping):
        try:
            return obj[key]
        except (KeyError, TypeError):
            if key.isdigit():
                return obj.get(int(key), UNDEFINED)
            return UNDEFINED
    if isinstance(obj, Sequence) and not isinstance(obj, str):
        if key.isdigit():
            index = int(key)
            return obj[index] if index < len(obj) else UNDEFINED
        return UNDEFINED
    if not key.isidentifier():
        return UNDEFINED
    return getattr(obj, key, UNDEFINED)


def lookup_path(obj: Any, keys: tuple[str, ...]) -> Any:
    """Resolve a dotted path one segment at a time, stopping at UNDEFINED."""
    for key in keys:
        obj = lookup(obj, key)
        if obj is UNDEFINED:
            break
    return obj


def scalar(values: Any) -> Any:
    """Value of ``{.}``: the data object when it is a plain scalar, else ''."""
    if isinstance(values, _SCALARS):
        return values
    return ""


def safe_getattr(obj: Any, name: str) -> Any:
    """Attribute access inside rich expressions.

    Mappings are subscripted first so ``values.company`` reads a dict key;
    other objects use ``getattr`` first and fall back to subscripting.
    Missing values come back as UNDEFINED.
    """
    if obj is None or obj is UNDEFINED:
        return UNDEFINED
    if isinstance(obj, Mapping):
        try:
            return obj[name]
        except KeyError:
            return getattr(obj, name, UNDEFINED)
    try:
        return getattr(obj, name)
    except AttributeError:
        try:
            return obj[name]
        except (KeyError, TypeError, IndexError):
            return UNDEFINED


def scope_has(values: Any, name: str) -> bool:
    """Whether a bare name in a rich expression is found on the data object.

    Mapping keys and (for plain objects) attributes are in scope. Scalars
    and sequences contribute nothing, so builtins stay reachable when the
    data object is a string or a list.
    """
    if values is None or values is UNDEFINED:
        return False
    if isinstance(values, Mapping):
        return name in values
    if isinstance(values, (str, bytes, Number, Sequence, date, time)):
        return False
    return hasattr(values, name)


def scope_get(values: Any, name: str) -> Any:
    if isinstance(values, Mapping):
        return values[name]
    return getattr(values, name)


def report(this: Any, source: str, exc: BaseException) -> Any:
    """Record a contained evaluation failure and yield UNDEFINED.

    The failure is logged at WARNING and appended to the active
    RenderContext (if any); the surrounding render carries on.
    """
    template_name = getattr(this, "name", None)
    logger.warning(
        "Error evaluating %r in template %s: %s: %s",
        source,
        template_name or "<template>",
        type(exc).__name__,
        exc,
    )
    ctx = get_render_context()
    if ctx is not None:
        ctx.record(
            Diagnostic(
                template_name=template_name,
                source=source,
                message=str(exc),
                error_type=type(exc).__name__,
                exception=exc,
            )
        )
    return UNDEFINED


def invalid(message: str, source: str) -> TemplateSyntaxError:
    """Build (not raise) the error for an expression that failed to parse."""
    return TemplateSyntaxError(f"{message} in {source!r}")


# Static namespace entries, copied into every generated module.
STATIC_NAMESPACE: dict[str, Any] = {
    "__builtins__": builtins,
    "_UNDEFINED": UNDEFINED,
    "_str": str,
    "_lookup": lookup,
    "_path": lookup_path,
    "_scalar": scalar,
    "_getattr": safe_getattr,
    "_scope_has": scope_has,
    "_scope_get": scope_get,
    "_report": report,
    "_invalid": invalid,
}
