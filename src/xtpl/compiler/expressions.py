"""Dynamic-scope rewriting for rich template expressions.

Expressions in ``if=``, ``switch=``, ``for=``, ``exec=`` and ``{[ ... ]}``
behave as if they ran *inside* the current data object: a bare name
resolves against ``values`` first and only then against the lexical
bindings of the generated module (definitions, helpers, builtins).

Instead of an ambient scope hook, the rewrite happens once at compile time
on the Python AST:

    name        ->  (_scope_get(values, 'name') if _scope_has(values, 'name') else name)
    obj.attr    ->  _getattr(obj, 'attr')

Names bound by the expression itself (lambda parameters, comprehension
targets, walrus targets, assignment targets in exec bodies) and the
reserved render names are left alone.
"""

from __future__ import annotations

import ast
import textwrap
from collections.abc import Iterable

# Names that are always bound inside generated render/helper functions.
RESERVED_NAMES: frozenset[str] = frozenset(
    {"out", "values", "parent", "xindex", "xcount", "this", "fm"}
)


def _target_names(node: ast.AST) -> set[str]:
    """Collect every name stored by ``node`` (assignment/loop targets, captures)."""
    names: set[str] = set()
    for child in ast.walk(node):
        if isinstance(child, ast.Name) and isinstance(child.ctx, ast.Store):
            names.add(child.id)
        elif isinstance(child, (ast.MatchAs, ast.MatchStar)) and child.name:
            names.add(child.name)
        elif isinstance(child, ast.MatchMapping) and child.rest:
            names.add(child.rest)
    return names


def _arg_names(args: ast.arguments) -> set[str]:
    names = {a.arg for a in (*args.posonlyargs, *args.args, *args.kwonlyargs)}
    if args.vararg:
        names.add(args.vararg.arg)
    if args.kwarg:
        names.add(args.kwarg.arg)
    return names


class ScopeRewriter(ast.NodeTransformer):
    """Rewrite bare name loads and attribute loads for dynamic scope.

    Args:
        reserved: Names never rewritten (render arguments, runtime helpers).
        bound: Names already bound locally (e.g. assignment targets of an
            exec body), never rewritten either.
    """

    def __init__(self, reserved: Iterable[str], bound: Iterable[str] = ()):
        self._reserved = frozenset(reserved) | RESERVED_NAMES
        self._scopes: list[set[str]] = [set(bound)]

    def _is_bound(self, name: str) -> bool:
        return name in self._reserved or any(name in scope for scope in self._scopes)

    def visit_Name(self, node: ast.Name) -> ast.AST:
        if not isinstance(node.ctx, ast.Load) or self._is_bound(node.id):
            return node
        key = ast.Constant(value=node.id)
        return ast.IfExp(
            test=_call("_scope_has", ast.Name(id="values", ctx=ast.Load()), key),
            body=_call("_scope_get", ast.Name(id="values", ctx=ast.Load()), key),
            orelse=node,
        )

    def visit_Attribute(self, node: ast.Attribute) -> ast.AST:
        value = self.visit(node.value)
        if not isinstance(node.ctx, ast.Load):
            node.value = value
            return node
        return _call("_getattr", value, ast.Constant(value=node.attr))

    def visit_Lambda(self, node: ast.Lambda) -> ast.AST:
        node.args = self.visit(node.args)
        self._scopes.append(_arg_names(node.args))
        try:
            node.body = self.visit(node.body)
        finally:
            self._scopes.pop()
        return node

    def visit_FunctionDef(self, node: ast.FunctionDef) -> ast.AST:
        node.args = self.visit(node.args)
        node.decorator_list = [self.visit(d) for d in node.decorator_list]
        self._scopes[-1].add(node.name)
        self._scopes.append(_arg_names(node.args) | _target_names(node))
        try:
            node.body = [self.visit(stmt) for stmt in node.body]
        finally:
            self._scopes.pop()
        return node

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_match_case(self, node: ast.match_case) -> ast.AST:
        # Patterns only hold literals and dotted names; leave them as written
        if node.guard is not None:
            node.guard = self.visit(node.guard)
        node.body = [self.visit(stmt) for stmt in node.body]
        return node

    def _visit_comprehension(self, node: ast.AST) -> ast.AST:
        generators: list[ast.comprehension] = node.generators  # type: ignore[attr-defined]
        # The first iterable is evaluated in the enclosing scope.
        generators[0].iter = self.visit(generators[0].iter)
        names: set[str] = set()
        for gen in generators:
            names |= _target_names(gen.target)
        self._scopes.append(names)
        try:
            for index, gen in enumerate(generators):
                if index:
                    gen.iter = self.visit(gen.iter)
                gen.ifs = [self.visit(cond) for cond in gen.ifs]
            for field in ("elt", "key", "value"):
                if hasattr(node, field):
                    setattr(node, field, self.visit(getattr(node, field)))
        finally:
            self._scopes.pop()
        return node

    visit_ListComp = _visit_comprehension
    visit_SetComp = _visit_comprehension
    visit_DictComp = _visit_comprehension
    visit_GeneratorExp = _visit_comprehension


def _call(func: str, *args: ast.expr) -> ast.Call:
    return ast.Call(func=ast.Name(id=func, ctx=ast.Load()), args=list(args), keywords=[])


_SUSPENDING = {ast.Yield: "yield", ast.YieldFrom: "yield from", ast.Await: "await"}


def reject_suspension(tree: ast.AST) -> None:
    """Reject ``yield`` and ``await`` outside nested function definitions.

    The generated render function must stay a plain function.

    Raises:
        SyntaxError: On the first suspending expression found.
    """
    pending = [tree]
    while pending:
        node = pending.pop()
        for child in ast.iter_child_nodes(node):
            if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda)):
                continue
            keyword = _SUSPENDING.get(type(child))
            if keyword:
                raise SyntaxError(f"'{keyword}' is not allowed in a template")
            pending.append(child)


def rewrite_expression(source: str, reserved: Iterable[str]) -> ast.expr:
    """Parse a Python expression and apply the dynamic-scope rewrite.

    Raises:
        SyntaxError: If ``source`` is not a valid Python expression,
            or if it contains ``yield`` or ``await``.

    Example:
        >>> ast.unparse(rewrite_expression("age > 1", ()))
        "(_scope_get(values, 'age') if _scope_has(values, 'age') else age) > 1"
    """
    tree = ast.parse(source.strip(), mode="eval")
    reject_suspension(tree)
    walrus = {
        node.target.id
        for node in ast.walk(tree)
        if isinstance(node, ast.NamedExpr) and isinstance(node.target, ast.Name)
    }
    return ScopeRewriter(reserved, walrus).visit(tree.body)


def rewrite_statements(source: str, reserved: Iterable[str]) -> list[ast.stmt]:
    """Parse Python statements (an ``exec=`` body) and apply the rewrite.

    Names assigned anywhere in the body are function locals and keep plain
    Python scoping.
    """
    tree = ast.parse(dedent_code(source))
    reject_suspension(tree)
    return [ScopeRewriter(reserved, _target_names(tree)).visit(stmt) for stmt in tree.body]


def parse_statements(source: str) -> list[ast.stmt]:
    """Parse an inline code block verbatim (no rewrite)."""
    tree = ast.parse(dedent_code(source))
    reject_suspension(tree)
    return tree.body


def dedent_code(source: str) -> str:
    """Normalise code embedded in a template to parseable Python.

    Common leading indentation is removed, so blocks may be indented to
    match the surrounding markup.

    Example:
        >>> dedent_code("\\n    total = 0\\n    for n in range(3):\\n        total += n\\n")
        'total = 0\\nfor n in range(3):\\n    total += n'
    """
    return textwrap.dedent(source).strip()
