"""Requested-field trees extracted from graphql-core resolve info."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from graphql import (
    FieldNode,
    FragmentSpreadNode,
    GraphQLIncludeDirective,
    GraphQLResolveInfo,
    GraphQLSkipDirective,
    InlineFragmentNode,
    get_named_type,
)
from graphql.execution.values import get_argument_values, get_directive_values

from ..exceptions import ArgumentValidationError


@dataclass
class ResolveTree:
    """One requested field: its name, response key, coerced arguments and sub-fields.

    ``fields`` is keyed by response key (alias or name), so two aliases of the
    same relation with different arguments stay separate branches.
    """

    name: str
    alias: Optional[str] = None
    args: Dict[str, Any] = field(default_factory=dict)
    fields: Dict[str, 'ResolveTree'] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return self.alias or self.name

    @classmethod
    def from_dict(cls, name: str, spec: Optional[Mapping[str, Any]] = None, args: Optional[Mapping[str, Any]] = None) -> 'ResolveTree':
        """Build a tree from a plain nested mapping.

        ``{"id": None, "posts": {"args": {"limit": 1}, "fields": {"title": None}}}``;
        a key may be written ``"alias:name"`` to request an aliased field.
        """
        tree = cls(name=name, args=dict(args or {}))
        for raw_key, sub in (spec or {}).items():
            alias, _, fname = raw_key.partition(':')
            if not fname:
                alias, fname = None, raw_key
            sub = sub or {}
            if 'fields' in sub or 'args' in sub:
                child = cls.from_dict(fname, sub.get('fields'), sub.get('args'))
            else:
                child = cls.from_dict(fname, sub)
            child.alias = alias
            tree.fields[child.key] = child
        return tree


def _included(node, variables) -> bool:
    skip = get_directive_values(GraphQLSkipDirective, node, variables)
    if skip and skip.get('if') is True:
        return False
    include = get_directive_values(GraphQLIncludeDirective, node, variables)
    if include and include.get('if') is False:
        return False
    return True


def _merge(existing: ResolveTree, name: str, args: Dict[str, Any]) -> None:
    if existing.name != name or existing.args != args:
        raise ArgumentValidationError(
            f"Field '{existing.key}' is requested more than once with different arguments",
            column=name,
        )


def _collect(info: GraphQLResolveInfo, parent_type, selection_set, out: Dict[str, ResolveTree]) -> None:
    if selection_set is None:
        return
    variables = info.variable_values
    for selection in selection_set.selections:
        if not _included(selection, variables):
            continue
        if isinstance(selection, FieldNode):
            name = selection.name.value
            if name.startswith('__'):
                continue
            key = selection.alias.value if selection.alias else name
            field_def = getattr(parent_type, 'fields', {}).get(name)
            args = get_argument_values(field_def, selection, variables) if field_def is not None else {}
            existing = out.get(key)
            if existing is None:
                existing = out[key] = ResolveTree(name=name, alias=selection.alias.value if selection.alias else None, args=args)
            else:
                _merge(existing, name, args)
            if selection.selection_set is not None and field_def is not None:
                _collect(info, get_named_type(field_def.type), selection.selection_set, existing.fields)
        elif isinstance(selection, InlineFragmentNode):
            _collect(info, parent_type, selection.selection_set, out)
        elif isinstance(selection, FragmentSpreadNode):
            fragment = info.fragments.get(selection.name.value)
            if fragment is not None:
                _collect(info, parent_type, fragment.selection_set, out)


def resolve_tree_from_info(info: GraphQLResolveInfo, args: Optional[Mapping[str, Any]] = None) -> ResolveTree:
    """Tree for the field being resolved, merging every field node that requested it."""
    field_def = info.parent_type.fields[info.field_name]
    alias = info.path.key if info.path.key != info.field_name else None
    if args is None:
        args = get_argument_values(field_def, info.field_nodes[0], info.variable_values)
    tree = ResolveTree(name=info.field_name, alias=alias, args=dict(args))
    return_type = get_named_type(field_def.type)
    for node in info.field_nodes:
        _collect(info, return_type, node.selection_set, tree.fields)
    return tree


def as_resolve_tree(info: Any, args: Optional[Mapping[str, Any]] = None) -> ResolveTree:
    if isinstance(info, ResolveTree):
        return info
    if isinstance(info, GraphQLResolveInfo):
        return resolve_tree_from_info(info, args)
    raise TypeError(f"Expected GraphQLResolveInfo or ResolveTree, got {type(info).__name__}")


__all__ = ['ResolveTree', 'resolve_tree_from_info', 'as_resolve_tree']
