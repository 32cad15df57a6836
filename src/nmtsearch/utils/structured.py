# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import MISSING, fields, is_dataclass
from types import NoneType, UnionType
from typing import Any, TypeVar, Union, get_args, get_origin, get_type_hints


class StructureError(Exception):
    pass


T = TypeVar("T")


def structure(obj: object, kls: type[T]) -> T:
    """
    Builds a dataclass of type ``kls`` from the mapping ``obj``.

    Only fields of scalar types (``bool``, ``int``, ``float``, ``str``) and
    their optional variants are supported.

    :raises StructureError: ``obj`` cannot be structured into ``kls``.
    """
    if not is_dataclass(kls):
        raise ValueError(f"`kls` must be a dataclass type, but is `{kls}` instead.")

    if isinstance(obj, kls):
        return obj

    if not isinstance(obj, Mapping):
        raise StructureError(
            f"Value must be of type `{kls}` or `{Mapping}`, but is of type `{type(obj)}` instead."
        )

    values = dict(obj)

    type_hints = get_type_hints(kls)

    kwargs = {}

    empty_sentinel = object()

    for field in fields(kls):
        value = values.pop(field.name, empty_sentinel)

        if not field.init:
            continue

        if value is empty_sentinel:
            if field.default is MISSING and field.default_factory is MISSING:
                raise StructureError(
                    f"`{field.name}` field has no default value or factory."
                )

            continue

        try:
            kwargs[field.name] = _structure_scalar(value, type_hints[field.name])
        except StructureError as ex:
            raise StructureError(f"`{field.name}` field cannot be structured.") from ex

    if values:
        extra_keys = ", ".join(sorted(str(k) for k in values.keys()))

        raise StructureError(
            f"Value must contain only keys corresponding to the fields of `{kls}`, but it contains extra keys {extra_keys}."
        )

    return kls(**kwargs)


def _structure_scalar(value: object, type_: Any) -> object:
    origin = get_origin(type_)

    if origin is Union or origin is UnionType:
        args = get_args(type_)

        if value is None:
            if NoneType in args:
                return None

            raise StructureError("Value must not be `None`.")

        for arg in args:
            if arg is NoneType:
                continue

            try:
                return _structure_scalar(value, arg)
            except StructureError:
                continue

        raise StructureError(
            f"Value must be of type `{type_}`, but is of type `{type(value)}` instead."
        )

    # `bool` is a subclass of `int`; do not accept it as a number.
    if type_ is bool:
        if isinstance(value, bool):
            return value
    elif type_ is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif type_ is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif type_ is str:
        if isinstance(value, str):
            return value
    else:
        raise StructureError(f"`{type_}` is not a supported field type.")

    raise StructureError(
        f"Value must be of type `{type_}`, but is of type `{type(value)}` instead."
    )
