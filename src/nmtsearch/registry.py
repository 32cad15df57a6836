# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from collections.abc import Hashable
from typing import Generic, TypeVar, final

from nmtsearch.error import AlreadyExistsError

T = TypeVar("T")


@final
class Registry(Generic[T]):
    """Maps names to values, typically factories."""

    _entries: dict[Hashable, T]

    def __init__(self) -> None:
        self._entries = {}

    def get(self, key: Hashable) -> T:
        try:
            return self._entries[key]
        except KeyError:
            raise LookupError(f"The registry does not contain a '{key}' key.") from None

    def register(self, key: Hashable, value: T) -> None:
        if key in self._entries:
            raise AlreadyExistsError(f"The registry already contains a '{key}' key.")

        self._entries[key] = value
