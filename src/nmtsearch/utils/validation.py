# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
Helper types for configuration validation.

A configuration dataclass that supports validation exposes a
``validate(self) -> ValidationResult`` method:

.. code:: python

    from dataclasses import dataclass

    from nmtsearch.utils.validation import ValidationResult

    @dataclass
    class FooConfig:
        beam_size: int

        def validate(self) -> ValidationResult:
            result = ValidationResult()

            if self.beam_size < 1:
                result.add_error("`beam_size` must be a positive integer.")

            return result
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, final, runtime_checkable


@runtime_checkable
class Validatable(Protocol):
    """Represents the protocol for validatable objects."""

    def validate(self) -> ValidationResult:
        """Validates the state of the object."""


@final
class ValidationResult:
    """Holds the result of a :meth:`~Validatable.validate` call."""

    def __init__(self) -> None:
        self._errors: list[str] = []

    def add_error(self, message: str) -> None:
        """Adds an error message to the result."""
        self._errors.append(message)

    def has_error(self) -> bool:
        return bool(self._errors)

    @property
    def errors(self) -> Sequence[str]:
        return self._errors

    def __str__(self) -> str:
        return " ".join(self._errors)


class ValidationError(Exception):
    """Raised when a validation error occurs."""

    result: ValidationResult

    def __init__(self, result: ValidationResult | str) -> None:
        if isinstance(result, str):
            tmp = ValidationResult()

            tmp.add_error(result)

            result = tmp

        super().__init__(str(result))

        self.result = result

    def __str__(self) -> str:
        return str(self.result)


def validate(obj: object) -> None:
    """
    Validates ``obj`` if it is :class:`Validatable`.

    :raises ValidationError: If ``obj`` has a validation error.
    """
    if not isinstance(obj, Validatable):
        return

    result = obj.validate()

    if result.has_error():
        raise ValidationError(result)
