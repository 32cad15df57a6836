# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations


class InternalError(Exception):
    pass


class InvalidOperationError(Exception):
    pass


class AlreadyExistsError(Exception):
    pass


class ScorerError(Exception):
    """Raised when a scorer produces an unusable next-step distribution."""

    def __init__(self, step_nr: int, message: str) -> None:
        super().__init__(message)

        self.step_nr = step_nr
