# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
This module provides abstractions for managing PyTorch devices and the command
streams on which device work is queued.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Final, TypeAlias, final

import torch
from torch import Tensor

Device: TypeAlias = torch.device


CPU: Final = Device("cpu")


class EnvironmentVariableError(Exception):
    def __init__(self, var_name: str, message: str) -> None:
        super().__init__(message)

        self.var_name = var_name


def detect_default_device() -> Device:
    """
    Detects the default device of this process.

    The default device is determined by the following precedence:

    1) If ``NMTSEARCH_DEVICE`` environment variable is set, the specified
       device will be used.
    2) If CUDA is available, the current CUDA device will be used.
    3) CPU will be used.

    :raises EnvironmentVariableError: ``NMTSEARCH_DEVICE`` environment variable
        does not represent a device.
    """
    value = os.environ.get("NMTSEARCH_DEVICE")
    if value is not None:
        try:
            return Device(value)
        except RuntimeError:
            raise EnvironmentVariableError(
                "NMTSEARCH_DEVICE", f"`NMTSEARCH_DEVICE` environment variable is expected to specify a PyTorch device, but is '{value}' instead."  # fmt: skip
            ) from None

    if torch.cuda.is_available():
        return Device("cuda", index=torch.cuda.current_device())

    return CPU


@final
class CommandStream:
    """
    Orders the work submitted to a device.

    Work submitted within :meth:`submit` is queued asynchronously if the device
    supports it. Any result that feeds a control decision on the host must be
    awaited with :meth:`synchronize` or read with :meth:`read_back`.
    """

    def __init__(self, device: Device) -> None:
        self._device = device

        if device.type == "cuda":
            self._stream: torch.cuda.Stream | None = torch.cuda.Stream(device)
        else:
            self._stream = None

    @contextmanager
    def submit(self) -> Iterator[None]:
        """Makes this stream the current stream of its device."""
        if self._stream is None:
            yield
        else:
            with torch.cuda.stream(self._stream):
                yield

    def synchronize(self) -> None:
        """Waits for all work submitted to this stream to complete."""
        if self._stream is not None:
            self._stream.synchronize()

    def read_back(self, tensor: Tensor) -> list[object]:
        """Waits for the pending work and copies ``tensor`` to host memory."""
        self.synchronize()

        return tensor.tolist()  # type: ignore[no-any-return]

    @property
    def device(self) -> Device:
        return self._device
