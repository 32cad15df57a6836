# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""Row-level primitives over device-resident tensors."""

from __future__ import annotations

from collections.abc import Sequence

import torch
from torch import Tensor

from nmtsearch.device import CommandStream

MAX_RANK = 4


def reduce_sum(buffer: Tensor, *, stream: CommandStream | None = None) -> int | float:
    """
    Sums all elements of ``buffer``.

    This is meant for diagnostics. The buffer is copied to host memory and
    accumulated in a single sequential pass, so do not call it on a hot path.

    :param buffer:
        The buffer to sum. *Shape:* Any, up to four dimensions.
    :param stream:
        If not ``None``, the stream to wait for before reading ``buffer``.
    """
    _check_rank(buffer, "buffer")

    if stream is None:
        values = buffer.detach().flatten().tolist()
    else:
        values = stream.read_back(buffer.detach().flatten())

    total: int | float = 0

    for value in values:
        total += value

    return total


def gather_rows(
    dest: Tensor, source: Tensor, row_indices: Tensor | Sequence[int]
) -> Tensor:
    """
    Copies the rows of ``source`` selected by ``row_indices`` into ``dest``.

    ``dest`` is resized in place to ``(len(row_indices), *source.shape[1:])``
    and its row ``i`` receives row ``row_indices[i]`` of ``source``. Indices
    can be in any order and can repeat. ``source`` is never modified.

    :param dest:
        The destination buffer. Must not share storage with ``source``.
    :param source:
        The source buffer. *Shape:* :math:`(N,*)`, where :math:`N` is the number
        of rows and :math:`*` is up to three additional dimensions.
    :param row_indices:
        The indices of the rows to copy. *Shape:* :math:`(M)`.

    :returns:
        ``dest``.
    """
    _check_rank(source, "source")

    if source.dim() == 0:
        raise ValueError("`source` must have at least one dimension.")

    if dest.dtype != source.dtype:
        raise ValueError(
            f"`dest` must be of the same data type as `source` ({source.dtype}), but is of type {dest.dtype} instead."
        )

    if dest.device != source.device:
        raise ValueError(
            f"`dest` must be on the same device as `source` ({source.device}), but is on {dest.device} instead."
        )

    if shares_storage(dest, source):
        raise ValueError("`dest` and `source` must not share storage.")

    if not isinstance(row_indices, Tensor):
        row_indices = torch.tensor(row_indices, device=source.device, dtype=torch.int64)  # fmt: skip
    elif row_indices.device != source.device:
        row_indices = row_indices.to(source.device)

    if row_indices.dim() != 1:
        raise ValueError(
            f"`row_indices` must be one dimensional, but has {row_indices.dim()} dimensions instead."
        )

    dest.resize_((row_indices.size(0),) + source.shape[1:])

    torch.index_select(source, dim=0, index=row_indices, out=dest)

    return dest


def _check_rank(t: Tensor, name: str) -> None:
    if t.dim() > MAX_RANK:
        raise ValueError(
            f"`{name}` must have at most {MAX_RANK} dimensions, but has {t.dim()} dimensions instead."
        )


def shares_storage(a: Tensor, b: Tensor) -> bool:
    """Returns ``True`` if ``a`` and ``b`` are backed by the same non-empty storage."""
    a_storage = a.untyped_storage()
    b_storage = b.untyped_storage()

    if a_storage.nbytes() == 0 or b_storage.nbytes() == 0:
        return False

    return bool(a_storage.data_ptr() == b_storage.data_ptr())
