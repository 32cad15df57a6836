# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

import pytest
import torch

from nmtsearch.device import CommandStream
from nmtsearch.ops import gather_rows, reduce_sum
from tests.common import assert_equal, device


class TestGatherRows:
    def test_call_works_with_identity_indices(self) -> None:
        source = torch.arange(24, device=device, dtype=torch.float32).view(4, 3, 2)

        dest = torch.empty((0,), device=device)

        out = gather_rows(dest, source, list(range(4)))

        assert out is dest

        assert_equal(dest, source)

    def test_call_works_with_repeated_indices(self) -> None:
        source = torch.arange(12, device=device, dtype=torch.float32).view(3, 4)

        dest = torch.empty((0,), device=device)

        gather_rows(dest, source, [0, 0, 2])

        assert dest.shape == (3, 4)

        assert_equal(dest[0], source[0])
        assert_equal(dest[1], source[0])
        assert_equal(dest[2], source[2])

    def test_call_works_with_4d_source_and_tensor_indices(self) -> None:
        source = torch.arange(48, device=device, dtype=torch.float32).view(3, 2, 4, 2)

        dest = torch.zeros((5, 2, 4, 2), device=device)

        indices = torch.tensor([2, 1, 2], device=device)

        gather_rows(dest, source, indices)

        assert dest.shape == (3, 2, 4, 2)

        assert_equal(dest, source[[2, 1, 2]])

    def test_call_does_not_modify_source(self) -> None:
        source = torch.arange(6, device=device, dtype=torch.int64).view(3, 2)

        expected = source.clone()

        dest = torch.empty((0,), device=device, dtype=torch.int64)

        gather_rows(dest, source, [2, 0])

        dest.fill_(-1)

        assert_equal(source, expected)

    def test_call_works_with_empty_indices(self) -> None:
        source = torch.ones((3, 2), device=device)

        dest = torch.empty((0,), device=device)

        gather_rows(dest, source, [])

        assert dest.shape == (0, 2)

    def test_call_raises_error_when_dest_shares_storage(self) -> None:
        source = torch.ones((3, 2), device=device)

        with pytest.raises(
            ValueError, match=r"^`dest` and `source` must not share storage\.$"
        ):
            gather_rows(source, source, [0, 1])

        with pytest.raises(
            ValueError, match=r"^`dest` and `source` must not share storage\.$"
        ):
            gather_rows(source.view(6), source, [0, 1])

    def test_call_raises_error_when_dtypes_differ(self) -> None:
        source = torch.ones((3, 2), device=device)

        dest = torch.empty((0,), device=device, dtype=torch.int64)

        with pytest.raises(
            ValueError,
            match=r"^`dest` must be of the same data type as `source` \(torch\.float32\), but is of type torch\.int64 instead\.$",
        ):
            gather_rows(dest, source, [0])

    def test_call_raises_error_when_source_has_more_than_4_dims(self) -> None:
        source = torch.ones((1, 1, 1, 1, 1), device=device)

        dest = torch.empty((0,), device=device)

        with pytest.raises(
            ValueError,
            match=r"^`source` must have at most 4 dimensions, but has 5 dimensions instead\.$",
        ):
            gather_rows(dest, source, [0])

    def test_call_raises_error_when_indices_are_not_1d(self) -> None:
        source = torch.ones((3, 2), device=device)

        dest = torch.empty((0,), device=device)

        indices = torch.zeros((2, 2), device=device, dtype=torch.int64)

        with pytest.raises(
            ValueError,
            match=r"^`row_indices` must be one dimensional, but has 2 dimensions instead\.$",
        ):
            gather_rows(dest, source, indices)


class TestReduceSum:
    def test_call_returns_zero_for_zeros(self) -> None:
        buffer = torch.zeros((2, 3, 4, 5), device=device)

        assert reduce_sum(buffer) == 0

    def test_call_returns_single_nonzero_element(self) -> None:
        for pos in [(0, 0, 0, 0), (1, 2, 3, 4), (0, 1, 3, 2)]:
            buffer = torch.zeros((2, 3, 4, 5), device=device)

            buffer[pos] = 2.5

            assert reduce_sum(buffer) == 2.5

    def test_call_works_with_integers(self) -> None:
        buffer = torch.arange(10, device=device, dtype=torch.int64).view(2, 5)

        s = reduce_sum(buffer)

        assert isinstance(s, int)

        assert s == 45

    def test_call_works_with_stream(self) -> None:
        buffer = torch.ones((4, 4), device=device)

        stream = CommandStream(device)

        with stream.submit():
            buffer = buffer * 2.0

        assert reduce_sum(buffer, stream=stream) == 32.0

    def test_call_returns_zero_for_empty_buffer(self) -> None:
        buffer = torch.empty((0, 3), device=device)

        assert reduce_sum(buffer) == 0
