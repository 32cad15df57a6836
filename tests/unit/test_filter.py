# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

import pytest

from nmtsearch.filter import LexicalShortlistFilter

TABLE = {
    10: [7, 5, 9],
    11: [5, 12],
    12: [30],
}


class TestLexicalShortlistFilter:
    def test_get_filtered_vocab_works(self) -> None:
        vocab_filter = LexicalShortlistFilter(TABLE, special_indices=[1, 2])

        indices = vocab_filter.get_filtered_vocab({10, 11, 99}, vocab_size=20)

        assert indices == [1, 2, 5, 7, 9, 12]

    def test_get_filtered_vocab_works_with_max_per_word(self) -> None:
        vocab_filter = LexicalShortlistFilter(TABLE, max_per_word=1)

        indices = vocab_filter.get_filtered_vocab({10, 11}, vocab_size=20)

        assert indices == [5, 7]

    def test_get_filtered_vocab_works_with_first_words(self) -> None:
        vocab_filter = LexicalShortlistFilter(TABLE, num_first_words=3)

        indices = vocab_filter.get_filtered_vocab({11}, vocab_size=20)

        assert indices == [0, 1, 2, 5, 12]

    def test_get_filtered_vocab_drops_indices_outside_vocabulary(self) -> None:
        vocab_filter = LexicalShortlistFilter(TABLE, special_indices=[1])

        indices = vocab_filter.get_filtered_vocab({10, 12}, vocab_size=8)

        assert indices == [1, 5, 7]

    def test_get_filtered_vocab_raises_error_when_shortlist_is_empty(self) -> None:
        vocab_filter = LexicalShortlistFilter(TABLE)

        with pytest.raises(
            ValueError,
            match=r"^The shortlist of the batch is empty\. Set `special_indices` or `num_first_words`\.$",
        ):
            vocab_filter.get_filtered_vocab({99}, vocab_size=20)

    def test_init_raises_error_when_max_per_word_is_invalid(self) -> None:
        with pytest.raises(
            ValueError,
            match=r"^`max_per_word` must be greater than or equal to 1, but is 0 instead\.$",
        ):
            LexicalShortlistFilter(TABLE, max_per_word=0)
