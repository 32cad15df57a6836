# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence, Set
from typing import final

from typing_extensions import override


class VocabFilter(ABC):
    """Computes the target vocabulary shortlist of a batch."""

    @abstractmethod
    def get_filtered_vocab(self, source_words: Set[int], vocab_size: int) -> list[int]:
        """
        :param source_words:
            The distinct source words of the batch.
        :param vocab_size:
            The size of the full target vocabulary.

        :returns:
            The sorted target vocabulary indices to consider, all less than
            ``vocab_size``.
        """


@final
class LexicalShortlistFilter(VocabFilter):
    """
    Builds the shortlist from a lexical translation table.

    The shortlist is the union of the ``num_first_words`` lowest target indices
    (typically the most frequent words), the ``special_indices``, and the best
    translation candidates of each source word.
    """

    _table: Mapping[int, Sequence[int]]
    _max_per_word: int | None
    _num_first_words: int
    _special_indices: tuple[int, ...]

    def __init__(
        self,
        table: Mapping[int, Sequence[int]],
        *,
        max_per_word: int | None = None,
        num_first_words: int = 0,
        special_indices: Iterable[int] = (),
    ) -> None:
        """
        :param table:
            The target candidates of each source word, best first.
        :param max_per_word:
            If not ``None``, the maximum number of candidates to take per
            source word.
        :param num_first_words:
            The number of lowest target indices to always include.
        :param special_indices:
            The target indices to always include (e.g. EOS and UNK).
        """
        if max_per_word is not None and max_per_word < 1:
            raise ValueError(
                f"`max_per_word` must be greater than or equal to 1, but is {max_per_word} instead."
            )

        if num_first_words < 0:
            raise ValueError(
                f"`num_first_words` must be greater than or equal to 0, but is {num_first_words} instead."
            )

        self._table = table
        self._max_per_word = max_per_word
        self._num_first_words = num_first_words
        self._special_indices = tuple(special_indices)

    @override
    def get_filtered_vocab(self, source_words: Set[int], vocab_size: int) -> list[int]:
        indices = set(range(min(self._num_first_words, vocab_size)))

        indices.update(self._special_indices)

        for word in source_words:
            candidates = self._table.get(word)
            if candidates is None:
                continue

            if self._max_per_word is not None:
                candidates = candidates[: self._max_per_word]

            indices.update(candidates)

        filtered = sorted(i for i in indices if 0 <= i < vocab_size)

        if not filtered:
            raise ValueError(
                "The shortlist of the batch is empty. Set `special_indices` or `num_first_words`."
            )

        return filtered
