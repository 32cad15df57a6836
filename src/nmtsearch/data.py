# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import final, overload

import torch
from torch import Tensor

from nmtsearch.device import Device


@dataclass(frozen=True)
class VocabularyInfo:
    """Describes the target vocabulary of a scorer."""

    size: int
    """The size of the vocabulary."""

    unk_idx: int | None
    """The index of the symbol that represents an unknown word (UNK)."""

    bos_idx: int | None
    """The index of the symbol that represents the beginning of a sentence (BOS)."""

    eos_idx: int | None
    """The index of the symbol that represents the end of a sentence (EOS)."""

    pad_idx: int | None
    """The index of the symbol that is used to pad a sentence (PAD)."""


@final
@dataclass(frozen=True)
class Sentence:
    """Represents a tokenized source sentence."""

    line_num: int
    """The position of the sentence in the original input."""

    words: tuple[int, ...]
    """The source vocabulary indices of the sentence."""

    def __init__(self, line_num: int, words: Iterable[int]) -> None:
        object.__setattr__(self, "line_num", line_num)
        object.__setattr__(self, "words", tuple(words))

    def __len__(self) -> int:
        return len(self.words)


@final
class Sentences(Sequence[Sentence]):
    """Represents a batch of source sentences translated together."""

    _sentences: tuple[Sentence, ...]
    _max_length: int

    def __init__(self, sentences: Iterable[Sentence]) -> None:
        self._sentences = tuple(sentences)

        if not self._sentences:
            raise ValueError("`sentences` must contain at least one sentence.")

        for idx, sentence in enumerate(self._sentences):
            if len(sentence) == 0:
                raise ValueError(
                    f"`sentences[{idx}]` (line {sentence.line_num}) must not be empty."
                )

        self._max_length = max(len(s) for s in self._sentences)

    @overload
    def __getitem__(self, index: int) -> Sentence: ...

    @overload
    def __getitem__(self, index: slice) -> Sequence[Sentence]: ...

    def __getitem__(self, index: int | slice) -> Sentence | Sequence[Sentence]:
        return self._sentences[index]

    def __len__(self) -> int:
        return len(self._sentences)

    def __iter__(self) -> Iterator[Sentence]:
        return iter(self._sentences)

    @property
    def max_length(self) -> int:
        """The length of the longest sentence in the batch."""
        return self._max_length

    def get_source_words(self) -> set[int]:
        """Returns the distinct source words of the batch."""
        words: set[int] = set()

        for sentence in self._sentences:
            words.update(sentence.words)

        return words

    def sort_by_length(self) -> Sentences:
        """Returns a copy of the batch ordered from the longest to the shortest."""
        return Sentences(sorted(self._sentences, key=len, reverse=True))

    def to_tensor(self, pad_idx: int, device: Device) -> tuple[Tensor, Tensor]:
        """
        Collates the batch.

        :returns:
            - The padded sentences. *Shape:* :math:`(N,S)`, where :math:`N` is
              the batch size and :math:`S` is :attr:`max_length`.
            - The sentence lengths. *Shape:* :math:`(N)`.
        """
        seqs = torch.full(
            (len(self._sentences), self._max_length), pad_idx, dtype=torch.int64
        )

        for row, sentence in enumerate(self._sentences):
            seqs[row, : len(sentence)] = torch.tensor(sentence.words, dtype=torch.int64)

        seq_lens = torch.tensor([len(s) for s in self._sentences], dtype=torch.int64)

        return seqs.to(device), seq_lens.to(device)
