# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from collections.abc import Callable
from typing import TypeAlias, final

import torch
from torch import Tensor
from typing_extensions import override

from nmtsearch.data import Sentence, Sentences, VocabularyInfo
from nmtsearch.device import Device
from nmtsearch.error import InvalidOperationError
from nmtsearch.scorers import WORDS_KEY, TensorScorer, TensorState

VOCAB_INFO = VocabularyInfo(size=8, unk_idx=1, bos_idx=2, eos_idx=3, pad_idx=0)

EOS_IDX = 3

# Computes `(N, V)` logits from the last words, the number of emitted words,
# and the source length of each row.
LogitsFn: TypeAlias = Callable[[Tensor, Tensor, Tensor], Tensor]


def make_sentences(*lengths: int) -> Sentences:
    return Sentences(
        Sentence(line_num, [4 + (i % 4) for i in range(length)])
        for line_num, length in enumerate(lengths)
    )


def base_logits(num_rows: int, vocab_size: int, device: Device) -> Tensor:
    """Returns distinct, descending logits so that no two words tie."""
    # (V)
    logits = -0.5 * torch.arange(vocab_size, device=device, dtype=torch.float32)

    # (V) -> (N, V)
    return logits.expand(num_rows, -1).clone()


def eos_at_source_length(words: Tensor, lengths: Tensor, src_lens: Tensor) -> Tensor:
    """Prefers EOS once a row has emitted as many words as its source."""
    logits = base_logits(words.size(0), VOCAB_INFO.size, words.device)

    eos_logits = torch.full_like(logits[:, EOS_IDX], -10.0)

    eos_logits[lengths >= src_lens] = 10.0

    logits[:, EOS_IDX] = eos_logits

    return logits


def always_eos(words: Tensor, lengths: Tensor, src_lens: Tensor) -> Tensor:
    logits = base_logits(words.size(0), VOCAB_INFO.size, words.device)

    logits[:, EOS_IDX] = 10.0

    return logits


def never_eos(words: Tensor, lengths: Tensor, src_lens: Tensor) -> Tensor:
    logits = base_logits(words.size(0), VOCAB_INFO.size, words.device)

    logits[:, EOS_IDX] = -100.0

    return logits


@final
class ToyScorer(TensorScorer):
    """Scores words with a fixed function of the row state."""

    def __init__(
        self,
        logits_fn: LogitsFn,
        device: Device,
        *,
        vocab_info: VocabularyInfo = VOCAB_INFO,
    ) -> None:
        super().__init__(device)

        self._logits_fn = logits_fn
        self._vocab_info = vocab_info
        self._src_lens: Tensor | None = None

        self.num_encode_calls = 0
        self.num_clean_up_calls = 0
        self.decoded_num_rows: list[int] = []

    @override
    def _encode(self, sentences: Sentences) -> None:
        self.num_encode_calls += 1

        self._src_lens = torch.tensor(
            [len(s) for s in sentences], device=self._device, dtype=torch.int64
        )

    @override
    def _begin_sentence_state(self, state: TensorState, batch_size: int) -> None:
        if self._src_lens is None:
            raise InvalidOperationError("`encode()` must be called first.")

        state["length"] = torch.zeros((batch_size,), device=self._device, dtype=torch.int64)  # fmt: skip

        state["src_len"] = self._src_lens.clone()

    @override
    def _step(self, state: TensorState, next_state: TensorState) -> Tensor:
        self.decoded_num_rows.append(state.num_rows)

        lengths = state["length"]

        next_state["length"] = lengths + 1
        next_state["src_len"] = state["src_len"]

        return self._logits_fn(state[WORDS_KEY], lengths, state["src_len"])

    @override
    def _clean_up(self) -> None:
        self.num_clean_up_calls += 1

        self._src_lens = None

    @property
    @override
    def vocab_info(self) -> VocabularyInfo:
        return self._vocab_info
