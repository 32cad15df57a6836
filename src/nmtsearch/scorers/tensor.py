# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Iterator, Sequence
from typing import final

import torch
from torch import Tensor
from torch.nn.functional import log_softmax
from typing_extensions import override

from nmtsearch.data import Sentences
from nmtsearch.device import Device
from nmtsearch.error import InternalError, InvalidOperationError, ScorerError
from nmtsearch.history import Beam
from nmtsearch.ops import gather_rows, reduce_sum, shares_storage
from nmtsearch.scorer import Scorer, State

WORDS_KEY = "words"


@final
class TensorState(State):
    """
    Holds the decoder state as a set of named tensors.

    Dimension 0 of every tensor indexes the hypotheses. The tensor stored under
    :data:`WORDS_KEY` holds the last word of each hypothesis.
    """

    def __init__(self) -> None:
        self._tensors: dict[str, Tensor] = {}

    def __getitem__(self, key: str) -> Tensor:
        try:
            return self._tensors[key]
        except KeyError:
            raise LookupError(f"The state does not contain a '{key}' tensor.") from None

    def __setitem__(self, key: str, value: Tensor) -> None:
        self._tensors[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._tensors

    def items(self) -> Iterator[tuple[str, Tensor]]:
        return iter(self._tensors.items())

    def clear(self) -> None:
        self._tensors.clear()

    @property
    @override
    def num_rows(self) -> int:
        if WORDS_KEY in self._tensors:
            return self._tensors[WORDS_KEY].size(0)

        return 0

    @override
    def debug(self, verbosity: int = 1) -> str:
        parts = []

        for key, t in self._tensors.items():
            s = f"{key}={tuple(t.shape)}"

            if verbosity > 0:
                s = f"{s} sum={reduce_sum(t)}"

            parts.append(s)

        return " ".join(parts)


class TensorScorer(Scorer):
    """
    Represents a scorer whose state is a :class:`TensorState`.

    Subclasses compute the next-word logits in :meth:`_step`; this class takes
    care of the shortlist, of the normalization, and of rebuilding the state
    for the surviving hypotheses.
    """

    _device: Device
    _filter_indices: Tensor | None
    _probs: Tensor | None
    _step_nr: int

    def __init__(self, device: Device) -> None:
        self._device = device
        self._filter_indices = None
        self._probs = None
        self._step_nr = 0

    @final
    @override
    def encode(self, sentences: Sentences) -> None:
        self._step_nr = 0

        self._encode(sentences)

    @abstractmethod
    def _encode(self, sentences: Sentences) -> None: ...

    @final
    @override
    def new_state(self) -> TensorState:
        return TensorState()

    @final
    @override
    def begin_sentence_state(self, state: State, batch_size: int) -> None:
        state = self._as_tensor_state(state)

        state.clear()

        bos_idx = self.vocab_info.bos_idx

        # (N)
        state[WORDS_KEY] = torch.full(
            (batch_size,), 0 if bos_idx is None else bos_idx, device=self._device, dtype=torch.int64  # fmt: skip
        )

        self._begin_sentence_state(state, batch_size)

    @abstractmethod
    def _begin_sentence_state(self, state: TensorState, batch_size: int) -> None:
        """Adds the backend-specific tensors of the seed rows to ``state``."""

    @final
    @override
    def decode(
        self, state: State, next_state: State, beam_sizes: Sequence[int]
    ) -> None:
        state = self._as_tensor_state(state)

        next_state = self._as_tensor_state(next_state)

        # (N, V)
        logits = self._step(state, next_state)

        if logits.size(0) != state.num_rows:
            raise InternalError(
                f"The number of rows of the logits is expected to be {state.num_rows}, but is {logits.size(0)} instead."
            )

        if self._filter_indices is not None:
            # (N, V) -> (N, V_f)
            logits = logits.index_select(dim=-1, index=self._filter_indices)

        # (N, V)
        lprobs = log_softmax(logits, dim=-1, dtype=torch.float32)

        if lprobs.isnan().any():
            raise ScorerError(
                self._step_nr, f"{self.name} has produced one or more NaN probabilities at step {self._step_nr}. The search cannot continue."  # fmt: skip
            )

        self._probs = lprobs

        self._step_nr += 1

    @abstractmethod
    def _step(self, state: TensorState, next_state: TensorState) -> Tensor:
        """
        Computes one decoding step.

        Every tensor that must follow the hypotheses to the next step, except
        the last words, has to be written to ``next_state``. A tensor that
        does not change can be stored as is.

        :returns:
            The next-word logits over the full vocabulary. *Shape:*
            :math:`(N,V)`, where :math:`N` is the number of rows of ``state``.
        """

    @final
    @override
    def assemble_beam_state(
        self, next_state: State, survivors: Beam, state: State
    ) -> None:
        next_state = self._as_tensor_state(next_state)

        state = self._as_tensor_state(state)

        # (S)
        new_order = torch.tensor(
            [h.prev_idx for h in survivors], device=self._device, dtype=torch.int64
        )

        for key, t in next_state.items():
            # A tensor carried forward unchanged by `_step` is still referenced
            # by `state`, so it cannot be gathered into in place.
            if key in state and not shares_storage(state[key], t):
                dest = state[key]
            else:
                dest = t.new_empty((0,))

            state[key] = gather_rows(dest, t, new_order)

        # (S)
        state[WORDS_KEY] = torch.tensor(
            [h.word for h in survivors], device=self._device, dtype=torch.int64
        )

    @final
    @override
    def filter(self, filter_indices: Sequence[int]) -> None:
        if len(filter_indices) == 0:
            raise ValueError("`filter_indices` must contain at least one index.")

        self._filter_indices = torch.tensor(
            filter_indices, device=self._device, dtype=torch.int64
        )

    @final
    @override
    def clean_up_after_sentence(self) -> None:
        self._filter_indices = None

        self._probs = None

        self._clean_up()

    def _clean_up(self) -> None:
        pass

    @property
    @override
    def probs(self) -> Tensor:
        if self._probs is None:
            raise InvalidOperationError("`decode()` must be called before accessing `probs`.")  # fmt: skip

        return self._probs

    @property
    def device(self) -> Device:
        return self._device

    @staticmethod
    def _as_tensor_state(state: State) -> TensorState:
        if not isinstance(state, TensorState):
            raise TypeError(
                f"`state` must be of type `{TensorState}`, but is of type `{type(state)}` instead."
            )

        return state
