# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from torch import Tensor

from nmtsearch.data import Sentences, VocabularyInfo
from nmtsearch.history import Beam


class State(ABC):
    """
    Holds the decoder state of a scorer for every active hypothesis.

    Row ``i`` of a state belongs to hypothesis ``i`` of the beam it was built
    for. States are owned by :class:`~nmtsearch.search.Search` and are replaced
    row-wise at every step instead of being shared.
    """

    @property
    @abstractmethod
    def num_rows(self) -> int:
        """The number of hypotheses held by the state."""

    @abstractmethod
    def debug(self, verbosity: int = 1) -> str:
        """Returns a human-readable summary of the state."""


class Scorer(ABC):
    """
    Represents a model that scores the next target word of each hypothesis.

    A scorer keeps sentence-scoped data (e.g. the encoder output) between
    :meth:`encode` and :meth:`clean_up_after_sentence`.
    """

    @abstractmethod
    def encode(self, sentences: Sentences) -> None:
        """Encodes ``sentences`` for the upcoming decoding steps."""

    @abstractmethod
    def new_state(self) -> State:
        """Allocates an empty state."""

    @abstractmethod
    def begin_sentence_state(self, state: State, batch_size: int) -> None:
        """Initializes ``state`` with one seed row per sentence."""

    @abstractmethod
    def decode(self, state: State, next_state: State, beam_sizes: Sequence[int]) -> None:
        """
        Advances ``state`` by one step.

        The decoder state after the step is written to ``next_state`` and the
        next-word log probabilities of each row are exposed through
        :attr:`probs`.

        :param beam_sizes:
            The current beam size of each sentence of the batch.
        """

    @abstractmethod
    def assemble_beam_state(
        self, next_state: State, survivors: Beam, state: State
    ) -> None:
        """
        Rebuilds ``state`` from the rows of ``next_state`` that survived.

        Row ``i`` of ``state`` receives row ``survivors[i].prev_idx`` of
        ``next_state``. ``next_state`` is not modified.
        """

    @abstractmethod
    def filter(self, filter_indices: Sequence[int]) -> None:
        """
        Restricts the next-word distributions to ``filter_indices``.

        Column ``j`` of :attr:`probs` will then belong to the vocabulary index
        ``filter_indices[j]``.
        """

    @abstractmethod
    def clean_up_after_sentence(self) -> None:
        """Releases the data kept since the last :meth:`encode` call."""

    @property
    @abstractmethod
    def probs(self) -> Tensor:
        """
        The log probabilities computed by the last :meth:`decode` call.
        *Shape:* :math:`(N,V)`, where :math:`N` is the number of rows of the
        decoded state and :math:`V` is the vocabulary or shortlist size.
        """

    @property
    @abstractmethod
    def vocab_info(self) -> VocabularyInfo:
        """The target vocabulary of the scorer."""

    @property
    def vocab_size(self) -> int:
        """The size of the full target vocabulary."""
        return self.vocab_info.size

    @property
    def name(self) -> str:
        return type(self).__name__
