# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import TypeAlias, final

from nmtsearch.data import Sentences
from nmtsearch.error import InternalError


@dataclass
class Hypothesis:
    """Represents one candidate continuation in a beam."""

    word: int
    """The target vocabulary index predicted by this hypothesis."""

    score: float
    """The cumulative log probability of the sequence ending here."""

    batch_idx: int
    """The batch row of the sentence this hypothesis belongs to."""

    prev_idx: int
    """The row of the parent hypothesis in the previous decoder state."""

    parent: int | None
    """The index of the parent in the arena of the owning :class:`History`, or
    ``None`` for a seed."""

    length: int
    """The number of words emitted up to and including this hypothesis."""

    node_idx: int | None = None
    """The index of this hypothesis in the arena of the owning :class:`History`.
    Assigned once, when the hypothesis is added to the history."""


Beam: TypeAlias = list[Hypothesis]

Beams: TypeAlias = list[Beam]


@final
@dataclass
class TranslationResult:
    """Holds one output sequence of a sentence."""

    words: list[int]
    """The target vocabulary indices, ending with EOS if :attr:`finished`."""

    score: float
    """The score used for ranking, normalized by length if requested."""

    finished: bool
    """If ``False``, the sequence was truncated by the step bound."""


@final
class History:
    """Holds every hypothesis created for one sentence."""

    _line_num: int
    _eos_idx: int
    _normalize_scores: bool
    _hyps: list[Hypothesis]
    _finished: list[int]
    _active: list[int]

    def __init__(
        self,
        batch_idx: int,
        line_num: int,
        eos_idx: int,
        normalize_scores: bool,
        *,
        seed_word: int = 0,
    ) -> None:
        self._line_num = line_num
        self._eos_idx = eos_idx
        self._normalize_scores = normalize_scores

        seed = Hypothesis(
            seed_word, 0.0, batch_idx, prev_idx=batch_idx, parent=None, length=0
        )

        seed.node_idx = 0

        self._hyps = [seed]

        self._finished = []

        self._active = [0]

    def add(self, beam: Beam) -> None:
        """Records the hypotheses selected for this sentence in one step."""
        active = []

        for hyp in beam:
            if hyp.node_idx is not None:
                raise InternalError(
                    f"The hypothesis is already part of a history at index {hyp.node_idx}."
                )

            if hyp.parent is None or hyp.parent >= len(self._hyps):
                raise InternalError(
                    f"The parent of the hypothesis is expected to be in the history, but is {hyp.parent} instead."
                )

            node_idx = len(self._hyps)

            hyp.node_idx = node_idx

            self._hyps.append(hyp)

            if hyp.word == self._eos_idx:
                self._finished.append(node_idx)
            else:
                active.append(node_idx)

        self._active = active

    @property
    def seed(self) -> Hypothesis:
        return self._hyps[0]

    @property
    def line_num(self) -> int:
        return self._line_num

    @property
    def num_finished(self) -> int:
        return len(self._finished)

    def nbest(self, n: int | None = None) -> list[TranslationResult]:
        """
        Returns the output sequences of the sentence, best first.

        Finished sequences are ranked before the sequences that were still
        active when decoding stopped.

        :param n:
            If not ``None``, the maximum number of sequences to return.
        """
        results = self._rank(self._finished, finished=True)

        # The seed only remains active if no step was taken.
        if self._active != [0]:
            results.extend(self._rank(self._active, finished=False))

        if n is not None:
            del results[n:]

        return results

    def best(self) -> TranslationResult | None:
        results = self.nbest(1)

        return results[0] if results else None

    def _rank(self, node_indices: list[int], finished: bool) -> list[TranslationResult]:
        results = [
            TranslationResult(self._backtrack(i), self._final_score(i), finished)
            for i in node_indices
        ]

        # `sort` is stable; equal scores keep their creation order.
        results.sort(key=lambda r: r.score, reverse=True)

        return results

    def _backtrack(self, node_idx: int) -> list[int]:
        words = []

        hyp = self._hyps[node_idx]

        while hyp.parent is not None:
            words.append(hyp.word)

            hyp = self._hyps[hyp.parent]

        words.reverse()

        return words

    def _final_score(self, node_idx: int) -> float:
        hyp = self._hyps[node_idx]

        if self._normalize_scores:
            return hyp.score / hyp.length

        return hyp.score

    def __len__(self) -> int:
        """Returns the number of hypotheses, including the seed."""
        return len(self._hyps)


@final
class Histories(Sequence[History]):
    """Holds the histories of all sentences of a batch."""

    _histories: list[History]

    def __init__(
        self,
        sentences: Sentences,
        eos_idx: int,
        normalize_scores: bool,
        *,
        seed_word: int = 0,
    ) -> None:
        self._histories = [
            History(
                batch_idx, s.line_num, eos_idx, normalize_scores, seed_word=seed_word
            )
            for batch_idx, s in enumerate(sentences)
        ]

    def get_first_hyps(self) -> Beam:
        """Returns the seed hypothesis of each sentence."""
        return [h.seed for h in self._histories]

    def add(self, beams: Beams) -> None:
        """Records the hypotheses selected in one decoding step."""
        if len(beams) != len(self._histories):
            raise InternalError(
                f"The number of beams is expected to be {len(self._histories)}, but is {len(beams)} instead."
            )

        for batch_idx, (history, beam) in enumerate(zip(self._histories, beams)):
            for hyp in beam:
                if hyp.batch_idx != batch_idx:
                    raise InternalError(
                        f"The beam of row {batch_idx} contains a hypothesis of row {hyp.batch_idx}."
                    )

            history.add(beam)

    def sorted_by_line_num(self) -> list[History]:
        return sorted(self._histories, key=lambda h: h.line_num)

    def __getitem__(self, index: int) -> History:  # type: ignore[override]
        return self._histories[index]

    def __len__(self) -> int:
        return len(self._histories)

    def __iter__(self) -> Iterator[History]:
        return iter(self._histories)
