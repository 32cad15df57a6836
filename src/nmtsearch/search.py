# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Sequence
from typing import Protocol, final

import torch
from torch.utils.hooks import RemovableHandle

from nmtsearch.best_hyps import BestHyps
from nmtsearch.data import Sentences
from nmtsearch.device import CommandStream, Device
from nmtsearch.error import InternalError
from nmtsearch.filter import VocabFilter
from nmtsearch.history import Beam, Beams, Histories
from nmtsearch.logging import log
from nmtsearch.scorer import Scorer, State
from nmtsearch.utils.stopwatch import Stopwatch


@final
class Search:
    """
    Translates batches of sentences with beam search over an ensemble of
    scorers.

    Each sentence of a batch starts with a single seed hypothesis. After the
    first step its beam is widened to ``beam_size`` and then shrinks by one for
    every hypothesis that predicts EOS, until no hypothesis is left or the
    step bound is reached.
    """

    _device: Device
    _scorers: list[Scorer]
    _best_hyps: BestHyps
    _vocab_filter: VocabFilter | None
    _beam_size: int
    _normalize_scores: bool
    _max_len_factor: int
    _eos_idx: int
    _seed_word: int
    _stream: CommandStream
    _filter_indices: list[int] | None
    _step_hooks: dict[int, StepHook]

    def __init__(
        self,
        device: Device,
        scorers: Sequence[Scorer],
        best_hyps: BestHyps,
        *,
        beam_size: int,
        normalize_scores: bool = False,
        vocab_filter: VocabFilter | None = None,
        max_len_factor: int = 3,
    ) -> None:
        """
        :param device:
            The device on which the scorers run.
        :param scorers:
            The ensemble of scorers. The first scorer drives the selection of
            the beams; every scorer is advanced at each step.
        :param best_hyps:
            The strategy that selects the beams.
        :param beam_size:
            The maximum beam size of a sentence.
        :param normalize_scores:
            If ``True``, ranks the output sequences by their length-normalized
            scores.
        :param vocab_filter:
            If not ``None``, restricts the target vocabulary of each batch to a
            shortlist.
        :param max_len_factor:
            The maximum number of steps as a multiple of the length of the
            longest sentence in a batch.
        """
        if not scorers:
            raise ValueError("`scorers` must contain at least one scorer.")

        if beam_size < 1:
            raise ValueError(
                f"`beam_size` must be greater than or equal to 1, but is {beam_size} instead."
            )

        if max_len_factor < 1:
            raise ValueError(
                f"`max_len_factor` must be greater than or equal to 1, but is {max_len_factor} instead."
            )

        vocab_info = scorers[0].vocab_info

        if vocab_info.eos_idx is None:
            raise ValueError(
                f"The vocabulary of `scorers[0]` ({scorers[0].name}) must have an EOS symbol."
            )

        for idx, scorer in enumerate(scorers[1:], start=1):
            if scorer.vocab_size != vocab_info.size:
                raise ValueError(
                    f"The vocabulary size of `scorers[{idx}]` ({scorer.name}) must be equal to the vocabulary size of `scorers[0]` ({vocab_info.size}), but is {scorer.vocab_size} instead."
                )

            if scorer.vocab_info.eos_idx != vocab_info.eos_idx:
                raise ValueError(
                    f"The EOS index of `scorers[{idx}]` ({scorer.name}) must be equal to the EOS index of `scorers[0]` ({vocab_info.eos_idx}), but is {scorer.vocab_info.eos_idx} instead."
                )

        self._device = device
        self._scorers = list(scorers)
        self._best_hyps = best_hyps
        self._vocab_filter = vocab_filter
        self._beam_size = beam_size
        self._normalize_scores = normalize_scores
        self._max_len_factor = max_len_factor
        self._eos_idx = vocab_info.eos_idx
        self._seed_word = vocab_info.bos_idx if vocab_info.bos_idx is not None else 0

        self._stream = CommandStream(device)

        self._filter_indices = None

        self._step_hooks = OrderedDict()

    @torch.inference_mode()
    def translate(self, sentences: Sentences) -> Histories:
        """
        Translates ``sentences``.

        The scorers are cleaned up after the call, whether it succeeds or not.

        :returns:
            The history of each sentence, from which the ranked output
            sequences can be read.
        """
        with Stopwatch(device=self._device) as watch:
            try:
                with self._stream.submit():
                    histories = self._do_translate(sentences)
            finally:
                self._clean_up_after_translation()

        log.info("Search took {:.3f}s for {} sentence(s).", watch.get_elapsed_time(), len(sentences))  # fmt: skip

        return histories

    def _do_translate(self, sentences: Sentences) -> Histories:
        if self._vocab_filter is not None:
            self._filter_target_vocab(sentences)

        states = self._encode(sentences)

        next_states = self._new_states()

        beam_sizes = [1] * len(sentences)

        histories = Histories(
            sentences, self._eos_idx, self._normalize_scores, seed_word=self._seed_word
        )

        prev_hyps = histories.get_first_hyps()

        max_num_steps = self._max_len_factor * sentences.max_length

        for step_nr in range(max_num_steps):
            for scorer, state, next_state in zip(self._scorers, states, next_states):
                scorer.decode(state, next_state, beam_sizes)

            if step_nr == 0:
                # The seed step only yields the first distribution of each
                # sentence; the full beam starts from here.
                beam_sizes = [self._beam_size] * len(sentences)

            survivors = self._calc_beam(
                step_nr, histories, beam_sizes, prev_hyps, states, next_states
            )

            if survivors is None:
                log.debug("All sentences are finished after {} step(s).", step_nr + 1)

                break

            prev_hyps = survivors
        else:
            log.debug("Reached the maximum number of steps ({}).", max_num_steps)

        return histories

    def _encode(self, sentences: Sentences) -> list[State]:
        states = []

        for scorer in self._scorers:
            scorer.encode(sentences)

            state = scorer.new_state()

            scorer.begin_sentence_state(state, len(sentences))

            states.append(state)

        return states

    def _new_states(self) -> list[State]:
        return [scorer.new_state() for scorer in self._scorers]

    def _calc_beam(
        self,
        step_nr: int,
        histories: Histories,
        beam_sizes: list[int],
        prev_hyps: Beam,
        states: list[State],
        next_states: list[State],
    ) -> Beam | None:
        # The selection reads the scores back to the host.
        self._stream.synchronize()

        batch_size = len(beam_sizes)

        beams: Beams = [[] for _ in range(batch_size)]

        self._best_hyps.calc_beam(
            prev_hyps, self._scorers[0], self._filter_indices, beams, beam_sizes
        )

        histories.add(beams)

        survivors: Beam = []

        for batch_idx, beam in enumerate(beams):
            beam_size = beam_sizes[batch_idx]

            for hyp in beam:
                if hyp.word != self._eos_idx:
                    survivors.append(hyp)
                else:
                    beam_sizes[batch_idx] -= 1

            if beam_sizes[batch_idx] < 0:
                raise InternalError(
                    f"The beam size of row {batch_idx} is negative ({beam_sizes[batch_idx]})."
                )

            if len(beam) > beam_size:
                raise InternalError(
                    f"The beam of row {batch_idx} is expected to have at most {beam_size} hypotheses, but has {len(beam)} instead."
                )

        if self._step_hooks:
            for hook in self._step_hooks.values():
                hook(step_nr, list(beam_sizes), survivors)

        if not survivors:
            return None

        for scorer, state, next_state in zip(self._scorers, states, next_states):
            scorer.assemble_beam_state(next_state, survivors, state)

        if log.is_enabled_for_debug():
            log.debug("Step {}: {} survivor(s), beam sizes {}.", step_nr, len(survivors), beam_sizes)  # fmt: skip

            for scorer, state in zip(self._scorers, states):
                log.debug("{} state: {}", scorer.name, state.debug())

        return survivors

    def _filter_target_vocab(self, sentences: Sentences) -> None:
        if self._vocab_filter is None:
            raise InternalError("`_vocab_filter` is `None`.")

        vocab_size = self._scorers[0].vocab_size

        source_words = sentences.get_source_words()

        filter_indices = self._vocab_filter.get_filtered_vocab(source_words, vocab_size)

        # Without EOS no sentence could finish before the step bound.
        if self._eos_idx not in filter_indices:
            log.warning("The shortlist does not contain the EOS index ({}). It will be added.", self._eos_idx)  # fmt: skip

            filter_indices = sorted([*filter_indices, self._eos_idx])

        self._filter_indices = filter_indices

        log.debug("Shortlist of {} target word(s) for {} source word(s).", len(self._filter_indices), len(source_words))  # fmt: skip

        for scorer in self._scorers:
            scorer.filter(self._filter_indices)

    def _clean_up_after_translation(self) -> None:
        self._filter_indices = None

        for scorer in self._scorers:
            scorer.clean_up_after_sentence()

    def register_step_hook(self, hook: StepHook) -> RemovableHandle:
        """Register a step hook on the search.

        The hook will be called after the beams of every step are selected.

        :param hook:
            The hook to register.

        :returns:
            A handle that can be used to remove the added hook by calling
            ``handle.remove()``.
        """
        handle = RemovableHandle(self._step_hooks)

        self._step_hooks[handle.id] = hook

        return handle

    @property
    def device(self) -> Device:
        return self._device

    @property
    def scorers(self) -> Sequence[Scorer]:
        return self._scorers

    @property
    def beam_size(self) -> int:
        return self._beam_size


class StepHook(Protocol):
    """Represents a hook to pass to :meth:`Search.register_step_hook`."""

    def __call__(self, step_nr: int, beam_sizes: list[int], survivors: Beam) -> None:
        """
        :param step_nr:
            The number of the step, starting from zero.
        :param beam_sizes:
            The beam size of each sentence after the step.
        :param survivors:
            The hypotheses that continue to the next step.
        """
