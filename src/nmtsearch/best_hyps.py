# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import final

import torch
from typing_extensions import override

from nmtsearch.error import InternalError
from nmtsearch.history import Beam, Beams, Hypothesis
from nmtsearch.scorer import Scorer


class BestHyps(ABC):
    """Represents a strategy that picks the next beam of each sentence."""

    @abstractmethod
    def calc_beam(
        self,
        prev_hyps: Beam,
        scorer: Scorer,
        filter_indices: Sequence[int] | None,
        beams: Beams,
        beam_sizes: Sequence[int],
    ) -> None:
        """
        Selects the continuations of ``prev_hyps``.

        :param prev_hyps:
            The active hypotheses, grouped by batch row. Row ``i`` of
            ``scorer.probs`` holds the next-word distribution of
            ``prev_hyps[i]``.
        :param scorer:
            The scorer whose distributions to select from.
        :param filter_indices:
            If not ``None``, the vocabulary index of each column of
            ``scorer.probs``.
        :param beams:
            The output beams, one per batch row. ``beams[i]`` must receive at
            most ``beam_sizes[i]`` hypotheses, best first.
        :param beam_sizes:
            The beam size of each batch row.
        """


@final
class StandardBestHyps(BestHyps):
    """
    Selects, for each sentence, the ``k`` best continuations over all of its
    active hypotheses, where ``k`` is the beam size of the sentence.
    """

    @override
    def calc_beam(
        self,
        prev_hyps: Beam,
        scorer: Scorer,
        filter_indices: Sequence[int] | None,
        beams: Beams,
        beam_sizes: Sequence[int],
    ) -> None:
        lprobs = scorer.probs

        if lprobs.size(0) != len(prev_hyps):
            raise InternalError(
                f"The number of rows of `scorer.probs` is expected to be {len(prev_hyps)}, but is {lprobs.size(0)} instead."
            )

        if len(beams) != len(beam_sizes):
            raise InternalError(
                f"The number of beams is expected to be {len(beam_sizes)}, but is {len(beams)} instead."
            )

        vocab_size = lprobs.size(1)

        if filter_indices is not None and len(filter_indices) != vocab_size:
            raise InternalError(
                f"The size of `filter_indices` is expected to be {vocab_size}, but is {len(filter_indices)} instead."
            )

        prev_scores = torch.tensor(
            [h.score for h in prev_hyps], device=lprobs.device, dtype=lprobs.dtype
        )

        # Make the probabilities contain cumulative scores for each hypothesis.
        # (N, V) + (N, 1) = (N, V)
        costs = lprobs + prev_scores.unsqueeze(-1)

        row_counts = [0] * len(beams)

        for hyp in prev_hyps:
            row_counts[hyp.batch_idx] += 1

        batch_indices = []

        top_scores_list = []
        top_indices_list = []

        # We split the hypotheses by batch row and treat each row separately.
        for batch_idx, row_costs in enumerate(costs.split(row_counts)):
            beam_size = beam_sizes[batch_idx]

            if row_costs.numel() == 0 or beam_size == 0:
                continue

            # (N_b, V) -> (N_b x V)
            row_costs = row_costs.reshape(-1)

            top_scores, top_indices = torch.topk(
                row_costs, k=min(beam_size, row_costs.numel())
            )

            batch_indices.append(batch_idx)

            top_scores_list.append(top_scores)
            top_indices_list.append(top_indices)

        if not batch_indices:
            return

        # A single read-back for all rows.
        top_scores_host = torch.cat(top_scores_list).tolist()
        top_indices_host = torch.cat(top_indices_list).tolist()

        offsets = [0] * len(beams)

        offset = 0

        for batch_idx, count in enumerate(row_counts):
            offsets[batch_idx] = offset

            offset += count

        pos = 0

        for batch_idx, top_scores in zip(batch_indices, top_scores_list):
            beam: Beam = []

            for _ in range(top_scores.numel()):
                flat_idx = top_indices_host[pos]

                prev_idx = offsets[batch_idx] + flat_idx // vocab_size

                word = flat_idx % vocab_size

                if filter_indices is not None:
                    word = filter_indices[word]

                prev_hyp = prev_hyps[prev_idx]

                if prev_hyp.node_idx is None:
                    raise InternalError("The parent hypothesis is not part of a history.")

                beam.append(
                    Hypothesis(
                        word,
                        top_scores_host[pos],
                        batch_idx,
                        prev_idx=prev_idx,
                        parent=prev_hyp.node_idx,
                        length=prev_hyp.length + 1,
                    )
                )

                pos += 1

            beams[batch_idx] = beam
