# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

import pytest
import torch

from nmtsearch.best_hyps import StandardBestHyps
from nmtsearch.data import VocabularyInfo
from nmtsearch.filter import LexicalShortlistFilter
from nmtsearch.history import Histories
from nmtsearch.scorers import RnnModelConfig, RnnScorer, RnnTranslationModel
from nmtsearch.search import Search
from tests.common import device
from tests.unit.helper import make_sentences

VOCAB_INFO = VocabularyInfo(size=16, unk_idx=1, bos_idx=2, eos_idx=3, pad_idx=0)


def make_scorer(seed: int = 0) -> RnnScorer:
    torch.manual_seed(seed)

    config = RnnModelConfig(
        source_vocab_size=16, target_vocab_size=16, embed_dim=8, hidden_dim=16
    )

    model = RnnTranslationModel(config, device=device)

    return RnnScorer(model, VOCAB_INFO, device=device)


def best_words(histories: Histories) -> list[list[int]]:
    words = []

    for history in histories.sorted_by_line_num():
        result = history.best()

        assert result is not None

        words.append(result.words)

    return words


class TestRnnScorer:
    def test_translate_works(self) -> None:
        search = Search(device, [make_scorer()], StandardBestHyps(), beam_size=4)

        sentences = make_sentences(3, 5, 2)

        histories = search.translate(sentences)

        assert len(histories) == 3

        for history in histories.sorted_by_line_num():
            result = history.best()

            assert result is not None

            # At most `max_len_factor` times the longest sentence.
            assert 1 <= len(result.words) <= 15

            if result.finished:
                assert result.words[-1] == VOCAB_INFO.eos_idx

    def test_translate_is_deterministic(self) -> None:
        search = Search(device, [make_scorer()], StandardBestHyps(), beam_size=4)

        sentences = make_sentences(4, 2)

        words1 = best_words(search.translate(sentences))
        words2 = best_words(search.translate(sentences))

        assert words1 == words2

    def test_translate_stops_at_eos(self) -> None:
        scorer = make_scorer()

        with torch.no_grad():
            scorer.model.output_proj.bias[VOCAB_INFO.eos_idx] = 100.0

        search = Search(device, [scorer], StandardBestHyps(), beam_size=3)

        histories = search.translate(make_sentences(2, 4))

        assert best_words(histories) == [[3], [3]]

    def test_translate_works_with_ensemble(self) -> None:
        scorers = [make_scorer(seed=0), make_scorer(seed=1)]

        search = Search(device, scorers, StandardBestHyps(), beam_size=2)

        histories = search.translate(make_sentences(3, 1))

        assert len(best_words(histories)) == 2

    def test_translate_works_with_filter(self) -> None:
        vocab_filter = LexicalShortlistFilter(
            {4: [9, 10], 5: [11]}, special_indices=[VOCAB_INFO.eos_idx]
        )

        search = Search(
            device,
            [make_scorer()],
            StandardBestHyps(),
            beam_size=3,
            vocab_filter=vocab_filter,
        )

        histories = search.translate(make_sentences(2, 2))

        for history in histories:
            for result in history.nbest():
                assert set(result.words) <= {3, 9, 10, 11}

    def test_init_raises_error_when_vocabulary_size_does_not_match(self) -> None:
        config = RnnModelConfig(source_vocab_size=16, target_vocab_size=12)

        model = RnnTranslationModel(config, device=device)

        with pytest.raises(
            ValueError,
            match=r"^`vocab_info.size` must be equal to the target vocabulary size of `model` \(12\), but is 16 instead\.$",
        ):
            RnnScorer(model, VOCAB_INFO, device=device)
