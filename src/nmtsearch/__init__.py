# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from nmtsearch.best_hyps import BestHyps as BestHyps
from nmtsearch.best_hyps import StandardBestHyps as StandardBestHyps
from nmtsearch.config import SearchConfig as SearchConfig
from nmtsearch.config import load_search_config as load_search_config
from nmtsearch.data import Sentence as Sentence
from nmtsearch.data import Sentences as Sentences
from nmtsearch.data import VocabularyInfo as VocabularyInfo
from nmtsearch.factory import create_search as create_search
from nmtsearch.filter import LexicalShortlistFilter as LexicalShortlistFilter
from nmtsearch.filter import VocabFilter as VocabFilter
from nmtsearch.history import Beam as Beam
from nmtsearch.history import Beams as Beams
from nmtsearch.history import Histories as Histories
from nmtsearch.history import History as History
from nmtsearch.history import Hypothesis as Hypothesis
from nmtsearch.history import TranslationResult as TranslationResult
from nmtsearch.scorer import Scorer as Scorer
from nmtsearch.scorer import State as State
from nmtsearch.search import Search as Search
from nmtsearch.search import StepHook as StepHook

__version__ = "0.1.0.dev0"
