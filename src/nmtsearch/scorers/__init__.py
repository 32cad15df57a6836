# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from nmtsearch.scorers.rnn import RnnModelConfig as RnnModelConfig
from nmtsearch.scorers.rnn import RnnScorer as RnnScorer
from nmtsearch.scorers.rnn import RnnTranslationModel as RnnTranslationModel
from nmtsearch.scorers.tensor import WORDS_KEY as WORDS_KEY
from nmtsearch.scorers.tensor import TensorScorer as TensorScorer
from nmtsearch.scorers.tensor import TensorState as TensorState
