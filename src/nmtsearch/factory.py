# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Final, TypeAlias

from nmtsearch.best_hyps import BestHyps, StandardBestHyps
from nmtsearch.config import SearchConfig
from nmtsearch.device import Device, detect_default_device
from nmtsearch.filter import VocabFilter
from nmtsearch.registry import Registry
from nmtsearch.scorer import Scorer
from nmtsearch.search import Search
from nmtsearch.utils.validation import validate

STANDARD_BEST_HYPS: Final = "standard"


BestHypsFactory: TypeAlias = Callable[[], BestHyps]


best_hyps_factories: Final = Registry[BestHypsFactory]()


class UnknownBestHypsError(LookupError):
    name: str

    def __init__(self, name: str) -> None:
        super().__init__(f"'{name}' is not a known beam selection strategy.")

        self.name = name


def register_best_hyps(name: str, factory: BestHypsFactory) -> None:
    best_hyps_factories.register(name, factory)


def create_best_hyps(name: str) -> BestHyps:
    """
    :raises UnknownBestHypsError: ``name`` is not registered.
    """
    try:
        factory = best_hyps_factories.get(name)
    except LookupError:
        raise UnknownBestHypsError(name) from None

    return factory()


def create_search(
    config: SearchConfig,
    scorers: Sequence[Scorer],
    *,
    vocab_filter: VocabFilter | None = None,
) -> Search:
    """
    Creates a :class:`Search` from ``config``.

    :raises ValidationError: ``config`` is not valid.
    :raises UnknownBestHypsError: ``config.best_hyps`` is not registered.
    """
    validate(config)

    if config.device is None:
        device = detect_default_device()
    else:
        device = Device(config.device)

    best_hyps = create_best_hyps(config.best_hyps)

    return Search(
        device,
        scorers,
        best_hyps,
        beam_size=config.beam_size,
        normalize_scores=config.normalize_scores,
        vocab_filter=vocab_filter,
        max_len_factor=config.max_len_factor,
    )


register_best_hyps(STANDARD_BEST_HYPS, StandardBestHyps)
