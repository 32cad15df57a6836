# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import IO

from nmtsearch.utils.structured import StructureError, structure
from nmtsearch.utils.validation import ValidationResult, validate
from nmtsearch.utils.yaml import RuamelYamlLoader


@dataclass(kw_only=True)
class SearchConfig:
    """Holds the configuration of a :class:`~nmtsearch.search.Search`."""

    beam_size: int = 12
    """The maximum beam size of a sentence."""

    normalize_scores: bool = False
    """If ``True``, ranks output sequences by their length-normalized scores."""

    max_len_factor: int = 3
    """The maximum number of steps as a multiple of the longest sentence."""

    best_hyps: str = "standard"
    """The name of the beam selection strategy."""

    device: str | None = None
    """The device to run on. If ``None``, the default device is detected."""

    def validate(self) -> ValidationResult:
        result = ValidationResult()

        if self.beam_size < 1:
            result.add_error(
                f"`beam_size` must be greater than or equal to 1, but is {self.beam_size} instead."
            )

        if self.max_len_factor < 1:
            result.add_error(
                f"`max_len_factor` must be greater than or equal to 1, but is {self.max_len_factor} instead."
            )

        if not self.best_hyps:
            result.add_error("`best_hyps` must be a non-empty string.")

        return result


def load_search_config(input_: Path | IO[str]) -> SearchConfig:
    """
    Loads a :class:`SearchConfig` from a YAML document.

    :raises StructureError: The document does not describe a configuration.
    :raises ValidationError: The configuration is not valid.
    :raises YamlError: The document is not valid YAML.
    """
    loader = RuamelYamlLoader()

    docs = loader.load(input_)

    if len(docs) != 1:
        raise StructureError(
            f"The input must contain exactly one YAML document, but contains {len(docs)} instead."
        )

    obj = docs[0]

    if obj is None:
        obj = {}

    config = structure(obj, SearchConfig)

    validate(config)

    return config
