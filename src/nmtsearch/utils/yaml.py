# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO, TypeAlias, final

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError
from typing_extensions import override


class YamlLoader(ABC):
    @abstractmethod
    def load(self, input_: Path | IO[str]) -> list[object]:
        """
        :raises YamlError:
        :raises OSError:
        """


YamlError: TypeAlias = YAMLError


@final
class RuamelYamlLoader(YamlLoader):
    def __init__(self) -> None:
        self._yaml = YAML(typ="safe", pure=True)

    @override
    def load(self, input_: Path | IO[str]) -> list[object]:
        if isinstance(input_, Path):
            with input_.open(encoding="utf-8") as fp:
                return self.load(fp)

        it = self._yaml.load_all(input_)

        return list(it)
