# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from argparse import ArgumentTypeError
from typing import cast

from pytest import Parser, Session

import tests.common
from nmtsearch.device import Device


def pytest_addoption(parser: Parser) -> None:
    parser.addoption(
        "--device",
        default="cpu",
        type=_parse_device,
        help="device on which to run tests (default: %(default)s)",
    )


def pytest_sessionstart(session: Session) -> None:
    tests.common.device = cast(Device, session.config.getoption("device"))


def _parse_device(value: str) -> Device:
    try:
        return Device(value)
    except RuntimeError:
        raise ArgumentTypeError(f"'{value}' is not a valid device name.")
