# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: long running simulations, deselect with "
                                       "'-m \"not slow\"'")
