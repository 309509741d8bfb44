# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

import logging

logger = logging.getLogger("detqmc")

# Logging format
frmt = "[%(asctime)s] %(name)s:%(levelname)-8s - %(message)s"
formatter = logging.Formatter(frmt, datefmt="%H:%M:%S")

# Set up console logger
sh = logging.StreamHandler()
sh.setLevel(logging.DEBUG)
sh.setFormatter(formatter)
logger.addHandler(sh)


def add_file_handler(file, level=logging.DEBUG, mode="w"):
    """Adds a file handler with the default format to the package logger."""
    fh = logging.FileHandler(file, mode=mode)
    fh.setLevel(level)
    fh.setFormatter(formatter)
    logger.addHandler(fh)
    return fh


# Set logging level
logger.setLevel(logging.WARNING)
logging.root.setLevel(logging.NOTSET)
