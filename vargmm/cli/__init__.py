# This file is subject to the terms and conditions of the GPLv3 (see file 'LICENSE' as part of this source code package)

u"""
Subcommands of the vargmm-cli dispatcher, one module per command with a main(argv) function.
"""
