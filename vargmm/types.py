# This file is subject to the terms and conditions of the GPLv3 (see file 'LICENSE' as part of this source code package)

u"""
Submodule with all type definitions.
"""

import numpy as np

prob_type = np.float64
annotation_type = np.float64
large_float_type = np.float64
allele_count_type = np.uint32
count_type = np.int64
