"""
Pytest configuration and shared fixtures for VarGMM tests.

This module provides:
    - A builder for prepared (normalized) variant data sets
    - Synthetic two-population annotation data
    - Variant table files for the command line programs
"""

import numpy as np
import pytest

from vargmm.models.variants import Context, Data


def build_data(annotations, quality=None, is_known=None, is_transition=None, allele_count=None, weight=None,
               names=None, context=None):
    annotations = np.asarray(annotations, dtype=float)
    n = annotations.shape[0]
    quality = np.zeros(n) if quality is None else quality
    is_known = np.zeros(n, dtype=bool) if is_known is None else is_known
    is_transition = np.zeros(n, dtype=bool) if is_transition is None else is_transition
    allele_count = np.ones(n, dtype=int) if allele_count is None else allele_count
    weight = np.ones(n) if weight is None else weight

    data = Data(context=Context(names=names) if context is None else context)
    for row in zip(annotations, allele_count, quality, is_known, is_transition, weight):
        values, ac, qual, known, transition, w = row
        data.deposit(values, allele_count=int(ac), quality=float(qual), is_known=bool(known),
                     is_transition=bool(transition), weight=float(w))
    return data.prepare()


@pytest.fixture
def make_data():
    """Provide the data set builder."""
    return build_data


@pytest.fixture
def two_population_annotations():
    """Two overlapping populations in two annotation dimensions."""
    rng = np.random.default_rng(7)
    first = rng.normal(loc=(-1.5, 0.0), scale=1.0, size=(200, 2))
    second = rng.normal(loc=(1.5, 0.0), scale=1.0, size=(200, 2))
    return np.vstack([first, second])


@pytest.fixture
def two_population_data(make_data, two_population_annotations):
    """Prepared data set of the two populations, known variants on the right."""
    annotations = two_population_annotations
    n = annotations.shape[0]
    return make_data(annotations,
                     quality=np.linspace(0.0, 100.0, n),
                     is_known=annotations[:, 0] > 0.0,
                     is_transition=np.arange(n) % 3 != 0,
                     allele_count=np.arange(n) % 4 + 1,
                     names=["QD", "SB"])


@pytest.fixture
def variant_table(tmp_path, two_population_annotations):
    """Write the two populations as a tab-separated variant table and return its path."""
    path = tmp_path / "variants.tsv"
    annotations = two_population_annotations
    with open(path, "w") as f:
        f.write("#AC\tQUAL\tKNOWN\tTI\tQD\tSB\tDP\n")
        f.write("# a comment line\n")
        for i, (qd, sb) in enumerate(annotations):
            f.write("%i\t%.2f\t%i\t%i\t%r\t%r\t%i\n" % (
                i % 4 + 1, 100.0*i/len(annotations), int(qd > 0.0), int(i % 3 != 0), float(qd), float(sb),
                10 + i % 17))
    return path
