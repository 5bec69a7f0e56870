# This file is subject to the terms and conditions of the GPLv3 (see file 'LICENSE' as part of this source code package)

u"""
This file holds all the functions and types necessary for modelling normalized variant annotations with a mixture of
full-covariance multivariate Gaussians, fitted by Expectation-Maximization.

The EM loop runs for a fixed number of iterations and writes a checkpoint of the cluster parameters after every
iteration. There is no convergence test. Degenerate covariance matrices are not repaired: they abort the run with a
NumericalInstabilityError so that the caller can retry with fewer clusters or better behaved annotations.
"""

from .. import common, types
from .variants import Context
import numpy as np
from scipy import linalg
from termcolor import colored

RANDOM_SEED = 91801305
MIN_PROB = 1e-7  # floor for unnormalized responsibilities
MIN_SIGMA = 1e-5  # floor for unnormalized covariance entries
MIN_DETERMINANT = 1e-5
MIN_ERROR_RATE = 1e-9  # caps recalibrated quality at 90

ANNOTATION_PREFIX = "@!ANNOTATION"
ALLELECOUNT_PREFIX = "@!ALLELECOUNT"
CLUSTER_PREFIX = "@!CLUSTER"
CLUSTER_TERMINATOR = "-1"


class Cluster(object):
    """One weighted Gaussian component with cached inverse covariance and determinant"""

    def __init__(self, weight, mean, covariance):
        self.weight = float(weight)
        self.mean = np.array(mean, dtype=types.annotation_type)
        self.covariance = np.array(covariance, dtype=types.annotation_type)
        self.inverse = None
        self.determinant = None
        self.update()

    def update(self):  # must be called whenever the covariance changes
        try:
            self.determinant = float(linalg.det(self.covariance))
            self.inverse = linalg.inv(self.covariance)
        except (linalg.LinAlgError, ValueError) as e:
            raise common.NumericalInstabilityError(
                "Numerical Instability! covariance matrix is singular. Try running with fewer clusters and then with "
                "better behaved annotation values.", determinant=self.determinant) from e

    @property
    def num_features(self):
        return self.mean.size

    @property
    def denominator(self):
        return (2.0*np.pi)**(self.num_features/2.0) * np.abs(self.determinant)**0.5

    def quadratic_form(self, annotations):
        diff = np.atleast_2d(annotations) - self.mean
        return np.einsum("ij,jk,ik->i", diff, self.inverse, diff)

    def density(self, annotations):
        return np.exp(-0.5*self.quadratic_form(annotations))/self.denominator

    def __repr__(self):
        return "Cluster(weight=%.4f, mean=%s)" % (self.weight, common.pretty_probvector(self.mean))


def random_cluster(data, weight, rng):
    """
    Gaussian centered at a randomly drawn datum. The covariance is R*R^T for an upper triangular R with entries in
    [0.5, 1.0], which is symmetric and positive definite; the data is normalized so these are centered near 1.0.
    """
    num_features = data.num_features
    mean = data.annotations[rng.integers(data.num_data)]
    factor = np.triu(0.5 + 0.5*rng.random((num_features, num_features)))
    return Cluster(weight, mean, np.dot(factor, factor.T))


class Model(object):
    def __init__(self, num_gaussians, num_iterations=10, min_var_in_cluster=0, max_allele_count=0, context=None,
                 seed=RANDOM_SEED):
        assert num_gaussians > 0
        self.context = Context() if context is None else context
        self.num_gaussians = num_gaussians
        self.num_iterations = num_iterations
        self.min_var_in_cluster = min_var_in_cluster
        self.clusters = [None]*num_gaussians
        self.allele_count_factors = np.ones(max_allele_count + 1, dtype=types.large_float_type)
        self.num_variants = None  # support of the clusters, known after fitting
        self.explained_likelihood = None
        self.rng = np.random.default_rng(seed)

    def run(self, data, cluster_filename=None):
        self.generate_allele_count_prior(data)
        common.log(self._short_name, "clustering with %i variants" % data.num_data)
        return self.fit(data, cluster_filename, 0, self.num_gaussians)

    def generate_allele_count_prior(self, data):
        """Prior factor per allele count bucket: expected (harmonic) frequency divided by observed frequency."""
        size = self.allele_count_factors.size
        if size < 2:
            return self.allele_count_factors
        if data.max_allele_count >= size:
            raise common.MalformedInputError("Allele count %i exceeds the maximum allele count %i"
                                             % (data.max_allele_count, size - 1))

        expectation = 1.0/np.arange(1, size, dtype=types.large_float_type)
        expectation /= expectation.sum()
        actual = np.bincount(data.allele_count, minlength=size)[1:]/float(data.num_data)
        with np.errstate(divide="ignore"):
            self.allele_count_factors[1:] = expectation/actual
        return self.allele_count_factors

    def allele_count_prior(self, allele_count):
        if 0 < allele_count < self.allele_count_factors.size:
            return self.allele_count_factors[allele_count]
        return 1.0

    def fit(self, data, cluster_filename=None, start=0, stop=None):
        start, stop = self._cluster_range(start, stop)
        self.num_variants = data.num_data
        self.initialize(data, start, stop)

        for iteration in range(1, self.num_iterations + 1):
            responsibilities = self.e_step(data, start, stop)
            self.m_step(data, responsibilities, start, stop)
            if cluster_filename:
                write_model_file(self, "%s.%i" % (cluster_filename, iteration))
            common.log("EM", "#%3i | LL: %s | mix: %s" % (
                iteration, colored("%.5f" % self.explained_likelihood, "yellow"),
                colored(" ".join(["%2.2f" % c.weight for c in sorted(
                    self.clusters[start:stop], key=lambda c: c.weight, reverse=True)]), "green")))
            common.log(self._short_name, "finished iteration %i" % iteration)

        if cluster_filename:
            write_model_file(self, cluster_filename)
        return self

    def initialize(self, data, start=0, stop=None):
        start, stop = self._cluster_range(start, stop)
        weight = 1.0/(stop - start)
        for k in range(start, stop):
            self.clusters[k] = random_cluster(data, weight, self.rng)

    def e_step(self, data, start=0, stop=None):
        """
        Probability of each datum to belong to each cluster in [start, stop), returned as a matrix with one row per
        cluster. Each column sums to the weight of the datum.
        """
        start, stop = self._cluster_range(start, stop)
        prob = np.empty((stop - start, data.num_data), dtype=types.prob_type)

        for row, cluster in zip(prob, self.clusters[start:stop]):
            denominator = cluster.denominator
            if not np.isfinite(denominator) or cluster.determinant < 0.5*MIN_DETERMINANT:
                raise common.NumericalInstabilityError(
                    "Numerical Instability! determinant of covariance matrix <= 0. Try running with fewer clusters "
                    "and then with better behaved annotation values.",
                    determinant=cluster.determinant, denominator=denominator)

            quadratic_form = cluster.quadratic_form(data.annotations)
            row[:] = cluster.weight*np.exp(-0.5*quadratic_form)/denominator

            if np.any(quadratic_form < 0.0):
                i = int(np.argmin(quadratic_form))
                raise common.NumericalInstabilityError(
                    "Numerical Instability! covariance matrix no longer positive definite. Try running with fewer "
                    "clusters and then with better behaved annotation values.",
                    determinant=cluster.determinant, denominator=denominator,
                    quadratic_form=quadratic_form[i], probability=row[i])
            if np.any(row > 1.0):
                i = int(np.argmax(row))
                raise common.NumericalInstabilityError(
                    "Numerical Instability! probability distribution returns > 1.0. Try running with fewer clusters "
                    "and then with better behaved annotation values.",
                    determinant=cluster.determinant, denominator=denominator,
                    quadratic_form=quadratic_form[i], probability=row[i])

        self.explained_likelihood = prob.sum(dtype=types.large_float_type)/data.num_data
        common.log(self._short_name, "explained likelihood = %.5f" % self.explained_likelihood)

        np.maximum(prob, MIN_PROB, out=prob)  # very small numbers are a very big problem
        prob /= prob.sum(axis=0, keepdims=True)
        prob *= data.weight
        return prob

    def maximize_clusters(self, data, responsibilities):
        """New clusters, one per responsibility row, with weights renormalized to sum to one."""
        annotations = data.annotations
        upper = np.triu_indices(data.num_features)
        clusters = []

        for prob in responsibilities:
            prob_sum = prob.sum(dtype=types.large_float_type)
            mean = np.dot(prob, annotations)/prob_sum
            diff = annotations - mean
            scatter = np.dot(diff.T*prob, diff)
            scatter[upper] = np.maximum(scatter[upper], MIN_SIGMA)
            scatter = np.triu(scatter) + np.triu(scatter, 1).T  # covariance must be a symmetric matrix
            clusters.append(Cluster(prob_sum/data.num_data, mean, scatter/prob_sum))

        weight_sum = sum(c.weight for c in clusters)  # flooring makes the weights drift
        for c in clusters:
            c.weight /= weight_sum
        return clusters

    def m_step(self, data, responsibilities, start=0, stop=None):
        start, stop = self._cluster_range(start, stop)
        assert responsibilities.shape[0] == stop - start
        self.clusters[start:stop] = self.maximize_clusters(data, responsibilities)
        return self.clusters[start:stop]

    def retained_clusters(self):
        clusters = [c for c in self.clusters if c is not None]
        if self.num_variants is None:  # loaded model without support information
            return clusters
        return [c for c in clusters if c.weight*self.num_variants > self.min_var_in_cluster]

    def likelihood(self, annotations):
        """Weighted density of normalized annotations under each cluster, one column per cluster."""
        clusters = [c for c in self.clusters if c is not None]
        annotations = np.atleast_2d(np.asarray(annotations, dtype=types.annotation_type))
        ret = np.empty((annotations.shape[0], len(clusters)), dtype=types.prob_type)
        for column, cluster in enumerate(clusters):
            ret[:, column] = cluster.weight*cluster.density(annotations)
        return ret

    def score(self, data):
        return self.likelihood(data.annotations).sum(axis=1)

    def evaluate_variant(self, values):
        return float(self.likelihood(self.context.normalize(values)).sum())

    def _cluster_range(self, start, stop):
        if stop is None:
            stop = self.num_gaussians
        assert 0 <= start < stop <= self.num_gaussians
        return start, stop

    @property
    def num_features(self):
        return self.context.num_features

    @property
    def max_allele_count(self):
        return self.allele_count_factors.size - 1

    _short_name = "GMM"


def recalibrated_quality(score):
    return -10.0*np.log10(np.maximum(1.0 - np.asarray(score, dtype=types.prob_type), MIN_ERROR_RATE))


def write_model(model, file):
    context = model.context
    means = np.zeros(context.num_features) if context.means is None else context.means
    stds = np.ones(context.num_features) if context.stds is None else context.stds
    for name, mean, std in zip(context.names, means, stds):
        file.write("%s,%s,%s,%s\n" % (ANNOTATION_PREFIX, name, common.format_float(mean), common.format_float(std)))

    for allele_count in range(1, model.allele_count_factors.size):
        factor = model.allele_count_factors[allele_count]
        if np.isfinite(factor):
            file.write("%s,%i,%s\n" % (ALLELECOUNT_PREFIX, allele_count, common.format_float(factor)))

    for cluster in model.retained_clusters():
        values = [cluster.weight] + list(cluster.mean) + list(cluster.covariance.flatten())
        file.write("%s,%s,%s\n" % (CLUSTER_PREFIX, ",".join(map(common.format_float, values)), CLUSTER_TERMINATOR))


def write_model_file(model, filename):
    with common.open_output(filename) as f:
        write_model(model, f)


def _parse_float(value, line):
    try:
        number = float(value)
    except ValueError:
        raise common.MalformedInputError("Cannot parse number '%s' in cluster file line: %s" % (value, line))
    if not np.isfinite(number):
        raise common.MalformedInputError("Non-finite number '%s' in cluster file line: %s" % (value, line))
    return number


def load_model(lines, backoff=1.0):
    """
    Read a cluster file. Every covariance entry is multiplied by the back-off factor, which widens (factor > 1) the
    Gaussians for scoring.
    """
    annotation_lines = []
    allele_count_lines = []
    cluster_lines = []
    for line in lines:
        line = line.rstrip("\r\n")
        if line.startswith(ANNOTATION_PREFIX):
            annotation_lines.append(line)
        elif line.startswith(ALLELECOUNT_PREFIX):
            allele_count_lines.append(line)
        elif line.startswith(CLUSTER_PREFIX):
            cluster_lines.append(line)
        else:
            raise common.MalformedInputError("Malformed cluster file line: %s" % line)

    if not annotation_lines:
        raise common.MalformedInputError("Cluster file does not declare any annotation")
    if not cluster_lines:
        raise common.MalformedInputError("Cluster file does not contain any cluster")

    names, means, stds = [], [], []
    for line in annotation_lines:
        fields = line.split(",")
        if len(fields) == 2:
            mean, std = 0.0, 1.0
        elif len(fields) == 4:
            mean, std = _parse_float(fields[2], line), _parse_float(fields[3], line)
        else:
            raise common.MalformedInputError("Malformed annotation line: %s" % line)
        names.append(fields[1])
        means.append(mean)
        stds.append(std)
    context = Context(names, means, stds)
    num_features = context.num_features

    factors = {}
    for line in allele_count_lines:
        fields = line.split(",")
        if len(fields) != 3:
            raise common.MalformedInputError("Malformed allele count line: %s" % line)
        try:
            allele_count = int(fields[1])
        except ValueError:
            raise common.MalformedInputError("Cannot parse allele count '%s' in line: %s" % (fields[1], line))
        if allele_count < 1:
            raise common.MalformedInputError("Allele count must be positive in line: %s" % line)
        factors[allele_count] = _parse_float(fields[2], line)

    clusters = []
    for line in cluster_lines:
        fields = line.split(",")
        if len(fields) != 3 + num_features + num_features**2 or fields[-1] != CLUSTER_TERMINATOR:
            raise common.MalformedInputError("Malformed cluster line for %i annotations: %s" % (num_features, line))
        values = np.array([_parse_float(v, line) for v in fields[1:-1]], dtype=types.annotation_type)
        mean = values[1:1 + num_features]
        covariance = values[1 + num_features:].reshape(num_features, num_features)*backoff
        clusters.append(Cluster(values[0], mean, covariance))

    model = Model(len(clusters), num_iterations=0, max_allele_count=max(factors) if factors else 0, context=context)
    model.clusters = clusters
    for allele_count, factor in factors.items():
        model.allele_count_factors[allele_count] = factor

    common.log(model._short_name, "found %i clusters and using %i annotations: %s"
               % (len(clusters), num_features, ", ".join(names)))
    return model


def load_model_file(filename, **kwargs):
    with common.open_input(filename) as f:
        return load_model(f, **kwargs)
