# This file is subject to the terms and conditions of the GPLv3 (see file 'LICENSE' as part of this source code package)

u"""
This file holds the variant data set: per-variant annotation vectors, the metadata used by the diagnostics and the
normalization of annotations to standard scores.
"""

from .. import common, types
import numpy as np

required_columns = ("AC", "QUAL", "KNOWN", "TI")
metadata_columns = required_columns + ("WEIGHT",)


class Context(object):
    """Container for information which is shared between Data and Model"""

    def __init__(self, names=None, means=None, stds=None):
        self.names = None if names is None else list(names)
        self.means = None if means is None else np.asarray(means, dtype=types.annotation_type)
        self.stds = None if stds is None else np.asarray(stds, dtype=types.annotation_type)

    @property
    def num_features(self):
        if self.names is None:
            return None
        return len(self.names)

    @property
    def normalized(self):
        return self.means is not None and self.stds is not None

    def normalize(self, values):
        return (np.asarray(values, dtype=types.annotation_type) - self.means)/self.stds

    def denormalize(self, values, index):
        return np.asarray(values, dtype=types.annotation_type)*self.stds[index] + self.means[index]

    def __repr__(self):
        return "Context(names=%r)" % (self.names,)


class Data(object):
    def __init__(self, context=None):
        self.context = Context() if context is None else context
        self.annotations = None
        self.allele_count = None
        self.quality = None
        self.is_known = None
        self.is_transition = None
        self.weight = None
        self._annotations = []
        self._metadata = []

    def deposit(self, annotations, allele_count=0, quality=0.0, is_known=False, is_transition=False, weight=1.0):
        self._annotations.append(np.asarray(annotations, dtype=types.annotation_type))
        self._metadata.append((allele_count, quality, is_known, is_transition, weight))

    def prepare(self):
        if not self._annotations:
            raise common.MalformedInputError("No variants found in input data")

        raw = np.vstack(self._annotations)
        allele_count, quality, is_known, is_transition, weight = zip(*self._metadata)
        self.quality = np.asarray(quality, dtype=types.annotation_type)
        self.is_known = np.asarray(is_known, dtype=bool)
        self.is_transition = np.asarray(is_transition, dtype=bool)
        self.weight = np.asarray(weight, dtype=types.prob_type)

        if min(allele_count) < 0:
            raise common.MalformedInputError("Allele counts must not be negative")
        self.allele_count = np.asarray(allele_count, dtype=types.allele_count_type)
        if np.any(self.weight <= 0.0):
            raise common.MalformedInputError("Variant weights must be positive")

        if self.context.names is None:
            self.context.names = [str(i) for i in range(raw.shape[1])]
        elif self.context.num_features != raw.shape[1]:
            raise common.MalformedInputError("Expected %i annotations per variant, found %i"
                                             % (self.context.num_features, raw.shape[1]))

        if not self.context.normalized:
            self.context.means = raw.mean(axis=0)
            self.context.stds = raw.std(axis=0)
            for name, std in zip(self.context.names, self.context.stds):
                if not std > 0.0:
                    raise common.MalformedInputError("Zero variance is a problem: standard deviation = %s for "
                                                     "annotation = %s" % (std, name))
            common.log("DATA", "normalized %i annotations: %s" % (raw.shape[1], ", ".join(
                "%s (mean %.4f, std %.4f)" % t for t in zip(self.context.names, self.context.means, self.context.stds))))

        self.annotations = self.context.normalize(raw)
        self._annotations = []
        self._metadata = []
        return self

    def parse(self, lines, annotation_names=None, known_weight=1.0):  # tab-separated table with '#' header
        header = None
        names = annotation_names
        for line_number, line in enumerate(lines, 1):
            line = line.rstrip("\r\n")
            if not line:
                continue
            if header is None:
                if line[0] != "#":
                    raise common.MalformedInputError("Missing '#' header line in variant table")
                header = line[1:].split("\t")
                missing = [c for c in required_columns if c not in header]
                if missing:
                    raise common.MalformedInputError("Variant table lacks required columns: %s" % ", ".join(missing))
                if names is None:
                    names = self.context.names
                if names is None:
                    names = [c for c in header if c not in metadata_columns]
                missing = [c for c in names if c not in header]
                if missing:
                    raise common.MalformedInputError("Variant table lacks annotation columns: %s" % ", ".join(missing))
                if self.context.names is None:
                    self.context.names = list(names)
                continue
            if line[0] == "#":
                continue

            fields = line.split("\t")
            if len(fields) != len(header):
                raise common.MalformedInputError("Line %i has %i fields, expected %i"
                                                 % (line_number, len(fields), len(header)))
            record = dict(zip(header, fields))
            annotations = [decode_annotation(name, record, line_number) for name in names]
            try:
                allele_count = int(record["AC"])
                is_known = bool(int(record["KNOWN"]))
                weight = float(record["WEIGHT"]) if "WEIGHT" in record else (known_weight if is_known else 1.0)
                self.deposit(annotations,
                             allele_count=allele_count,
                             quality=float(record["QUAL"]),
                             is_known=is_known,
                             is_transition=bool(int(record["TI"])),
                             weight=weight)
            except ValueError as e:
                raise common.MalformedInputError("Cannot parse variant metadata in line %i: %s" % (line_number, e))
            if allele_count < 0:
                raise common.MalformedInputError("Negative allele count %i in line %i" % (allele_count, line_number))

        if header is None:
            raise common.MalformedInputError("Empty variant table")
        return self.prepare()

    @property
    def num_features(self):
        return self.annotations.shape[1]

    @property
    def num_data(self):
        return self.annotations.shape[0]

    @property
    def max_allele_count(self):
        return int(self.allele_count.max())

    def __len__(self):
        return self.num_data


def decode_annotation(name, record, line_number=None):
    value = record[name]
    try:
        return float(value)
    except ValueError:
        location = "" if line_number is None else " in variant at line %i" % line_number
        raise common.MalformedInputError("No double value detected for annotation = %s%s, reported annotation "
                                         "value = %s" % (name, location, value))


def load_data_file(filename, context=None, **kwargs):
    d = Data(context=context)
    with common.open_input(filename) as f:
        return d.parse(f, **kwargs)
