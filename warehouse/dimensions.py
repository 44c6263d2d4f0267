# File: warehouse/dimensions.py

"""
Dimension members for the insurance star schema.

Two flavours of dimension exist:

  • bucket dimensions (dim_age_group, dim_bmi_category) are fixed tables of
    contiguous [min, max] ranges over a numeric field, validated once when built;
  • lookup dimensions (dim_region, dim_smoker, dim_sex) are the distinct values
    observed in stg_insurance.

Surrogate keys are assigned 1..n in definition / first-seen order, the same way
a SERIAL column numbers rows inserted by a single INSERT … SELECT.
"""

from bisect import bisect_right
from collections import namedtuple
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from warehouse.errors import (
    ConfigurationError,
    NullFieldError,
    OutOfRangeError,
    UnknownMemberError,
)

# ───────────── Fixed bucket tables ───────────────────────────────────────────────
AGE_GROUP_RANGES = [
    (18, 24, "18-24"),
    (25, 34, "25-34"),
    (35, 44, "35-44"),
    (45, 54, "45-54"),
    (55, 64, "55-64"),
    (65, 120, "65+"),
]

# NIH-style cutoffs, two decimals like the NUMERIC(5,2) bmi column
BMI_CATEGORY_RANGES = [
    (Decimal("0.00"),  Decimal("18.49"),  "Underweight"),
    (Decimal("18.50"), Decimal("24.99"),  "Normal"),
    (Decimal("25.00"), Decimal("29.99"),  "Overweight"),
    (Decimal("30.00"), Decimal("100.00"), "Obese"),
]

AGE_RESOLUTION = 1
BMI_RESOLUTION = Decimal("0.01")

SMOKER_VALUES = ("yes", "no")

Bucket = namedtuple("Bucket", ["key", "min", "max", "label"])


def _as_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


class BucketDimension:
    """Ordered, gap-free ranges over one numeric field."""

    def __init__(self, field: str, buckets, resolution):
        self.field = field
        self.resolution = _as_decimal(resolution)
        self.members = {b.key: b for b in buckets}
        self._buckets = list(buckets)
        self._lows = [_as_decimal(b.min) for b in self._buckets]
        self._highs = [_as_decimal(b.max) for b in self._buckets]

    def __len__(self):
        return len(self.members)

    def __contains__(self, key):
        return key in self.members

    def __iter__(self):
        return iter(self._buckets)

    @property
    def domain(self):
        return self._lows[0], self._highs[-1]

    def label(self, key) -> str:
        return self.members[key].label

    def key_for_label(self, label: str) -> int:
        for bucket in self._buckets:
            if bucket.label == label:
                return bucket.key
        raise KeyError(label)

    def classify(self, value) -> int:
        if value is None:
            raise NullFieldError(self.field)
        try:
            exact = _as_decimal(value)
            if exact.is_nan():
                raise NullFieldError(self.field)
            # values are compared at the column's precision (NUMERIC rounds half away from zero)
            rounded = exact.quantize(self.resolution, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise OutOfRangeError(self.field, value) from None

        idx = bisect_right(self._lows, rounded) - 1
        if idx < 0 or rounded > self._highs[idx]:
            low, high = self.domain
            raise OutOfRangeError(
                self.field, value, f"{self.field}={value} is outside [{low}, {high}]"
            )
        return self._buckets[idx].key


class LookupDimension:
    """Distinct observed values of one text field, each with a surrogate key."""

    def __init__(self, field: str):
        self.field = field
        self.keys = {}      # value → key
        self.members = {}   # key → value

    def __len__(self):
        return len(self.members)

    def __contains__(self, key):
        return key in self.members

    def __iter__(self):
        return iter(self.members.items())

    def add(self, value) -> int:
        if value in self.keys:
            return self.keys[value]
        key = len(self.members) + 1
        self.keys[value] = key
        self.members[key] = value
        return key

    def key_for(self, value) -> int:
        if value is None:
            raise NullFieldError(self.field)
        try:
            return self.keys[value]
        except KeyError:
            raise UnknownMemberError(self.field, value) from None


def build_bucket_dimension(ranges, resolution=AGE_RESOLUTION, field: str = "value") -> BucketDimension:
    """
    Validate an ascending list of (min, max, label) triples and number them 1..n.

    Consecutive ranges must touch exactly: ranges[i+1].min has to be the next
    representable value after ranges[i].max at the given resolution
    (1 for integer ages, 0.01 for two-decimal BMI). Anything else is a
    ConfigurationError, raised here rather than while classifying records.
    """
    ranges = list(ranges)
    if not ranges:
        raise ConfigurationError(f"{field}: no bucket ranges defined")

    step = _as_decimal(resolution)
    if step <= 0:
        raise ConfigurationError(f"{field}: resolution must be positive, got {resolution}")

    labels = set()
    buckets = []
    prev_high = None
    for key, (low, high, label) in enumerate(ranges, start=1):
        lo, hi = _as_decimal(low), _as_decimal(high)
        if lo > hi:
            raise ConfigurationError(f"{field}: bucket {label!r} has min {low} > max {high}")
        if label in labels:
            raise ConfigurationError(f"{field}: duplicate bucket label {label!r}")
        if prev_high is not None:
            if lo <= prev_high:
                raise ConfigurationError(
                    f"{field}: bucket {label!r} starts at {low}, overlapping or out of order "
                    f"with the previous bucket ending at {prev_high}"
                )
            if lo - prev_high != step:
                raise ConfigurationError(
                    f"{field}: gap between {prev_high} and {low} before bucket {label!r}"
                )
        labels.add(label)
        buckets.append(Bucket(key, low, high, label))
        prev_high = hi

    return BucketDimension(field, buckets, step)


def build_lookup_dimension(values, field: str = "value", allowed=None) -> LookupDimension:
    """
    Collect the distinct non-NULL values of a (possibly lazy) iterable.

    Keys follow first-seen order, so they are only reproducible when the source
    order is; callers should compare members by value. When `allowed` is given,
    other values are left out of the dimension.
    """
    dim = LookupDimension(field)
    for value in values:
        if value is None:
            continue
        if allowed is not None and value not in allowed:
            continue
        dim.add(value)
    return dim


def classify(value, dimension: BucketDimension) -> int:
    """Surrogate key of the single bucket whose inclusive [min, max] holds value."""
    return dimension.classify(value)


def age_group_dimension() -> BucketDimension:
    return build_bucket_dimension(AGE_GROUP_RANGES, AGE_RESOLUTION, field="age")


def bmi_category_dimension() -> BucketDimension:
    return build_bucket_dimension(BMI_CATEGORY_RANGES, BMI_RESOLUTION, field="bmi")
