"""Statistics over sampled measurements."""

from dataclasses import asdict, dataclass
from typing import Dict, Iterable, Mapping, Optional, Union

from clockscope.probing.probe_models import Measurement, SampleSeries


@dataclass(frozen=True)
class Stats:
    """Summary of one target's samples, in milliseconds."""

    count: int
    offset_avg: float
    offset_min: float
    offset_max: float
    rtt_avg: float

    def to_dict(self) -> dict:
        return asdict(self)


def compute_stats(series: Union[SampleSeries, Iterable[Measurement]]) -> Stats:
    """Reduce a non-empty sequence of measurements to :class:`Stats`.

    Raises:
        ValueError: if there are no measurements
    """
    measurements = list(series)
    if not measurements:
        raise ValueError("cannot compute statistics over an empty series")

    offsets = [m.offset_ms for m in measurements]
    count = len(measurements)
    return Stats(
        count=count,
        offset_avg=sum(offsets) / count,
        offset_min=min(offsets),
        offset_max=max(offsets),
        rtt_avg=sum(m.rtt_ms for m in measurements) / count,
    )


def compute_stats_by_target(series_by_target: Mapping[str, SampleSeries]) -> Dict[str, Stats]:
    """Per-target stats, skipping targets that produced no sample."""
    return {name: compute_stats(series) for name, series in series_by_target.items() if len(series) > 0}


def max_average_drift(stats_by_target: Mapping[str, Stats]) -> Optional[float]:
    """Spread between the highest and lowest average offset across targets.

    Returns:
        ``max(offset_avg) - min(offset_avg)``, or None unless at least two
        targets have samples
    """
    averages = [s.offset_avg for s in stats_by_target.values() if s.count > 0]
    if len(averages) < 2:
        return None
    return max(averages) - min(averages)
