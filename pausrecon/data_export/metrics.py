from dataclasses import asdict
from pathlib import Path
from typing import List

import pandas as pd

from ..data_objs.frame import PerformanceMetrics


class MetricsCSVExport:
    """Collect per-frame timings and export them to CSV format."""

    def __init__(self, output_path: str):
        assert str(output_path).endswith(".csv"), "Output path must end with .csv to export to CSV format."
        self.export_path = Path(output_path)
        self.rows: List[dict] = []

    def add(self, frame_idx: int, metrics: PerformanceMetrics) -> None:
        row = {"frame_idx": frame_idx}
        row.update(asdict(metrics))
        self.rows.append(row)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows, columns=["frame_idx"] + list(PerformanceMetrics.__dataclass_fields__))

    def save_data(self) -> pd.DataFrame:
        """Write one row per frame. Returns the exported dataframe."""
        self.exported_df = self.to_dataframe()
        self.exported_df.to_csv(self.export_path, index=False)
        return self.exported_df
