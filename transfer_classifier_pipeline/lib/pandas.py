from typing import Any, Dict, List, Sequence

import pandas as pd


class pandas:
    """
    A wrapper around pandas with type hints.
    """

    @staticmethod
    def from_records(
        records: List[Dict[str, Any]], columns: Sequence[str]
    ) -> pd.DataFrame:
        return pd.DataFrame.from_records(records, columns=list(columns))  # type: ignore

    @staticmethod
    def value_counts(frame: pd.DataFrame, column: str) -> Dict[str, int]:
        counts = frame[column].value_counts(sort=False)  # type: ignore
        return {str(label): int(count) for label, count in counts.items()}
