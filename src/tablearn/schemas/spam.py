"""
Pandera schema for the spam e-mail dataset.

One row per message: 57 word/character frequencies and capital-run
statistics plus the outcome column ``type``.
"""

import pandas as pd
import pandera.pandas as pa
from pandera.typing import Series

SPAM_LEVELS = ["nonspam", "spam"]


class SpamSchema(pa.DataFrameModel):
    """Schema for the spam classification data."""

    type: Series[str] = pa.Field(
        isin=SPAM_LEVELS,
        description="Outcome: spam or nonspam",
    )

    @pa.dataframe_check
    def features_numeric_non_negative(cls, df: pd.DataFrame) -> bool:
        """Frequencies and run lengths are numeric and never negative."""
        features = df.drop(columns=["type"], errors="ignore")
        numeric = features.select_dtypes(include="number")
        if numeric.shape[1] != features.shape[1]:
            return False
        return bool((numeric.fillna(0) >= 0).all().all())

    class Config:
        """Schema configuration."""

        name = "SpamSchema"
        strict = False  # feature columns are not enumerated
        coerce = True
