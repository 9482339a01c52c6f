"""
Pandera schema for the drug consumption survey.

Personality measurements (NEO-FFI-R, BIS-11, ImpSS) are real-valued
scores. Each substance column holds a usage class:

    CL0 never used          CL4 used in last month
    CL1 over a decade ago   CL5 used in last week
    CL2 in last decade      CL6 used in last day
    CL3 in last year
"""

import pandas as pd
import pandera.pandas as pa
from pandera.typing import Series

USAGE_CLASSES = ["CL0", "CL1", "CL2", "CL3", "CL4", "CL5", "CL6"]

SUBSTANCE_COLUMNS = [
    "Alcohol",
    "Amphet",
    "Amyl",
    "Benzos",
    "Caff",
    "Cannabis",
    "Choc",
    "Coke",
    "Crack",
    "Ecstasy",
    "Heroin",
    "Ketamine",
    "Legalh",
    "LSD",
    "Meth",
    "Mushrooms",
    "Nicotine",
    "Semer",
    "VSA",
]

PERSONALITY_COLUMNS = [
    "Nscore",
    "Escore",
    "Oscore",
    "Ascore",
    "Cscore",
    "Impulsive",
    "SS",
]


class DrugConsumptionSchema(pa.DataFrameModel):
    """Schema for the drug consumption classification data."""

    Nscore: Series[float] = pa.Field(description="Neuroticism")
    Escore: Series[float] = pa.Field(description="Extraversion")
    Oscore: Series[float] = pa.Field(description="Openness to experience")
    Ascore: Series[float] = pa.Field(description="Agreeableness")
    Cscore: Series[float] = pa.Field(description="Conscientiousness")
    Impulsive: Series[float] = pa.Field(description="Impulsiveness (BIS-11)")
    SS: Series[float] = pa.Field(description="Sensation seeking (ImpSS)")

    @pa.dataframe_check
    def substance_usage_classes(cls, df: pd.DataFrame) -> bool:
        """Every substance column present uses the CL0-CL6 coding."""
        present = [c for c in SUBSTANCE_COLUMNS if c in df.columns]
        if not present:
            return False
        return bool(df[present].isin(USAGE_CLASSES).all().all())

    class Config:
        """Schema configuration."""

        name = "DrugConsumptionSchema"
        strict = False  # demographics are optional and vary in encoding
        coerce = True
