"""
Loaders for the three workflow datasets.

Each loader owns the column transforms that turn its raw CSV into
model-ready columns: outcome definition, yes/no flags, ordered levels.
"""

import pandas as pd

from tablearn.config.settings import WorkflowConfig
from tablearn.datasets.base import DatasetLoader
from tablearn.schemas.drugs import SUBSTANCE_COLUMNS, DrugConsumptionSchema
from tablearn.schemas.housing import AMENITY_COLUMNS, FURNISHING_LEVELS, HousingSchema
from tablearn.schemas.spam import SPAM_LEVELS, SpamSchema
from tablearn.utils.logging import get_logger

log = get_logger(__name__)

# CL0 never used, CL1 used over a decade ago
NON_USER_CLASSES = frozenset({"CL0", "CL1"})
USER_LABEL = "user"
NON_USER_LABEL = "non-user"


class SpamLoader(DatasetLoader[SpamSchema]):
    """Loader for the spam e-mail data."""

    def __init__(self, config: WorkflowConfig) -> None:
        """Initialize spam loader."""
        super().__init__(config, SpamSchema)

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Turn the outcome into a two-level factor (nonspam, spam)."""
        df = df.copy()
        df["type"] = pd.Categorical(df["type"], categories=SPAM_LEVELS)

        counts = df["type"].value_counts().to_dict()
        log.info("Spam class balance", **{str(k): int(v) for k, v in counts.items()})
        return df


class HousingLoader(DatasetLoader[HousingSchema]):
    """Loader for the housing price data."""

    def __init__(self, config: WorkflowConfig) -> None:
        """Initialize housing loader."""
        super().__init__(config, HousingSchema)

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Encode yes/no amenities as 0/1 and furnishing as an ordered factor."""
        df = df.copy()
        for col in AMENITY_COLUMNS:
            if col in df.columns:
                df[col] = (df[col] == "yes").astype("int64")

        if "furnishingstatus" in df.columns:
            df["furnishingstatus"] = pd.Categorical(
                df["furnishingstatus"],
                categories=FURNISHING_LEVELS,
                ordered=True,
            )

        log.info(
            "Housing price summary",
            median=float(df["price"].median()),
            min=float(df["price"].min()),
            max=float(df["price"].max()),
        )
        return df


class DrugConsumptionLoader(DatasetLoader[DrugConsumptionSchema]):
    """Loader for the drug consumption survey."""

    def __init__(self, config: WorkflowConfig) -> None:
        """Initialize drug consumption loader."""
        super().__init__(config, DrugConsumptionSchema)

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Binarize the configured substance into user / non-user.

        All other substance columns and the respondent ID are removed so
        that use of one drug cannot be predicted from use of another.
        """
        drug = self.config.dataset.drug
        target = self.config.dataset.target
        if drug not in df.columns:
            msg = f"Substance column '{drug}' not found in drug consumption data"
            raise ValueError(msg)

        df = df.copy()
        outcome = df[drug].map(
            lambda v: NON_USER_LABEL if v in NON_USER_CLASSES else USER_LABEL
        )

        # the outcome column itself may be a substance outside the known list
        candidates = dict.fromkeys([*SUBSTANCE_COLUMNS, drug, "ID"])
        removed = [c for c in candidates if c in df.columns]
        df = df.drop(columns=removed)
        df[target] = pd.Categorical(outcome, categories=[NON_USER_LABEL, USER_LABEL])

        log.info(
            "Drug outcome defined",
            drug=drug,
            users=int((outcome == USER_LABEL).sum()),
            non_users=int((outcome == NON_USER_LABEL).sum()),
            dropped_columns=len(removed),
        )
        return df


LOADERS: dict[str, type[DatasetLoader]] = {
    "spam": SpamLoader,
    "housing": HousingLoader,
    "drugs": DrugConsumptionLoader,
}


def get_loader(config: WorkflowConfig) -> DatasetLoader:
    """
    Get the loader for the configured dataset.

    Raises:
        KeyError: If the dataset name has no loader.
    """
    name = config.dataset.name
    if name not in LOADERS:
        available = ", ".join(LOADERS.keys())
        msg = f"Unknown dataset '{name}'. Available: {available}"
        raise KeyError(msg)
    return LOADERS[name](config)
