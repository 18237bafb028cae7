from typing import List, Sequence, Union

import numpy as np

from .errors import InvalidModelOutput
from .tensors import TensorView
from .types import Classification


def classify(
    scores: Union[TensorView, np.ndarray],
    labels: Sequence[str],
    top_k: int,
) -> List[Classification]:
    """
    Rank a 1-D confidence tensor against label names and keep the best `top_k`.

    Ties keep their original index order.
    """

    view = scores if isinstance(scores, TensorView) else TensorView.scores(scores)
    values = view.array
    if values.shape[0] != len(labels):
        raise InvalidModelOutput(
            f"{view.name}: {values.shape[0]} scores but {len(labels)} labels"
        )
    if top_k <= 0:
        return []

    # Stable sort on the negated scores keeps lower indices first for equal confidence.
    order = np.argsort(-values, kind="stable")[:top_k]
    return [Classification(label=labels[i], confidence=float(values[i])) for i in order]
