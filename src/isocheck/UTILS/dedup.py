"""
Deduplication of container specs by image.
"""
from typing import Iterable, List
from ..MODELS.scenario import ContainerSpec


def deduplicate_by_image(specs: Iterable[ContainerSpec]) -> List[ContainerSpec]:
    """
    Keeps the first spec for each distinct image, preserving order.

    :param specs: Container specs, possibly repeating images.
    :return: One spec per image.
    """
    seen = set()
    unique = []
    for spec in specs:
        if spec.image not in seen:
            seen.add(spec.image)
            unique.append(spec)
    return unique
