"""
Utilidades para particionar secuencias en lotes.
"""
from typing import Iterable, Iterator, List, Sequence, TypeVar

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Lotes consecutivos de como máximo `size` elementos, en orden."""
    if size <= 0:
        raise ValueError("El tamaño de lote debe ser mayor que 0")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def flatten_pages(pages: Iterable[Iterable[T]]) -> List[T]:
    """Aplana una secuencia de páginas en una sola lista, en orden."""
    items: List[T] = []
    for page in pages:
        items.extend(page)
    return items
