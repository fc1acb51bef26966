"""
Compressed sparse column matrices and the triplet assembler
"""
import numpy as np
from scipy import sparse
from typing import Iterable, Tuple, Union


Triplet = Tuple[int, int, float]


def _ensure_contiguous_int64(arr):
    """Ensure array is contiguous int64"""
    if not isinstance(arr, np.ndarray):
        arr = np.array(arr, dtype=np.int64)
    if arr.dtype != np.int64:
        arr = arr.astype(np.int64)
    return np.ascontiguousarray(arr)


def _ensure_contiguous_float64(arr):
    """Ensure array is contiguous float64"""
    if not isinstance(arr, np.ndarray):
        arr = np.array(arr, dtype=np.float64)
    if arr.dtype != np.float64:
        arr = arr.astype(np.float64)
    return np.ascontiguousarray(arr)


def _owned(arr: np.ndarray) -> np.ndarray:
    """Private read-only copy, so callers cannot move or edit the buffer"""
    arr = arr.copy()
    arr.flags.writeable = False
    return arr


class CscMatrix:
    """
    Matrix in compressed sparse column (CSC) format.

    This is the wire shape consumed by the engine: column ``j`` owns the
    slice ``col_ptr[j]:col_ptr[j + 1]`` of ``row_ind`` and ``values``, with
    row indices ascending inside the slice.

    Parameters
    ----------
    rows : int
        Number of rows
    cols : int
        Number of columns
    col_ptr : array_like
        Column pointers (length cols + 1)
    row_ind : array_like
        Row index of every stored entry (length nnz)
    values : array_like
        Value of every stored entry (length nnz)

    Raises
    ------
    ValueError
        If the arrays do not describe a valid CSC structure
    """

    def __init__(self, rows: int, cols: int, col_ptr, row_ind, values):
        rows = int(rows)
        cols = int(cols)
        if rows < 0 or cols < 0:
            raise ValueError(f"Matrix dimensions must be non-negative, got ({rows}, {cols})")

        col_ptr = _ensure_contiguous_int64(col_ptr)
        row_ind = _ensure_contiguous_int64(row_ind)
        values = _ensure_contiguous_float64(values)

        if col_ptr.shape != (cols + 1,):
            raise ValueError(f"col_ptr must have length {cols + 1} (cols + 1)")
        nnz = len(row_ind)
        if values.shape != (nnz,):
            raise ValueError("row_ind and values must have the same length")
        if col_ptr[0] != 0 or col_ptr[-1] != nnz:
            raise ValueError(f"col_ptr must start at 0 and end at nnz={nnz}")
        if np.any(np.diff(col_ptr) < 0):
            raise ValueError("col_ptr must be non-decreasing")
        if nnz and (row_ind.min() < 0 or row_ind.max() >= rows):
            raise ValueError(f"Row indices must lie in [0, {rows})")
        if nnz > 1:
            column_start = np.zeros(nnz, dtype=bool)
            column_start[col_ptr[:-1][col_ptr[:-1] < nnz]] = True
            if np.any((np.diff(row_ind) <= 0) & ~column_start[1:]):
                raise ValueError("Row indices must be strictly ascending within each column")

        self.rows = rows
        self.cols = cols
        self.col_ptr = _owned(col_ptr)
        self.row_ind = _owned(row_ind)
        self.values = _owned(values)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.rows, self.cols)

    @property
    def nnz(self) -> int:
        """Number of stored entries"""
        return len(self.values)

    def has_same_sparsity(self, other: 'CscMatrix') -> bool:
        """Check that both matrices store exactly the same cells"""
        return (self.shape == other.shape
                and np.array_equal(self.col_ptr, other.col_ptr)
                and np.array_equal(self.row_ind, other.row_ind))

    def to_scipy(self) -> sparse.csc_matrix:
        """Convert to a scipy ``csc_matrix`` (explicit zeros are kept)"""
        return sparse.csc_matrix(
            (self.values.copy(), self.row_ind.copy(), self.col_ptr.copy()),
            shape=self.shape,
        )

    def toarray(self) -> np.ndarray:
        return self.to_scipy().toarray()

    @staticmethod
    def from_scipy(matrix: Union[np.ndarray, sparse.spmatrix]) -> 'CscMatrix':
        """
        Create a CscMatrix from a scipy sparse matrix or a dense array.

        Duplicate entries are summed and row indices are sorted.
        """
        if sparse.issparse(matrix):
            csc = sparse.csc_matrix(matrix, copy=True)
        elif isinstance(matrix, np.ndarray):
            csc = sparse.csc_matrix(matrix)
        else:
            raise TypeError("matrix must be a numpy array or scipy sparse matrix")
        csc.sum_duplicates()
        csc.sort_indices()
        rows, cols = csc.shape
        return CscMatrix(rows, cols, csc.indptr, csc.indices, csc.data)

    def __eq__(self, other):
        if not isinstance(other, CscMatrix):
            return NotImplemented
        return self.has_same_sparsity(other) and np.array_equal(self.values, other.values)

    __hash__ = None

    def __repr__(self):
        return f"CscMatrix(rows={self.rows}, cols={self.cols}, nnz={self.nnz})"


def assemble(triplets: Iterable[Triplet], rows: int, cols: int) -> CscMatrix:
    """
    Assemble ``(row, col, value)`` triplets into a canonical CscMatrix.

    Triplets are sorted column-major, row-minor, and triplets addressing the
    same cell are summed. The output only depends on the multiset of
    triplets, not on their order: entries of one cell are summed in
    ascending value order.

    Parameters
    ----------
    triplets : iterable of (int, int, float)
        Matrix contributions, in any order, duplicates allowed
    rows : int
        Number of rows
    cols : int
        Number of columns

    Returns
    -------
    CscMatrix
        Assembled matrix

    Examples
    --------
    >>> A = assemble([(1, 0, 2.0), (0, 0, 3.0), (0, 0, 4.0)], rows=2, cols=1)
    >>> A.col_ptr, A.row_ind, A.values
    (array([0, 2]), array([0, 1]), array([7., 2.]))
    """
    entries = list(triplets)
    if not entries:
        return CscMatrix(rows, cols,
                         np.zeros(cols + 1, dtype=np.int64),
                         np.zeros(0, dtype=np.int64),
                         np.zeros(0, dtype=np.float64))

    row_arr, col_arr, val_arr = zip(*entries)
    row_arr = _ensure_contiguous_int64(row_arr)
    col_arr = _ensure_contiguous_int64(col_arr)
    val_arr = _ensure_contiguous_float64(val_arr)

    if row_arr.min() < 0 or row_arr.max() >= rows:
        raise ValueError(f"Triplet row index out of range [0, {rows})")
    if col_arr.min() < 0 or col_arr.max() >= cols:
        raise ValueError(f"Triplet column index out of range [0, {cols})")

    # lexsort keys go from least to most significant
    order = np.lexsort((val_arr, row_arr, col_arr))
    row_arr = row_arr[order]
    col_arr = col_arr[order]
    val_arr = val_arr[order]

    new_cell = np.ones(len(order), dtype=bool)
    new_cell[1:] = (row_arr[1:] != row_arr[:-1]) | (col_arr[1:] != col_arr[:-1])
    starts = np.flatnonzero(new_cell)

    values = np.add.reduceat(val_arr, starts)
    row_ind = row_arr[starts]
    col_ptr = np.zeros(cols + 1, dtype=np.int64)
    np.cumsum(np.bincount(col_arr[starts], minlength=cols), out=col_ptr[1:])

    return CscMatrix(rows, cols, col_ptr, row_ind, values)
