import numpy as np

SINGULAR_PIVOT = 1e-12


def solve_damped_system(
    a: np.ndarray,
    b: np.ndarray,
    out: np.ndarray | None = None,
    pivot_tol: float = SINGULAR_PIVOT,
) -> bool:
    """
    Solve ``a @ x = b`` by Gaussian elimination with partial pivoting.

    ``a`` and ``b`` are not modified. When a pivot falls below ``pivot_tol``
    the system is treated as singular and ``x`` is all zeros.

    Args:
        a: Square system matrix (n, n).
        b: Right-hand side (n,).
        out: Optional buffer (n,) that receives the solution.
        pivot_tol: Smallest acceptable pivot magnitude.

    Returns:
        bool: False if the system was singular, True otherwise.
    """
    m = np.array(a, dtype=np.float64)
    r = np.array(b, dtype=np.float64).reshape(-1)
    n = r.shape[0]
    x = out if out is not None else np.empty(n)

    for col in range(n):
        pivot_row = col + int(np.argmax(np.abs(m[col:, col])))
        if pivot_row != col:
            m[[col, pivot_row]] = m[[pivot_row, col]]
            r[[col, pivot_row]] = r[[pivot_row, col]]

        pivot = m[col, col]
        if abs(pivot) < pivot_tol:
            x.fill(0.0)
            return False

        factors = m[col + 1 :, col] / pivot
        m[col + 1 :, col:] -= np.outer(factors, m[col, col:])
        r[col + 1 :] -= factors * r[col]

    for row in range(n - 1, -1, -1):
        x[row] = (r[row] - m[row, row + 1 :] @ x[row + 1 :]) / m[row, row]
    return True
